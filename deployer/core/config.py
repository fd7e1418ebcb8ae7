from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
import tempfile
import re


class Settings(BaseSettings):
    PROJECT_NAME: str = "repo-deployer"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = ["*"]

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    # Repository host settings
    GITHUB_DOMAIN: str = "github.com"
    GITHUB_ARCHIVE_SCHEME: str = "https"
    GITHUB_API_URL: Optional[str] = None
    GITHUB_TOKEN: Optional[str] = None

    # Cloud Foundry platform settings
    CF_API_ENDPOINT: Optional[str] = None
    CF_ORG: Optional[str] = None
    CF_SPACE: Optional[str] = None
    CF_USERNAME: Optional[str] = None
    CF_PASSWORD: Optional[str] = None
    CF_SKIP_SSL_VALIDATION: bool = False

    # Pipeline settings
    STATUS_CHECK_DELAY_SECONDS: float = 60.0
    HTTP_TIMEOUT_SECONDS: float = 60.0
    DEPLOY_WORKSPACE_DIR: str = tempfile.gettempdir()
    DEPLOY_RATE_LIMIT: str = "10/minute"
    APP_REGISTRY_PATH: Optional[str] = None

    @property
    def github_host(self) -> str:
        """Repository host without any scheme prefix."""
        return re.sub(r"^https?://", "", self.GITHUB_DOMAIN).rstrip("/")

    @property
    def github_api_url(self) -> str:
        if self.GITHUB_API_URL:
            return self.GITHUB_API_URL.rstrip("/")
        if self.github_host == "github.com":
            return "https://api.github.com"
        # GitHub Enterprise serves its REST API under /api/v3
        return f"https://{self.github_host}/api/v3"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding='utf-8', extra='ignore')

settings = Settings()
