from typing import List, Optional
from urllib.parse import quote

import requests

from deployer.core.config import Settings, settings as default_settings
from deployer.core.exceptions import FetchError, RepositoryHostError
from deployer.core.logging_config import get_logger

logger = get_logger(__name__)


class GitHubService:
    """Repository host operations: branch listing and source archive download."""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/vnd.github+json"}
        if self.config.GITHUB_TOKEN:
            headers["Authorization"] = f"token {self.config.GITHUB_TOKEN}"
        return headers

    def list_branches(self, owner: str, repo: str) -> List[str]:
        """
        Returns branch names in the order the host lists them.
        Raises RepositoryHostError on transport failure or non-200 status.
        """
        url = f"{self.config.github_api_url}/repos/{owner}/{repo}/branches"
        logger.info(f"Listing branches of {owner}/{repo} from {url}")
        try:
            response = self.session.get(
                url,
                headers=self._headers(),
                params={"per_page": 100},
                timeout=self.config.HTTP_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            logger.error(f"Unable to list branches of {owner}/{repo}: {str(e)}")
            raise RepositoryHostError(f"Unable to list branches of {owner}/{repo}: {str(e)}")

        if response.status_code != 200:
            error_message = f"Listing branches of {owner}/{repo} returned status {response.status_code}"
            logger.error(error_message)
            raise RepositoryHostError(error_message, details={"status_code": response.status_code})

        try:
            branches = response.json()
        except ValueError as e:
            raise RepositoryHostError(f"Branch listing for {owner}/{repo} is not valid JSON: {str(e)}")
        if not isinstance(branches, list):
            raise RepositoryHostError(f"Unexpected branch listing for {owner}/{repo}")

        names = [branch["name"] for branch in branches if isinstance(branch, dict) and branch.get("name")]
        logger.info(f"Found {len(names)} branches for {owner}/{repo}")
        return names

    def archive_url(self, owner: str, repo: str, branch: str) -> str:
        return (
            f"{self.config.GITHUB_ARCHIVE_SCHEME}://{self.config.github_host}"
            f"/{owner}/{repo}/archive/{quote(branch, safe='/')}.zip"
        )

    def fetch_archive(self, owner: str, repo: str, branch: str) -> bytes:
        """Downloads the branch snapshot as zip bytes. Single attempt, no retry."""
        url = self.archive_url(owner, repo, branch)
        logger.info(f"Obtaining application code from {url}")
        headers = {}
        if self.config.GITHUB_TOKEN:
            headers["Authorization"] = f"token {self.config.GITHUB_TOKEN}"
        try:
            response = self.session.get(url, headers=headers, timeout=self.config.HTTP_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.error(f"Unable to obtain data from {url}: {str(e)}")
            raise FetchError(f"Unable to download {url}: {str(e)}", details={"url": url})

        if response.status_code != 200:
            error_message = f"Downloading {url} returned status {response.status_code}"
            logger.error(error_message)
            raise FetchError(error_message, details={"url": url, "status_code": response.status_code})

        logger.info(f"Obtained {len(response.content)} bytes from {url}")
        return response.content
