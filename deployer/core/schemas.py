from pydantic import BaseModel, Field
from typing import List, Optional, Literal, Dict, Any


class DeploymentRequest(BaseModel):
    """A fully resolved request: every field is known before the pipeline runs."""
    app_name: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    url: str = Field(min_length=1, description="Repository reference as the user supplied it.")

    @property
    def base_url(self) -> str:
        return f"{self.owner}/{self.repo}"


class Descriptor(BaseModel):
    """
    Normalized view of applications[0] in manifest.yml.
    A field left as None means the platform default applies.
    """
    memory: Optional[int] = None
    disk_quota: Optional[int] = None
    instances: Optional[int] = None
    env: Optional[Dict[str, Any]] = None
    domain: Optional[str] = None
    host: Optional[str] = None
    buildpack: Optional[str] = None
    command: Optional[str] = None

    def app_options(self) -> Dict[str, Any]:
        """Create-app options in Cloud Foundry field names."""
        options = {
            "memory": self.memory,
            "disk_quota": self.disk_quota,
            "instances": self.instances,
            "environment_json": self.env,
            "buildpack": self.buildpack,
            "command": self.command,
        }
        return {key: value for key, value in options.items() if value is not None}


class Space(BaseModel):
    guid: str
    name: str


class ApplicationRecord(BaseModel):
    guid: str
    name: str
    space_guid: str
    existing: bool = False

    model_config = {'frozen': True}


class Route(BaseModel):
    guid: str
    host: str
    domain_guid: str


class DeploymentOutcome(BaseModel):
    state: Literal['started', 'unknown', 'failed']
    url: str = ""
    error: Optional[str] = None


# --- HTTP API models ---

class DeployCommandRequest(BaseModel):
    text: Optional[str] = Field(
        default=None,
        description="Arguments of a 'deploy' command, e.g. 'my-app owner/repo'. Empty for a bare 'deploy'."
    )
    app_name: Optional[str] = Field(default=None, description="Application name from an already parsed intent.")
    url: Optional[str] = Field(default=None, description="Repository reference from an already parsed intent.")
    responses: List[str] = Field(
        default_factory=list,
        description="Answers to the clarification prompts, consumed in order."
    )

    def is_intent(self) -> bool:
        return self.text is None and (self.app_name is not None or self.url is not None)


class DeployCommandResponse(BaseModel):
    status: Literal['starting', 'failed', 'declined', 'help']
    messages: List[str] = []
    request: Optional[DeploymentRequest] = None
    app_guid: Optional[str] = None
    error: Optional[str] = None
