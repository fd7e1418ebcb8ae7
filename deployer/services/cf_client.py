import pathlib
import time
from typing import Any, Dict, List, Optional

import requests

from deployer.core.config import Settings, settings as default_settings
from deployer.core.exceptions import ConfigurationError, PlatformError
from deployer.core.logging_config import get_logger
from deployer.core.schemas import Space

logger = get_logger(__name__)

# UAA's public client used by the cf CLI
UAA_CLIENT_ID = "cf"
UAA_CLIENT_SECRET = ""


class CloudFoundryClient:
    """
    Thin client for the Cloud Foundry v2 REST API.

    Each method performs exactly one API call (plus a login when no valid
    token is held) and raises PlatformError on transport failure or a
    non-2xx response.
    """

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.session = session or requests.Session()
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @property
    def api_endpoint(self) -> str:
        if not self.config.CF_API_ENDPOINT:
            raise ConfigurationError("CF_API_ENDPOINT is not configured.")
        return self.config.CF_API_ENDPOINT.rstrip('/')

    def _verify(self) -> bool:
        return not self.config.CF_SKIP_SSL_VALIDATION

    def _login(self) -> None:
        if not self.config.CF_USERNAME or not self.config.CF_PASSWORD:
            raise ConfigurationError("CF_USERNAME and CF_PASSWORD must be configured.")

        info = self._send("GET", f"{self.api_endpoint}/v2/info", authenticated=False)
        token_endpoint = info.get("token_endpoint") or info.get("authorization_endpoint")
        if not token_endpoint:
            raise PlatformError("Cloud Foundry info does not advertise a token endpoint.")

        logger.info(f"Authenticating user {self.config.CF_USERNAME} against {token_endpoint}")
        token = self._send(
            "POST",
            f"{token_endpoint.rstrip('/')}/oauth/token",
            authenticated=False,
            data={
                "grant_type": "password",
                "username": self.config.CF_USERNAME,
                "password": self.config.CF_PASSWORD,
            },
            auth=(UAA_CLIENT_ID, UAA_CLIENT_SECRET),
        )
        if not token.get("access_token"):
            raise PlatformError("Authentication response did not include an access token.")
        self._access_token = token["access_token"]
        # Renew a little early so a token never expires mid-request
        self._token_expires_at = time.time() + float(token.get("expires_in", 600)) - 30

    def _auth_headers(self) -> Dict[str, str]:
        if not self._access_token or time.time() >= self._token_expires_at:
            self._login()
        return {"Authorization": f"Bearer {self._access_token}"}

    def _send(self, method: str, url: str, authenticated: bool = True, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if authenticated:
            headers.update(self._auth_headers())
        try:
            response = self.session.request(
                method, url,
                headers=headers,
                timeout=self.config.HTTP_TIMEOUT_SECONDS,
                verify=self._verify(),
                **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"Cloud Foundry request {method} {url} failed: {str(e)}")
            raise PlatformError(f"{method} {url} failed: {str(e)}")

        if response.status_code >= 300:
            description = _error_description(response)
            logger.error(f"Cloud Foundry request {method} {url} returned {response.status_code}: {description}")
            raise PlatformError(
                f"{method} {url} returned status {response.status_code}: {description}",
                status_code=response.status_code,
                description=description,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    def _api(self, method: str, path: str, **kwargs) -> Any:
        return self._send(method, f"{self.api_endpoint}{path}", **kwargs)

    # --- Spaces ---

    def get_space(self, org_name: str, space_name: str) -> Space:
        """Resolves the target space by organization and space name."""
        orgs = self._api("GET", "/v2/organizations", params={"q": f"name:{org_name}"})
        resources = orgs.get("resources") or []
        if not resources:
            raise PlatformError(f"Organization '{org_name}' was not found.", status_code=404)
        org_guid = resources[0]["metadata"]["guid"]

        spaces = self._api("GET", f"/v2/organizations/{org_guid}/spaces", params={"q": f"name:{space_name}"})
        resources = spaces.get("resources") or []
        if not resources:
            raise PlatformError(f"Space '{space_name}' was not found in organization '{org_name}'.", status_code=404)
        space = resources[0]
        return Space(guid=space["metadata"]["guid"], name=space["entity"].get("name", space_name))

    # --- Apps ---

    def get_app_by_name(self, name: str, space_guid: str) -> Optional[str]:
        """Returns the guid of the named app in the space, or None."""
        result = self._api("GET", "/v2/apps", params={"q": f"name:{name};space_guid:{space_guid}"})
        resources = result.get("resources") or []
        if not resources:
            return None
        return resources[0]["metadata"]["guid"]

    def create_app(self, options: Dict[str, Any]) -> Dict[str, Any]:
        return self._api("POST", "/v2/apps", json=options)

    def upload_bits(self, app_guid: str, package_path: pathlib.Path) -> Dict[str, Any]:
        """Uploads the zip synchronously (async=false): returns once the platform accepted the bits."""
        with open(package_path, 'rb') as package_file:
            return self._api(
                "PUT",
                f"/v2/apps/{app_guid}/bits",
                params={"async": "false"},
                data={"resources": "[]"},
                files={"application": (pathlib.Path(package_path).name, package_file, "application/zip")},
            )

    def start_app(self, app_guid: str) -> Dict[str, Any]:
        return self._api("PUT", f"/v2/apps/{app_guid}", json={"state": "STARTED"})

    def get_app_summary(self, app_guid: str) -> Dict[str, Any]:
        return self._api("GET", f"/v2/apps/{app_guid}/summary")

    # --- Domains and routes ---

    def list_shared_domains(self) -> List[Dict[str, Any]]:
        return self._api("GET", "/v2/shared_domains").get("resources") or []

    def list_routes(self, host: str, domain_guid: str) -> List[Dict[str, Any]]:
        result = self._api("GET", "/v2/routes", params={"q": f"host:{host};domain_guid:{domain_guid}"})
        return result.get("resources") or []

    def create_route(self, host: str, domain_guid: str, space_guid: str) -> Dict[str, Any]:
        return self._api("POST", "/v2/routes", json={
            "host": host,
            "domain_guid": domain_guid,
            "space_guid": space_guid,
        })

    def associate_route(self, app_guid: str, route_guid: str) -> Dict[str, Any]:
        return self._api("PUT", f"/v2/apps/{app_guid}/routes/{route_guid}")


def _error_description(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "unknown error"
    if isinstance(body, dict):
        return body.get("description") or body.get("error_description") or body.get("error") or str(body)
    return str(body)
