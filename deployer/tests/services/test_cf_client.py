import json
import unittest
from unittest.mock import MagicMock

import requests

from deployer.core.config import Settings
from deployer.core.exceptions import ConfigurationError, PlatformError
from deployer.services.cf_client import CloudFoundryClient

API = "https://api.cf.example.com"
UAA = "https://uaa.cf.example.com"


def fake_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = json.dumps(body).encode() if body is not None else b""
    response.json.return_value = body
    response.text = response.content.decode()
    response.reason = "Error"
    return response


class TestCloudFoundryClient(unittest.TestCase):

    def setUp(self):
        self.config = Settings(
            CF_API_ENDPOINT=API + "/",
            CF_USERNAME="deployer",
            CF_PASSWORD="secret",
            HTTP_TIMEOUT_SECONDS=5
        )
        self.session = MagicMock()
        self.routes = {
            ("GET", f"{API}/v2/info"): fake_response(body={"token_endpoint": UAA}),
            ("POST", f"{UAA}/oauth/token"): fake_response(body={"access_token": "token-1", "expires_in": 3600}),
        }
        self.session.request.side_effect = self._dispatch
        self.client = CloudFoundryClient(self.config, session=self.session)

    def _dispatch(self, method, url, **kwargs):
        return self.routes[(method, url)]

    def _calls(self, method, url):
        return [c for c in self.session.request.call_args_list if c[0] == (method, url)]

    def test_login_uses_password_grant(self):
        self.routes[("GET", f"{API}/v2/apps/app-1/summary")] = fake_response(body={"state": "STARTED"})
        self.assertEqual(self.client.get_app_summary("app-1"), {"state": "STARTED"})

        token_call = self._calls("POST", f"{UAA}/oauth/token")[0]
        self.assertEqual(token_call[1]["data"]["grant_type"], "password")
        self.assertEqual(token_call[1]["auth"], ("cf", ""))
        summary_call = self._calls("GET", f"{API}/v2/apps/app-1/summary")[0]
        self.assertEqual(summary_call[1]["headers"]["Authorization"], "Bearer token-1")
        self.assertEqual(summary_call[1]["timeout"], 5)
        self.assertTrue(summary_call[1]["verify"])

    def test_token_is_reused(self):
        self.routes[("GET", f"{API}/v2/shared_domains")] = fake_response(body={"resources": []})
        self.client.list_shared_domains()
        self.client.list_shared_domains()
        self.assertEqual(len(self._calls("POST", f"{UAA}/oauth/token")), 1)

    def test_get_app_by_name(self):
        self.routes[("GET", f"{API}/v2/apps")] = fake_response(body={"resources": [{"metadata": {"guid": "app-1"}}]})
        self.assertEqual(self.client.get_app_by_name("my-app", "space-1"), "app-1")
        call = self._calls("GET", f"{API}/v2/apps")[0]
        self.assertEqual(call[1]["params"], {"q": "name:my-app;space_guid:space-1"})

    def test_get_app_by_name_missing(self):
        self.routes[("GET", f"{API}/v2/apps")] = fake_response(body={"resources": []})
        self.assertIsNone(self.client.get_app_by_name("my-app", "space-1"))

    def test_get_space(self):
        self.routes[("GET", f"{API}/v2/organizations")] = fake_response(body={"resources": [{"metadata": {"guid": "org-1"}}]})
        self.routes[("GET", f"{API}/v2/organizations/org-1/spaces")] = fake_response(
            body={"resources": [{"metadata": {"guid": "space-1"}, "entity": {"name": "dev"}}]}
        )
        space = self.client.get_space("acme", "dev")
        self.assertEqual((space.guid, space.name), ("space-1", "dev"))

    def test_missing_org(self):
        self.routes[("GET", f"{API}/v2/organizations")] = fake_response(body={"resources": []})
        with self.assertRaises(PlatformError) as ctx:
            self.client.get_space("acme", "dev")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_error_description(self):
        self.routes[("POST", f"{API}/v2/apps")] = fake_response(
            status_code=400, body={"code": 100002, "description": "The app name is taken: my-app"}
        )
        with self.assertRaises(PlatformError) as ctx:
            self.client.create_app({"name": "my-app"})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.description, "The app name is taken: my-app")

    def test_transport_error(self):

        def dispatch(method, url, **kwargs):
            if (method, url) == ("PUT", f"{API}/v2/apps/app-1"):
                raise requests.ConnectionError("connection reset")
            return self._dispatch(method, url, **kwargs)

        self.session.request.side_effect = dispatch
        with self.assertRaises(PlatformError):
            self.client.start_app("app-1")

    def test_start_app_sets_state(self):
        self.routes[("PUT", f"{API}/v2/apps/app-1")] = fake_response(status_code=201, body={"entity": {"state": "STARTED"}})
        self.client.start_app("app-1")
        call = self._calls("PUT", f"{API}/v2/apps/app-1")[0]
        self.assertEqual(call[1]["json"], {"state": "STARTED"})

    def test_associate_route_with_empty_body(self):
        self.routes[("PUT", f"{API}/v2/apps/app-1/routes/route-1")] = fake_response(status_code=201)
        self.assertEqual(self.client.associate_route("app-1", "route-1"), {})

    def test_missing_credentials(self):
        client = CloudFoundryClient(Settings(CF_API_ENDPOINT=API, CF_USERNAME=None, CF_PASSWORD=None), session=self.session)
        with self.assertRaises(ConfigurationError):
            client.list_shared_domains()

    def test_missing_endpoint(self):
        client = CloudFoundryClient(Settings(CF_API_ENDPOINT=None), session=self.session)
        with self.assertRaises(ConfigurationError):
            client.get_app_summary("app-1")
        self.session.request.assert_not_called()


if __name__ == '__main__':
    unittest.main()
