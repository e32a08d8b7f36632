"""Shared fixtures: environment credentials and a mocked httpx transport."""

import json

import httpx
import pytest

TEST_ENV = {
    "CONNECTORS_ALLOW_WRITES": "true",
    "CONNECTORS_CONTINUE_ON_FAIL": "true",
    "ELASTICSEARCH_BASE_URL": "https://es.example.com:9200",
    "ELASTICSEARCH_USERNAME": "elastic",
    "ELASTICSEARCH_PASSWORD": "test_password",
    "JIRA_DOMAIN": "https://example.atlassian.net",
    "JIRA_EMAIL": "user@example.com",
    "JIRA_API_TOKEN": "test_api_token",
    "JIRA_PASSWORD": "test_password",
    "RAINDROP_ACCESS_TOKEN": "test_access_token",
    "EMELIA_API_KEY": "test_api_key",
}


@pytest.fixture(autouse=True)
def connector_env(monkeypatch):
    """Configure credentials for every connector and enable writes."""
    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("ELASTICSEARCH_IGNORE_SSL_ISSUES", raising=False)


def body_of(request: httpx.Request):
    """Decode the JSON body of a recorded request."""
    return json.loads(request.content) if request.content else None


@pytest.fixture
def httpx_mock(monkeypatch):
    """Mock httpx for testing without making real API calls.

    Responses match on method and URL (without query string) and, when given, on
    the query parameters. A matching response is used once while another
    matching one is queued behind it; the last one keeps answering.
    """
    class MockTransport(httpx.MockTransport):
        def __init__(self):
            self.responses = []
            self.requests = []
            super().__init__(self._handler)

        def _handler(self, request):
            self.requests.append(request)
            matching = [config for config in self.responses if self._matches_request(request, config)]
            if not matching:
                raise Exception(f"No mock configured for {request.method} {request.url}")
            unused = [config for config in matching if not config["used"]]
            config = unused[0] if unused else matching[-1]
            config["used"] = True
            if config["content"] is not None:
                return httpx.Response(status_code=config["status_code"], content=config["content"])
            return httpx.Response(status_code=config["status_code"], json=config["json"])

        def _matches_request(self, request, config):
            if config["method"] and request.method != config["method"]:
                return False
            if str(request.url).split("?")[0] != config["url"]:
                return False
            if config["params"] is None:
                return True
            expected = {key: str(value) for key, value in config["params"].items()}
            return dict(request.url.params) == expected

        def add_response(self, url, json=None, status_code=200, method=None, params=None, content=None):
            self.responses.append({
                "url": url,
                "json": json,
                "status_code": status_code,
                "method": method,
                "params": params,
                "content": content,
                "used": False,
            })

        def requests_to(self, method, url):
            return [
                request for request in self.requests
                if request.method == method and str(request.url).split("?")[0] == url
            ]

    mock = MockTransport()

    original_init = httpx.AsyncClient.__init__
    def patched_init(self, *args, **kwargs):
        kwargs['transport'] = mock
        original_init(self, *args, **kwargs)

    monkeypatch.setattr(httpx.AsyncClient, "__init__", patched_init)
    return mock
