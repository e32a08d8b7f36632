"""Environment-driven configuration and credentials.

Values are read from the process environment (and a ``.env`` file, if present)
each time they are requested so that a long-running server picks up the
environment it was started with and tests can patch it freely.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import CredentialsError

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _require(*names: str) -> None:
    missing = [name for name in names if not os.getenv(name)]
    if missing:
        raise CredentialsError(f"{' and '.join(missing)} must be set in environment")


@dataclass(frozen=True)
class Settings:
    allow_writes: bool = False
    continue_on_fail: bool = True
    timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            allow_writes=_flag("CONNECTORS_ALLOW_WRITES", "false"),
            continue_on_fail=_flag("CONNECTORS_CONTINUE_ON_FAIL", "true"),
            timeout=float(os.getenv("CONNECTORS_HTTP_TIMEOUT", "30")),
            log_level=os.getenv("CONNECTORS_LOG_LEVEL", "INFO").upper(),
        )


@dataclass(frozen=True)
class ElasticsearchCredentials:
    base_url: str
    username: str
    password: str
    ignore_ssl_issues: bool = False

    @classmethod
    def from_env(cls) -> "ElasticsearchCredentials":
        _require("ELASTICSEARCH_BASE_URL", "ELASTICSEARCH_USERNAME", "ELASTICSEARCH_PASSWORD")
        return cls(
            base_url=os.environ["ELASTICSEARCH_BASE_URL"].rstrip("/"),
            username=os.environ["ELASTICSEARCH_USERNAME"],
            password=os.environ["ELASTICSEARCH_PASSWORD"],
            ignore_ssl_issues=_flag("ELASTICSEARCH_IGNORE_SSL_ISSUES", "false"),
        )


@dataclass(frozen=True)
class JiraCredentials:
    """Jira Cloud authenticates with an API token, Jira Server with a password."""

    domain: str
    email: str
    api_token: str | None = None
    password: str | None = None

    @classmethod
    def from_env(cls) -> "JiraCredentials":
        _require("JIRA_DOMAIN", "JIRA_EMAIL")
        if not os.getenv("JIRA_API_TOKEN") and not os.getenv("JIRA_PASSWORD"):
            raise CredentialsError("JIRA_API_TOKEN or JIRA_PASSWORD must be set in environment")
        return cls(
            domain=os.environ["JIRA_DOMAIN"].rstrip("/"),
            email=os.environ["JIRA_EMAIL"],
            api_token=os.getenv("JIRA_API_TOKEN") or None,
            password=os.getenv("JIRA_PASSWORD") or None,
        )


@dataclass(frozen=True)
class RaindropCredentials:
    access_token: str

    @classmethod
    def from_env(cls) -> "RaindropCredentials":
        _require("RAINDROP_ACCESS_TOKEN")
        return cls(access_token=os.environ["RAINDROP_ACCESS_TOKEN"])


@dataclass(frozen=True)
class EmeliaCredentials:
    api_key: str

    @classmethod
    def from_env(cls) -> "EmeliaCredentials":
        _require("EMELIA_API_KEY")
        return cls(api_key=os.environ["EMELIA_API_KEY"])
