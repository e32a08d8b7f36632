"""Outbound HTTP helpers shared by the connectors."""

import base64
import logging
from typing import Any

import httpx

from .config import Settings
from .errors import DataShapeError

logger = logging.getLogger(__name__)

USER_AGENT = "workflow-connectors-mcp"


def basic_auth_header(username: str, secret: str) -> str:
    """Create the value of a Basic Authorization header."""
    credentials = f"{username}:{secret}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def default_headers(**extra: str) -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    headers.update(extra)
    return headers


async def api_request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    files: dict[str, Any] | None = None,
    verify: bool = True,
    timeout: float | None = None,
    raw: bool = False,
) -> Any:
    """Make a request and return the decoded JSON (or the raw bytes when ``raw``).

    Non-2xx responses raise :class:`httpx.HTTPStatusError`; nothing is retried.
    """
    if timeout is None:
        timeout = Settings.from_env().timeout
    logger.debug("%s %s params=%s", method, url, params)
    async with httpx.AsyncClient(verify=verify) as client:
        response = await client.request(
            method=method,
            url=url,
            headers=headers or default_headers(),
            params=_query(params),
            json=json_body,
            files=files,
            timeout=timeout,
        )
        response.raise_for_status()
    if raw:
        return response.content
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise DataShapeError(f"{method} {url} returned a non-JSON body") from e


def _query(params: dict[str, Any] | None) -> dict[str, Any] | None:
    """Render booleans the way REST APIs expect them (``true``/``false``)."""
    if not params:
        return None
    return {
        key: ("true" if value else "false") if isinstance(value, bool) else value
        for key, value in params.items()
    }


def error_message(error: httpx.HTTPStatusError) -> str:
    """Pull the most useful message out of an HTTP error response."""
    message = f"{error.response.status_code}"
    try:
        detail = error.response.json()
    except ValueError:
        return f"{message} - {error.response.text}"
    if isinstance(detail, dict):
        for key in ("message", "errorMessages", "error", "errorMessage"):
            if detail.get(key):
                value = detail[key]
                if isinstance(value, list):
                    value = "; ".join(str(entry) for entry in value)
                elif isinstance(value, dict):
                    value = value.get("reason") or value.get("type") or str(value)
                return f"{message} - {value}"
    return f"{message} - {detail}"
