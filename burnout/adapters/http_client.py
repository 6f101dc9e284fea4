"""HTTP helpers for PostgREST-style remote store calls.

Error policy:
- No automatic retry: a failed fetch is "no data this cycle"
- 401 -> AuthError, 403 -> SourcePermissionError
- 404 and PostgREST missing-relation/column codes -> SchemaError
- Timeouts -> SourceTimeoutError; any other transport or HTTP failure -> SourceError
"""

import httpx
import structlog

from burnout.adapters.errors import (
    AuthError,
    SchemaError,
    SourceError,
    SourcePermissionError,
    SourceTimeoutError,
)
from shared.config import settings

logger = structlog.get_logger()

# PostgREST schema-cache miss, Postgres undefined_table, undefined_column
SCHEMA_ERROR_CODES = {"PGRST205", "42P01", "42703"}


def rest_headers(access_token: str) -> dict[str, str]:
    """Headers for an authenticated PostgREST request."""
    return {
        "apikey": settings.remote_api_key,
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    return str(body.get("code", "")) if isinstance(body, dict) else ""


def raise_for_source_status(response: httpx.Response) -> None:
    """Translate an error response into the source error taxonomy."""
    if response.status_code < 400:
        return

    detail = f"HTTP {response.status_code}: {response.text[:200]}"
    code = _error_code(response)
    if code in SCHEMA_ERROR_CODES or response.status_code == 404:
        raise SchemaError(detail)
    if response.status_code == 401:
        raise AuthError(detail)
    if response.status_code == 403:
        raise SourcePermissionError(detail)
    raise SourceError(detail)


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> object:
    """Make one HTTP request and return the decoded JSON body."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise SourceTimeoutError(f"{method} {url} timed out") from exc
    except httpx.HTTPError as exc:
        raise SourceError(f"{method} {url} failed: {exc}") from exc

    raise_for_source_status(response)

    try:
        return response.json()
    except ValueError as exc:
        raise SourceError(f"{method} {url} returned a non-JSON body") from exc


def new_client() -> httpx.AsyncClient:
    """Client bounded by the configured fetch timeout."""
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.fetch_timeout_seconds))
