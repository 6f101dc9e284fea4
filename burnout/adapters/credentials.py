"""Bearer credential discovery for remote store reads.

Two strategies, in order:
1. The cached access token already held on the user context
2. A live refresh-token exchange against the auth endpoint, bounded by
   credential_timeout_seconds

If neither yields a token the caller gets AuthError and no store request is made.
"""

import asyncio

import httpx
import structlog

from burnout.adapters.errors import AuthError, SourceError
from burnout.adapters.http_client import fetch_json
from burnout.domain.models import UserContext
from shared.config import settings

logger = structlog.get_logger()


async def _exchange_refresh_token(client: httpx.AsyncClient, refresh_token: str) -> str | None:
    url = f"{settings.remote_base_url.rstrip('/')}/auth/v1/token"
    body = await fetch_json(
        client,
        "POST",
        url,
        params={"grant_type": "refresh_token"},
        headers={"apikey": settings.remote_api_key},
        json={"refresh_token": refresh_token},
    )
    if isinstance(body, dict):
        token = body.get("access_token")
        if isinstance(token, str) and token:
            return token
    return None


async def resolve_access_token(user: UserContext, client: httpx.AsyncClient) -> str:
    """Return a bearer token for the user or raise AuthError."""
    if user.access_token:
        return user.access_token

    if user.refresh_token and settings.remote_base_url:
        try:
            token = await asyncio.wait_for(
                _exchange_refresh_token(client, user.refresh_token),
                timeout=settings.credential_timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "credential_discovery_failed",
                strategy="refresh_token",
                reason="timeout",
                timeout_seconds=settings.credential_timeout_seconds,
            )
            token = None
        except SourceError as exc:
            logger.warning(
                "credential_discovery_failed",
                strategy="refresh_token",
                reason=exc.reason.value,
                detail=exc.detail,
            )
            token = None
        if token:
            return token

    raise AuthError("no bearer credential resolvable for remote store")
