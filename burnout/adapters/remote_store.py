"""Remote store adapter: reads burnout_assessments rows over PostgREST.

Query contract: user_id = caller, assessment_date >= today - lookback,
ordered by assessment_date descending, capped at remote_row_limit rows,
all columns. Requires a bearer credential (see credentials.py).
"""

from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

import httpx

from burnout.adapters.credentials import resolve_access_token
from burnout.adapters.errors import SourceError
from burnout.adapters.http_client import fetch_json, new_client, rest_headers
from burnout.adapters.protocol import guard_fetch
from burnout.domain.models import SourceOrigin, SourceResult, UserContext
from shared.config import settings


def rows_from_body(body: object, table: str) -> list[dict[str, Any]]:
    """PostgREST returns a JSON array of row objects."""
    if not isinstance(body, list):
        raise SourceError(f"{table}: expected a JSON array of rows")
    return [row for row in body if isinstance(row, dict)]


class RemoteStoreAdapter:
    """Authoritative adapter over the hosted assessments table."""

    origin = SourceOrigin.REMOTE
    authoritative = True

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._today = today

    def query_params(self, user_id: str, lookback_days: int) -> dict[str, str]:
        cutoff = self._today() - timedelta(days=lookback_days)
        return {
            "user_id": f"eq.{user_id}",
            "assessment_date": f"gte.{cutoff.isoformat()}",
            "order": "assessment_date.desc",
            "limit": str(settings.remote_row_limit),
            "select": "*",
        }

    async def fetch(self, user: UserContext, lookback_days: int) -> SourceResult:
        return await guard_fetch(self.origin, lambda: self._fetch_rows(user, lookback_days))

    async def _fetch_rows(self, user: UserContext, lookback_days: int) -> list[dict[str, Any]]:
        if not settings.remote_base_url:
            raise SourceError("remote store is not configured")
        if self._client is not None:
            return await self._query(self._client, user, lookback_days)
        async with new_client() as client:
            return await self._query(client, user, lookback_days)

    async def _query(
        self, client: httpx.AsyncClient, user: UserContext, lookback_days: int
    ) -> list[dict[str, Any]]:
        token = await resolve_access_token(user, client)
        table = settings.assessments_table
        url = f"{settings.remote_base_url.rstrip('/')}/rest/v1/{table}"
        body = await fetch_json(
            client,
            "GET",
            url,
            headers=rest_headers(token),
            params=self.query_params(user.user_id or "", lookback_days),
        )
        return rows_from_body(body, table)
