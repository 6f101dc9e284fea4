"""FastAPI router for the burnout trend domain.

Endpoints:
- GET /api/v1/burnout/trend               (default chain: remote or device cache)
- GET /api/v1/burnout/trend/best-effort   (derived from reflection history)
- GET /api/v1/burnout/prediction          (today's estimated score)

Identity headers: X-User-ID, Authorization: Bearer <token>, X-Refresh-Token.
Source problems never produce an error status: they come back as empty data
with meta.source_used naming the failure.
"""

import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, Query

from burnout.domain.aggregation import predict_next_score, summarize
from burnout.domain.models import (
    Granularity,
    LookbackPreset,
    SourceUsed,
    TrendResult,
    UserContext,
)
from burnout.pipeline import get_best_effort_trend, get_trend, get_window_records
from shared.config import settings
from shared.exceptions import InvalidGranularityError, InvalidLookbackError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var

router = APIRouter(prefix="/api/v1")

_PREDICTION_LOOKBACK_DAYS = 7


# --- Dependencies ---


def get_user_context(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    authorization: str | None = Header(None),
    x_refresh_token: str | None = Header(None, alias="X-Refresh-Token"),
) -> UserContext:
    """Build the caller's UserContext from request headers."""
    access_token = None
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            access_token = token.strip()
    return UserContext(
        user_id=x_user_id or None,
        access_token=access_token,
        refresh_token=x_refresh_token or None,
    )


def parse_lookback(lookback: str | None) -> int:
    """Accept a preset name (week, month, quarter) or a positive day count."""
    if lookback is None:
        return settings.default_lookback_days
    allowed = {preset.value for preset in LookbackPreset}
    if lookback in allowed:
        return LookbackPreset(lookback).days
    if lookback.isdecimal() and 0 < int(lookback) <= settings.max_lookback_days:
        return int(lookback)
    raise InvalidLookbackError(lookback, allowed)


def parse_granularity(granularity: str) -> Granularity:
    allowed = {g.value for g in Granularity}
    if granularity not in allowed:
        raise InvalidGranularityError(granularity, allowed)
    return Granularity(granularity)


# --- Response helpers ---


def _meta(source_used: SourceUsed | None = None, **extra: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }
    if source_used is not None:
        meta["source_used"] = source_used.label
        meta["source"] = source_used.model_dump(mode="json")
    meta.update(extra)
    return meta


def _trend_response(trend: TrendResult, lookback_days: int, granularity: Granularity) -> dict:
    return {
        "data": [bucket.model_dump(mode="json") for bucket in trend.buckets],
        "meta": _meta(
            trend.source_used,
            lookback_days=lookback_days,
            granularity=granularity.value,
            records_considered=trend.records_considered,
            records_rejected=trend.records_rejected,
            summary=trend.summary.model_dump(mode="json"),
        ),
    }


async def _serve_trend(
    endpoint: str,
    query: Callable[..., Awaitable[TrendResult]],
    user: UserContext,
    lookback: str | None,
    granularity: str,
) -> dict:
    start_time = time.monotonic()
    lookback_days = parse_lookback(lookback)
    parsed_granularity = parse_granularity(granularity)

    trend = await query(user, lookback_days, parsed_granularity)

    duration = time.monotonic() - start_time
    api_requests_total.labels(endpoint=endpoint, method="GET", status_code="200").inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(duration)
    return _trend_response(trend, lookback_days, parsed_granularity)


# --- Endpoints ---


@router.get("/burnout/trend")
async def burnout_trend(
    user: UserContext = Depends(get_user_context),
    lookback: str | None = Query(None, description="week | month | quarter | <days>"),
    granularity: str = Query("daily", description="daily | weekly | monthly"),
):
    """Reconciled burnout trend buckets, ascending by period_key.

    Signed-in callers read the remote store only; an empty or failed remote
    read yields empty data, never cached device data. Anonymous callers read
    the device cache.
    """
    return await _serve_trend("trend", get_trend, user, lookback, granularity)


@router.get("/burnout/trend/best-effort")
async def burnout_trend_best_effort(
    user: UserContext = Depends(get_user_context),
    lookback: str | None = Query(None),
    granularity: str = Query("daily"),
):
    """Approximate trend derived from reflection history."""
    return await _serve_trend(
        "trend_best_effort", get_best_effort_trend, user, lookback, granularity
    )


@router.get("/burnout/prediction")
async def burnout_prediction(user: UserContext = Depends(get_user_context)):
    """Estimate today's score from the last week of assessments."""
    start_time = time.monotonic()
    records, source_used = await get_window_records(user, _PREDICTION_LOOKBACK_DAYS)
    data = {
        "predicted_score": predict_next_score(records),
        "summary": summarize(records).model_dump(mode="json"),
    }

    duration = time.monotonic() - start_time
    api_requests_total.labels(endpoint="prediction", method="GET", status_code="200").inc()
    api_response_duration_seconds.labels(endpoint="prediction").observe(duration)
    return {"data": data, "meta": _meta(source_used, lookback_days=_PREDICTION_LOOKBACK_DAYS)}
