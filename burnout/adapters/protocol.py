"""Adapter protocol for burnout assessment sources.

Remote, device-local and derivation adapters implement this interface.
The façade depends only on the protocol, never on concrete adapters.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import structlog

from burnout.adapters.errors import SourceError
from burnout.domain.models import (
    FailureReason,
    RawAssessmentRecord,
    RawShape,
    SourceOrigin,
    SourceResult,
    UserContext,
)
from shared.metrics import source_fetch_duration_seconds, source_fetch_total

logger = structlog.get_logger()

_BLOB_FIELD = "symptoms"
_COLUMN_FIELDS = (
    "energy_tank",
    "recovery_speed",
    "emotional_leakage",
    "performance_signal",
    "tomorrow_readiness",
    "energyTank",
    "recoverySpeed",
    "emotionalLeakage",
    "performanceSignal",
    "tomorrowReadiness",
)


@runtime_checkable
class SourceAdapter(Protocol):
    """Common interface for all burnout record sources."""

    origin: SourceOrigin
    # An authoritative result (even empty or failed) ends reconciliation.
    authoritative: bool

    async def fetch(self, user: UserContext, lookback_days: int) -> SourceResult:
        """Fetch raw records for the user within the lookback window.

        Never raises: failures come back as an empty SourceResult with
        `failure` set.
        """
        ...


def classify_shape(payload: dict[str, Any]) -> RawShape:
    """Assign the raw-shape discriminator once, where records enter the system."""
    if any(payload.get(name) is not None for name in _COLUMN_FIELDS):
        return RawShape.COLUMNAR
    if payload.get(_BLOB_FIELD) not in (None, "", {}):
        return RawShape.BLOB
    return RawShape.MINIMAL


async def guard_fetch(
    origin: SourceOrigin,
    fetch_rows: Callable[[], Awaitable[list[dict[str, Any]]]],
) -> SourceResult:
    """Run one adapter fetch and convert it to a SourceResult at the adapter boundary.

    SourceErrors become an empty result tagged with their reason. Unexpected
    exceptions are logged with a traceback and tagged generic.
    """
    start_time = time.monotonic()
    try:
        rows = await fetch_rows()
    except SourceError as exc:
        source_fetch_total.labels(origin=origin.value, outcome=exc.reason.value).inc()
        logger.warning(
            "source_fetch_failed",
            origin=origin.value,
            reason=exc.reason.value,
            detail=exc.detail,
        )
        return SourceResult(origin=origin, failure=exc.reason)
    except Exception:
        source_fetch_total.labels(origin=origin.value, outcome=FailureReason.GENERIC.value).inc()
        logger.exception("source_fetch_crashed", origin=origin.value)
        return SourceResult(origin=origin, failure=FailureReason.GENERIC)
    finally:
        source_fetch_duration_seconds.labels(origin=origin.value).observe(
            time.monotonic() - start_time
        )

    records = [
        RawAssessmentRecord(shape=classify_shape(row), origin=origin, payload=row)
        for row in rows
    ]
    outcome = "ok" if records else "empty"
    source_fetch_total.labels(origin=origin.value, outcome=outcome).inc()
    logger.info("source_fetch_completed", origin=origin.value, records=len(records))
    return SourceResult(origin=origin, records=records)
