"""Reconciliation pipeline: source chain -> normalize -> dedupe -> window -> aggregate.

The pipeline is idempotent end-to-end:
- Every call starts from a fresh fetch; nothing is cached between calls
- Same backing data and same `now` always produce equal bucket lists
- Source failures never escape: the caller gets (possibly empty) buckets
  plus a diagnostic tag naming the source and outcome

Short-circuit rule for an adapter chain: the first result that is non-empty,
or that comes from an authoritative adapter, ends the chain. Results from
different origins are never merged.
"""

import time
from collections.abc import Sequence
from datetime import datetime

import structlog

from burnout.adapters.errors import ParseError
from burnout.adapters.factory import build_best_effort_chain, build_default_chain
from burnout.adapters.protocol import SourceAdapter
from burnout.domain.aggregation import aggregate, summarize
from burnout.domain.models import (
    BurnoutRecord,
    Granularity,
    RawAssessmentRecord,
    SourceResult,
    SourceUsed,
    TrendResult,
    UserContext,
)
from burnout.domain.normalization import normalize
from burnout.domain.transforms import dedupe_by_day, filter_by_window, window_cutoff
from shared.metrics import (
    pipeline_duration_seconds,
    records_rejected_total,
    trend_requests_total,
)

logger = structlog.get_logger()


async def reconcile(
    chain: Sequence[SourceAdapter], user: UserContext, lookback_days: int
) -> SourceResult:
    """Evaluate adapters in order and return the one result the pass will use."""
    if not chain:
        raise ValueError("adapter chain must not be empty")

    result: SourceResult | None = None
    for adapter in chain:
        result = await adapter.fetch(user, lookback_days)
        if result.records or adapter.authoritative:
            return result
    return result


def normalize_records(
    raws: Sequence[RawAssessmentRecord],
) -> tuple[list[BurnoutRecord], int]:
    """Normalize each raw record, dropping the ones that cannot be parsed."""
    records: list[BurnoutRecord] = []
    rejected = 0
    for raw in raws:
        try:
            records.append(normalize(raw))
        except ParseError as exc:
            rejected += 1
            records_rejected_total.labels(origin=raw.origin.value).inc()
            logger.warning(
                "record_rejected",
                origin=raw.origin.value,
                shape=raw.shape.value,
                reason=exc.detail,
            )
    return records, rejected


def prepare_records(
    raws: Sequence[RawAssessmentRecord],
    lookback_days: int,
    now: datetime | None = None,
) -> tuple[list[BurnoutRecord], int]:
    """Normalize, dedupe by day, and apply the lookback window."""
    records, rejected = normalize_records(raws)
    return filter_by_window(dedupe_by_day(records), lookback_days, now), rejected


async def _run(
    chain: Sequence[SourceAdapter],
    user: UserContext,
    lookback_days: int,
    granularity: Granularity | str,
    now: datetime | None,
) -> tuple[TrendResult, list[BurnoutRecord]]:
    granularity = Granularity(granularity)
    window_cutoff(lookback_days, now)  # reject bad windows before any I/O
    start_time = time.monotonic()

    result = await reconcile(chain, user, lookback_days)
    records, rejected = prepare_records(result.records, lookback_days, now)
    source_used = SourceUsed.from_result(result)

    trend = TrendResult(
        buckets=aggregate(records, granularity),
        source_used=source_used,
        summary=summarize(records),
        records_considered=len(records),
        records_rejected=rejected,
    )

    trend_requests_total.labels(source_used=source_used.label).inc()
    pipeline_duration_seconds.labels(granularity=granularity.value).observe(
        time.monotonic() - start_time
    )
    logger.info(
        "trend_reconciled",
        source_used=source_used.label,
        lookback_days=lookback_days,
        granularity=granularity.value,
        buckets=len(trend.buckets),
        records_considered=len(records),
        records_rejected=rejected,
    )
    return trend, records


async def get_trend(
    user: UserContext,
    lookback_days: int,
    granularity: Granularity | str = Granularity.DAILY,
    *,
    now: datetime | None = None,
    adapters: Sequence[SourceAdapter] | None = None,
) -> TrendResult:
    """Default query path: remote store when signed in, device cache otherwise."""
    chain = adapters if adapters is not None else build_default_chain(user)
    trend, _ = await _run(chain, user, lookback_days, granularity, now)
    return trend


async def get_best_effort_trend(
    user: UserContext,
    lookback_days: int,
    granularity: Granularity | str = Granularity.DAILY,
    *,
    now: datetime | None = None,
    adapters: Sequence[SourceAdapter] | None = None,
) -> TrendResult:
    """Explicit best-effort path: approximate records derived from reflection history."""
    chain = adapters if adapters is not None else build_best_effort_chain()
    trend, _ = await _run(chain, user, lookback_days, granularity, now)
    return trend


async def get_window_records(
    user: UserContext,
    lookback_days: int,
    *,
    now: datetime | None = None,
    adapters: Sequence[SourceAdapter] | None = None,
) -> tuple[list[BurnoutRecord], SourceUsed]:
    """Canonical records behind the default trend, for summary and prediction views."""
    chain = adapters if adapters is not None else build_default_chain(user)
    trend, records = await _run(chain, user, lookback_days, Granularity.DAILY, now)
    return records, trend.source_used
