"""Same-day deduplication and rolling-window filtering for canonical records."""

from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta

from burnout.domain.models import BurnoutRecord


def dedupe_by_day(records: Iterable[BurnoutRecord]) -> list[BurnoutRecord]:
    """Keep the most recent record for each calendar day.

    Single pass. A record displaces the current winner for its date only if
    its timestamp is strictly greater, so among exact ties the first seen
    survives. Output order follows first appearance of each date; callers
    re-sort as needed.
    """
    winners: dict[date, BurnoutRecord] = {}
    for record in records:
        current = winners.get(record.date)
        if current is None or record.timestamp > current.timestamp:
            winners[record.date] = record
    return list(winners.values())


def window_cutoff(lookback_days: int, now: datetime | None = None) -> datetime:
    if lookback_days <= 0:
        raise ValueError(f"lookback_days must be positive, got {lookback_days}")
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now - timedelta(days=lookback_days)


def filter_by_window(
    records: Iterable[BurnoutRecord],
    lookback_days: int,
    now: datetime | None = None,
) -> list[BurnoutRecord]:
    """Drop records captured before now - lookback_days. Order-preserving."""
    cutoff = window_cutoff(lookback_days, now)
    return [record for record in records if record.timestamp >= cutoff]
