"""Roll canonical records up into daily, weekly, or monthly buckets.

Bucket rules:
- daily: one bucket per record, ascending by date
- weekly: walk records in timestamp order; a new bucket starts when a record
  is more than 7 days after the current bucket's anchor (first) record.
  Buckets follow the data, not calendar weeks.
- monthly: one bucket per (year, month) of the record timestamp, keyed on
  the first day of that month

Within a bucket: mean total_score (2 decimals), modal risk_level with ties
going to the level seen first while walking the bucket, member count.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import timedelta
from statistics import fmean

from burnout.domain.models import (
    AggregatedBucket,
    BurnoutRecord,
    Granularity,
    TrendSummary,
)

WEEKLY_GAP = timedelta(days=7)
_PREDICTION_WINDOW = 3
_TREND_WEIGHT = 0.2


def _chronological(records: Iterable[BurnoutRecord]) -> list[BurnoutRecord]:
    return sorted(records, key=lambda r: (r.timestamp, r.date))


def _bucket(period_key: str, members: Sequence[BurnoutRecord]) -> AggregatedBucket:
    risk_counts = Counter(member.risk_level for member in members)
    return AggregatedBucket(
        period_key=period_key,
        total_score=round(fmean(member.total_score for member in members), 2),
        risk_level=risk_counts.most_common(1)[0][0],
        count=len(members),
    )


def _daily(records: Iterable[BurnoutRecord]) -> list[AggregatedBucket]:
    ordered = sorted(records, key=lambda r: (r.date, r.timestamp))
    return [_bucket(record.date.isoformat(), [record]) for record in ordered]


def _weekly(records: Iterable[BurnoutRecord]) -> list[AggregatedBucket]:
    groups: list[list[BurnoutRecord]] = []
    for record in _chronological(records):
        if groups and record.timestamp - groups[-1][0].timestamp <= WEEKLY_GAP:
            groups[-1].append(record)
        else:
            groups.append([record])
    return [_bucket(group[0].date.isoformat(), group) for group in groups]


def _monthly(records: Iterable[BurnoutRecord]) -> list[AggregatedBucket]:
    groups: dict[tuple[int, int], list[BurnoutRecord]] = {}
    for record in _chronological(records):
        key = (record.timestamp.year, record.timestamp.month)
        groups.setdefault(key, []).append(record)
    return [
        _bucket(f"{year:04d}-{month:02d}-01", members)
        for (year, month), members in groups.items()
    ]


_AGGREGATORS = {
    Granularity.DAILY: _daily,
    Granularity.WEEKLY: _weekly,
    Granularity.MONTHLY: _monthly,
}


def aggregate(
    records: Iterable[BurnoutRecord], granularity: Granularity | str
) -> list[AggregatedBucket]:
    """Aggregate records into buckets ordered ascending by period_key."""
    buckets = _AGGREGATORS[Granularity(granularity)](records)
    return sorted(buckets, key=lambda b: b.period_key)


def summarize(records: Iterable[BurnoutRecord]) -> TrendSummary:
    """Average and latest reading over a window of (deduplicated) records."""
    ordered = sorted(records, key=lambda r: (r.date, r.timestamp))
    if not ordered:
        return TrendSummary(record_count=0)
    latest = ordered[-1]
    return TrendSummary(
        record_count=len(ordered),
        average_score=round(fmean(r.total_score for r in ordered), 2),
        latest_score=latest.total_score,
        latest_risk_level=latest.risk_level,
        latest_date=latest.date,
    )


def predict_next_score(records: Iterable[BurnoutRecord]) -> float | None:
    """Moving-average estimate of today's score from the most recent days.

    Mean of the three most recent daily scores, nudged by 20% of the latest
    day-over-day change. None with fewer than three records.
    """
    recent = sorted(records, key=lambda r: (r.date, r.timestamp), reverse=True)
    if len(recent) < _PREDICTION_WINDOW:
        return None
    average = fmean(r.total_score for r in recent[:_PREDICTION_WINDOW])
    direction = recent[0].total_score - recent[1].total_score
    return round(min(max(average + direction * _TREND_WEIGHT, 0.0), 10.0), 1)
