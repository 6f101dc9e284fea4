"""Tests for the reconciliation pipeline (unit-level, stub adapters, no network)."""

import json

import pytest

from burnout.adapters.device_local import DeviceLocalAdapter
from burnout.adapters.protocol import classify_shape
from burnout.domain.models import (
    FailureReason,
    Granularity,
    RawAssessmentRecord,
    SourceOrigin,
    SourceResult,
    UserContext,
)
from burnout.pipeline import (
    get_best_effort_trend,
    get_trend,
    get_window_records,
    normalize_records,
    reconcile,
)
from tests.conftest import USER_ID, raw


class StubAdapter:
    """Adapter double that returns canned rows (or a canned failure) and counts calls."""

    def __init__(
        self,
        origin: SourceOrigin,
        rows: list[dict] | None = None,
        failure: FailureReason | None = None,
        authoritative: bool = False,
    ):
        self.origin = origin
        self.authoritative = authoritative
        self._rows = rows or []
        self._failure = failure
        self.calls = 0

    async def fetch(self, user: UserContext, lookback_days: int) -> SourceResult:
        self.calls += 1
        if self._failure is not None:
            return SourceResult(origin=self.origin, failure=self._failure)
        return SourceResult(
            origin=self.origin,
            records=[
                RawAssessmentRecord(shape=classify_shape(row), origin=self.origin, payload=row)
                for row in self._rows
            ],
        )


def _row(day: str, score: float, hour: int = 9) -> dict:
    return {
        "assessment_date": day,
        "created_at": f"{day}T{hour:02d}:00:00+00:00",
        "total_score": score,
        "risk_level": "moderate",
    }


CACHED_ROWS = [_row("2024-03-08", 4), _row("2024-03-09", 6)]


class TestReconcile:
    async def test_empty_chain_rejected(self, signed_in_user):
        with pytest.raises(ValueError):
            await reconcile([], signed_in_user, 7)

    async def test_first_non_empty_wins(self, anonymous_user):
        first = StubAdapter(SourceOrigin.DEVICE_LOCAL, rows=[_row("2024-03-08", 4)])
        second = StubAdapter(SourceOrigin.DERIVED, rows=[_row("2024-03-09", 6)])

        result = await reconcile([first, second], anonymous_user, 7)

        assert result.origin == SourceOrigin.DEVICE_LOCAL
        assert second.calls == 0

    async def test_empty_non_authoritative_falls_through(self, anonymous_user):
        first = StubAdapter(SourceOrigin.DEVICE_LOCAL)
        second = StubAdapter(SourceOrigin.DERIVED, rows=[_row("2024-03-09", 6)])

        result = await reconcile([first, second], anonymous_user, 7)

        assert result.origin == SourceOrigin.DERIVED
        assert len(result.records) == 1

    async def test_authoritative_failure_stops_chain(self, signed_in_user):
        remote = StubAdapter(SourceOrigin.REMOTE, failure=FailureReason.TABLE_MISSING, authoritative=True)
        cached = StubAdapter(SourceOrigin.DEVICE_LOCAL, rows=CACHED_ROWS)

        result = await reconcile([remote, cached], signed_in_user, 7)

        assert result.failure == FailureReason.TABLE_MISSING
        assert cached.calls == 0

    async def test_results_never_merged(self, anonymous_user):
        first = StubAdapter(SourceOrigin.DEVICE_LOCAL, rows=[_row("2024-03-08", 4)])
        second = StubAdapter(SourceOrigin.DERIVED, rows=[_row("2024-03-09", 6)])
        result = await reconcile([first, second], anonymous_user, 7)
        assert {r.origin for r in result.records} == {SourceOrigin.DEVICE_LOCAL}

    async def test_all_empty_returns_last(self, anonymous_user):
        first = StubAdapter(SourceOrigin.DEVICE_LOCAL)
        second = StubAdapter(SourceOrigin.DERIVED, failure=FailureReason.AUTH)
        result = await reconcile([first, second], anonymous_user, 7)
        assert result.origin == SourceOrigin.DERIVED
        assert result.failure == FailureReason.AUTH


class TestGetTrend:
    async def test_remote_table_missing_does_not_use_cache(self, signed_in_user, now):
        """Remote fails with table-missing while the cache holds two valid records."""
        remote = StubAdapter(SourceOrigin.REMOTE, failure=FailureReason.TABLE_MISSING, authoritative=True)
        cached = StubAdapter(SourceOrigin.DEVICE_LOCAL, rows=CACHED_ROWS)

        trend = await get_trend(signed_in_user, 7, now=now, adapters=[remote, cached])

        assert trend.buckets == []
        assert trend.source_used.origin == SourceOrigin.REMOTE
        assert trend.source_used.failure == FailureReason.TABLE_MISSING
        assert trend.source_used.label == "remote:table_missing"
        assert cached.calls == 0

    async def test_remote_empty_is_final(self, signed_in_user, now):
        remote = StubAdapter(SourceOrigin.REMOTE, authoritative=True)
        cached = StubAdapter(SourceOrigin.DEVICE_LOCAL, rows=CACHED_ROWS)

        trend = await get_trend(signed_in_user, 7, now=now, adapters=[remote, cached])

        assert trend.buckets == []
        assert trend.source_used.label == "remote:empty"
        assert cached.calls == 0

    async def test_remote_rows_become_buckets(self, signed_in_user, now, remote_rows):
        remote = StubAdapter(SourceOrigin.REMOTE, rows=remote_rows, authoritative=True)

        trend = await get_trend(signed_in_user, 30, Granularity.DAILY, now=now, adapters=[remote])

        assert [b.period_key for b in trend.buckets] == ["2024-03-04", "2024-03-06", "2024-03-08"]
        assert [b.total_score for b in trend.buckets] == [3.0, 4.5, 6.5]
        assert trend.source_used.label == "remote"
        assert trend.records_considered == 3
        assert trend.summary.latest_score == 6.5

    async def test_same_day_rows_deduplicated(self, signed_in_user, now):
        rows = [_row("2024-03-01", 3, hour=9), _row("2024-03-01", 7, hour=14)]
        remote = StubAdapter(SourceOrigin.REMOTE, rows=rows, authoritative=True)

        trend = await get_trend(signed_in_user, 30, now=now, adapters=[remote])

        assert len(trend.buckets) == 1
        assert trend.buckets[0].total_score == 7.0

    async def test_window_applied_after_dedupe(self, signed_in_user, now):
        rows = [_row("2024-03-02", 2, hour=0), _row("2024-03-05", 5, hour=0)]
        remote = StubAdapter(SourceOrigin.REMOTE, rows=rows, authoritative=True)

        trend = await get_trend(signed_in_user, 7, now=now, adapters=[remote])

        assert [b.period_key for b in trend.buckets] == ["2024-03-05"]

    async def test_unparseable_rows_skipped_and_counted(self, signed_in_user, now):
        rows = [_row("2024-03-08", 4), {"symptoms": "{oops", "date": "2024-03-07"}, {"total_score": 3}]
        remote = StubAdapter(SourceOrigin.REMOTE, rows=rows, authoritative=True)

        trend = await get_trend(signed_in_user, 30, now=now, adapters=[remote])

        assert len(trend.buckets) == 1
        assert trend.records_rejected == 2

    async def test_idempotent(self, signed_in_user, now, remote_rows):
        remote = StubAdapter(SourceOrigin.REMOTE, rows=remote_rows, authoritative=True)
        first = await get_trend(signed_in_user, 30, Granularity.WEEKLY, now=now, adapters=[remote])
        second = await get_trend(signed_in_user, 30, Granularity.WEEKLY, now=now, adapters=[remote])
        assert first == second
        assert remote.calls == 2

    async def test_invalid_lookback_rejected_before_fetch(self, signed_in_user):
        remote = StubAdapter(SourceOrigin.REMOTE, authoritative=True)
        with pytest.raises(ValueError):
            await get_trend(signed_in_user, 0, adapters=[remote])
        assert remote.calls == 0

    async def test_anonymous_default_chain_reads_device_cache(self, tmp_path, monkeypatch, anonymous_user, now):
        store = tmp_path / "local_store.json"
        store.write_text(json.dumps({"burnoutAssessments": json.dumps(CACHED_ROWS)}))
        monkeypatch.setattr(
            "burnout.pipeline.build_default_chain",
            lambda user: [DeviceLocalAdapter(path=store)],
        )

        trend = await get_trend(anonymous_user, 7, now=now)

        assert trend.source_used.label == "device_local"
        assert [b.period_key for b in trend.buckets] == ["2024-03-08", "2024-03-09"]


class TestBestEffortTrend:
    async def test_uses_derived_records(self, signed_in_user, now):
        derived = StubAdapter(
            SourceOrigin.DERIVED,
            rows=[{"created_at": "2024-03-09T07:45:00+00:00", "total_score": 7.0, "risk_level": "high"}],
        )
        trend = await get_best_effort_trend(signed_in_user, 7, now=now, adapters=[derived])
        assert trend.source_used.label == "derived"
        assert trend.buckets[0].risk_level == "high"

    async def test_failure_is_empty_not_raised(self, anonymous_user, now):
        derived = StubAdapter(SourceOrigin.DERIVED, failure=FailureReason.AUTH)
        trend = await get_best_effort_trend(anonymous_user, 7, now=now, adapters=[derived])
        assert trend.buckets == []
        assert trend.source_used.label == "derived:auth"


class TestWindowRecords:
    async def test_returns_canonical_records_and_source(self, now):
        user = UserContext(user_id=USER_ID, access_token="t")
        remote = StubAdapter(SourceOrigin.REMOTE, rows=CACHED_ROWS, authoritative=True)

        records, source_used = await get_window_records(user, 7, now=now, adapters=[remote])

        assert [r.total_score for r in sorted(records, key=lambda r: r.date)] == [4.0, 6.0]
        assert source_used.label == "remote"


class TestNormalizeRecords:
    def test_counts_rejections(self):
        records, rejected = normalize_records([raw({"date": "2024-03-01"}), raw({"no": "date"})])
        assert len(records) == 1
        assert rejected == 1
