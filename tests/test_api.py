"""API endpoint tests using FastAPI TestClient.

The pipeline entry points are patched on the router module, testing the API
layer in isolation from any remote store or device cache.
"""

import pytest
from fastapi.testclient import TestClient

from burnout.domain.models import (
    AggregatedBucket,
    FailureReason,
    Granularity,
    RiskLevel,
    SourceOrigin,
    SourceUsed,
    TrendResult,
    TrendSummary,
)
from main import app
from tests.conftest import USER_ID, record


class RecordingQuery:
    """Stands in for a pipeline entry point; returns a canned TrendResult."""

    def __init__(self, result: TrendResult):
        self.result = result
        self.calls = []

    async def __call__(self, user, lookback_days, granularity):
        self.calls.append((user, lookback_days, granularity))
        return self.result


def _remote_trend() -> TrendResult:
    return TrendResult(
        buckets=[
            AggregatedBucket(period_key="2024-03-01", total_score=4.0, risk_level=RiskLevel.MODERATE, count=3)
        ],
        source_used=SourceUsed(origin=SourceOrigin.REMOTE, outcome="ok"),
        summary=TrendSummary(record_count=3, average_score=4.0),
        records_considered=3,
    )


@pytest.fixture
def trend_query(monkeypatch):
    query = RecordingQuery(_remote_trend())
    monkeypatch.setattr("burnout.api.get_trend", query)
    return query


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class TestHealthEndpoint:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["remote_store"] in ("configured", "not_configured")


class TestTrendEndpoint:
    def test_returns_buckets_and_source(self, client, trend_query):
        resp = client.get("/api/v1/burnout/trend", params={"lookback": "month", "granularity": "monthly"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == [
            {"period_key": "2024-03-01", "total_score": 4.0, "risk_level": "moderate", "count": 3}
        ]
        meta = body["meta"]
        assert meta["source_used"] == "remote"
        assert meta["source"] == {"origin": "remote", "outcome": "ok", "failure": None}
        assert meta["lookback_days"] == 30
        assert meta["granularity"] == "monthly"
        assert meta["records_considered"] == 3
        assert meta["summary"]["record_count"] == 3
        assert meta["api_version"] == "v1"

    @pytest.mark.parametrize(("lookback", "days"), [("week", 7), ("month", 30), ("quarter", 90), ("14", 14)])
    def test_lookback_values(self, client, trend_query, lookback, days):
        resp = client.get("/api/v1/burnout/trend", params={"lookback": lookback})
        assert resp.status_code == 200
        assert trend_query.calls[-1][1] == days

    def test_defaults(self, client, trend_query):
        client.get("/api/v1/burnout/trend")
        _, lookback_days, granularity = trend_query.calls[-1]
        assert lookback_days == 30
        assert granularity == Granularity.DAILY

    def test_identity_headers_build_user_context(self, client, trend_query):
        client.get(
            "/api/v1/burnout/trend",
            headers={
                "X-User-ID": USER_ID,
                "Authorization": "Bearer abc.def",
                "X-Refresh-Token": "refresh-me",
            },
        )
        user = trend_query.calls[-1][0]
        assert user.user_id == USER_ID
        assert user.access_token == "abc.def"
        assert user.refresh_token == "refresh-me"
        assert user.is_authenticated

    def test_non_bearer_authorization_ignored(self, client, trend_query):
        client.get("/api/v1/burnout/trend", headers={"Authorization": "Basic dXNlcjpwdw=="})
        user = trend_query.calls[-1][0]
        assert user.access_token is None
        assert not user.is_authenticated

    def test_source_failure_is_still_200(self, client, monkeypatch):
        failed = TrendResult(
            source_used=SourceUsed(origin=SourceOrigin.REMOTE, outcome="failed", failure=FailureReason.TABLE_MISSING)
        )
        monkeypatch.setattr("burnout.api.get_trend", RecordingQuery(failed))

        resp = client.get("/api/v1/burnout/trend", headers={"X-User-ID": USER_ID})

        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == []
        assert body["meta"]["source_used"] == "remote:table_missing"

    def test_invalid_granularity_returns_400(self, client, trend_query):
        resp = client.get("/api/v1/burnout/trend", params={"granularity": "hourly"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["title"] == "Invalid Granularity"
        assert "hourly" in body["detail"]
        assert resp.headers["content-type"] == "application/problem+json"
        assert trend_query.calls == []

    @pytest.mark.parametrize("lookback", ["0", "-3", "fortnight", "400", "²", "1.5"])
    def test_invalid_lookback_returns_400(self, client, trend_query, lookback):
        resp = client.get("/api/v1/burnout/trend", params={"lookback": lookback})
        assert resp.status_code == 400
        assert resp.json()["title"] == "Invalid Lookback Window"
        assert trend_query.calls == []


class TestBestEffortEndpoint:
    def test_uses_best_effort_path(self, client, monkeypatch, trend_query):
        derived = TrendResult(source_used=SourceUsed(origin=SourceOrigin.DERIVED, outcome="empty"))
        best_effort = RecordingQuery(derived)
        monkeypatch.setattr("burnout.api.get_best_effort_trend", best_effort)

        resp = client.get("/api/v1/burnout/trend/best-effort", params={"lookback": "week"})

        assert resp.status_code == 200
        assert resp.json()["meta"]["source_used"] == "derived:empty"
        assert len(best_effort.calls) == 1
        assert trend_query.calls == []


class TestPredictionEndpoint:
    def test_prediction_from_window_records(self, client, monkeypatch):
        records = [record("2024-03-01", 2), record("2024-03-02", 4), record("2024-03-03", 6)]
        seen = []

        async def window_records(user, lookback_days):
            seen.append(lookback_days)
            return records, SourceUsed(origin=SourceOrigin.REMOTE, outcome="ok")

        monkeypatch.setattr("burnout.api.get_window_records", window_records)

        resp = client.get("/api/v1/burnout/prediction", headers={"X-User-ID": USER_ID})

        assert resp.status_code == 200
        body = resp.json()
        assert body["data"]["predicted_score"] == 4.4
        assert body["data"]["summary"]["record_count"] == 3
        assert body["meta"]["lookback_days"] == 7
        assert seen == [7]

    def test_not_enough_history(self, client, monkeypatch):
        async def window_records(user, lookback_days):
            return [], SourceUsed(origin=SourceOrigin.DEVICE_LOCAL, outcome="empty")

        monkeypatch.setattr("burnout.api.get_window_records", window_records)

        body = client.get("/api/v1/burnout/prediction").json()
        assert body["data"]["predicted_score"] is None
        assert body["meta"]["source_used"] == "device_local:empty"


class TestRFC9457ErrorFormat:
    def test_error_has_required_fields(self, client):
        body = client.get("/api/v1/burnout/trend", params={"granularity": "yearly"}).json()
        for field in ("type", "title", "status", "detail", "instance"):
            assert field in body
        assert body["type"].endswith("/invalid-granularity")
        assert body["instance"] == "/api/v1/burnout/trend"

    def test_unknown_route_uses_problem_json(self, client):
        resp = client.get("/api/v1/burnout/unknown")
        assert resp.status_code == 404
        assert resp.headers["content-type"] == "application/problem+json"
        assert resp.json()["type"] == "about:blank"

    def test_request_id_in_response_header(self, client):
        resp = client.get("/health")
        assert "X-Request-ID" in resp.headers

    def test_request_id_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"
