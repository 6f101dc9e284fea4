"""Shared test fixtures."""

import json
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from burnout.adapters.protocol import classify_shape  # noqa: E402
from burnout.domain.models import (  # noqa: E402
    BurnoutRecord,
    RawAssessmentRecord,
    SourceOrigin,
    UserContext,
)
from burnout.domain.normalization import normalize  # noqa: E402
from shared.config import settings  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
USER_ID = "5b1f7c2e-interpreter-01"
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
REMOTE_BASE_URL = "https://store.test"


def load_fixture(name: str):
    return json.loads((FIXTURES_DIR / name).read_text())


def raw(payload: dict, origin: SourceOrigin = SourceOrigin.REMOTE) -> RawAssessmentRecord:
    """Wrap a payload the way an adapter would."""
    return RawAssessmentRecord(shape=classify_shape(payload), origin=origin, payload=payload)


def record(
    day: str,
    score: float = 5.0,
    risk: str = "moderate",
    at: str | None = None,
    origin: SourceOrigin = SourceOrigin.REMOTE,
) -> BurnoutRecord:
    """Canonical record for `day` captured at `at` (default 09:00 UTC that day)."""
    payload = {
        "assessment_date": day,
        "created_at": at or f"{day}T09:00:00+00:00",
        "total_score": score,
        "risk_level": risk,
    }
    return normalize(raw(payload, origin))


@pytest.fixture
def remote_rows():
    return load_fixture("remote_assessments.json")


@pytest.fixture
def reflection_rows():
    return load_fixture("reflection_entries.json")


@pytest.fixture
def signed_in_user():
    return UserContext(user_id=USER_ID, access_token="cached-access-token")


@pytest.fixture
def anonymous_user():
    return UserContext()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def remote_configured(monkeypatch):
    """Point the remote store settings at a fake base URL."""
    monkeypatch.setattr(settings, "remote_base_url", REMOTE_BASE_URL)
    monkeypatch.setattr(settings, "remote_api_key", "anon-key")
    return REMOTE_BASE_URL
