"""Canonical burnout domain models.

Represents one day's burnout self-assessment from any source, normalized
into a common schema, and the summary buckets built from those records.

Design principles:
- Tagged raw variants: every raw record carries an explicit shape discriminator
  assigned by the adapter that produced it
- Defaults, not nulls: canonical metrics always hold a value (3 / 5 / moderate)
- Provenance: every record traces back to the origin that produced it
- Temporal: date (calendar day as recorded) vs timestamp (capture instant)
"""

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

METRIC_FIELDS = (
    "energy_tank",
    "recovery_speed",
    "emotional_leakage",
    "performance_signal",
    "tomorrow_readiness",
)

DEFAULT_METRIC = 3
DEFAULT_TOTAL_SCORE = 5.0


class RiskLevel(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    SEVERE = "severe"


class SourceOrigin(StrEnum):
    REMOTE = "remote"
    DEVICE_LOCAL = "device_local"
    DERIVED = "derived"


class RawShape(StrEnum):
    COLUMNAR = "columnar"
    BLOB = "blob"
    MINIMAL = "minimal"


class FailureReason(StrEnum):
    AUTH = "auth"
    TIMEOUT = "timeout"
    PERMISSION_DENIED = "permission_denied"
    TABLE_MISSING = "table_missing"
    PARSE = "parse"
    GENERIC = "generic"


class Granularity(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LookbackPreset(StrEnum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"

    @property
    def days(self) -> int:
        return _PRESET_DAYS[self]


_PRESET_DAYS = {
    LookbackPreset.WEEK: 7,
    LookbackPreset.MONTH: 30,
    LookbackPreset.QUARTER: 90,
}


def risk_level_for_score(score: float) -> RiskLevel:
    """Classify a 0-10 burnout score (lower is better)."""
    if score <= 2.5:
        return RiskLevel.LOW
    if score <= 5:
        return RiskLevel.MODERATE
    if score <= 7.5:
        return RiskLevel.HIGH
    return RiskLevel.SEVERE


class UserContext(BaseModel):
    """Caller identity as seen by the pipeline. Authenticated means a user ID is known."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


class RawAssessmentRecord(BaseModel):
    """One unnormalized record exactly as a source returned it."""

    model_config = ConfigDict(frozen=True)

    shape: RawShape
    origin: SourceOrigin
    payload: dict[str, Any]


class BurnoutRecord(BaseModel):
    """Canonical representation of one burnout assessment."""

    model_config = ConfigDict(frozen=True)

    energy_tank: int = Field(DEFAULT_METRIC, ge=1, le=5)
    recovery_speed: int = Field(DEFAULT_METRIC, ge=1, le=5)
    emotional_leakage: int = Field(DEFAULT_METRIC, ge=1, le=5)
    performance_signal: int = Field(DEFAULT_METRIC, ge=1, le=5)
    tomorrow_readiness: int = Field(DEFAULT_METRIC, ge=1, le=5)

    total_score: float = Field(DEFAULT_TOTAL_SCORE, ge=0.0, le=10.0)
    risk_level: RiskLevel = RiskLevel.MODERATE

    date: date
    timestamp: datetime
    source_origin: SourceOrigin


class AggregatedBucket(BaseModel):
    """One time-period summary handed to the caller."""

    model_config = ConfigDict(frozen=True)

    period_key: str
    total_score: float
    risk_level: RiskLevel
    count: int = Field(..., ge=1)


class SourceResult(BaseModel):
    """What one adapter fetch produced: records, or an empty list plus a failure reason."""

    origin: SourceOrigin
    records: list[RawAssessmentRecord] = Field(default_factory=list)
    failure: FailureReason | None = None

    @property
    def failed(self) -> bool:
        return self.failure is not None


class SourceUsed(BaseModel):
    """Diagnostic tag naming the source behind a result. Never used for business logic."""

    model_config = ConfigDict(frozen=True)

    origin: SourceOrigin
    outcome: str  # "ok", "empty", "failed"
    failure: FailureReason | None = None

    @classmethod
    def from_result(cls, result: SourceResult) -> "SourceUsed":
        if result.failure is not None:
            return cls(origin=result.origin, outcome="failed", failure=result.failure)
        if not result.records:
            return cls(origin=result.origin, outcome="empty")
        return cls(origin=result.origin, outcome="ok")

    @property
    def label(self) -> str:
        if self.failure is not None:
            return f"{self.origin.value}:{self.failure.value}"
        if self.outcome == "empty":
            return f"{self.origin.value}:empty"
        return self.origin.value


class TrendSummary(BaseModel):
    """Headline numbers for a window of canonical records."""

    record_count: int
    average_score: float | None = None
    latest_score: float | None = None
    latest_risk_level: RiskLevel | None = None
    latest_date: date | None = None


class TrendResult(BaseModel):
    buckets: list[AggregatedBucket] = Field(default_factory=list)
    source_used: SourceUsed
    summary: TrendSummary = Field(default_factory=lambda: TrendSummary(record_count=0))
    records_considered: int = 0
    records_rejected: int = 0
