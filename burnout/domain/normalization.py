"""Raw assessment variants -> canonical BurnoutRecord.

Inbound anti-corruption layer. One normalizer per raw shape, selected by the
shape discriminator the adapter assigned; nothing here probes a payload to
guess what it is.

Resolution order:
- total_score: total_score / totalScore -> burnout_score -> derived from
  sub-metrics -> 5. Values above 10 are on the raw 5-25 questionnaire scale
  and are rescaled; the result is clamped to [0, 10].
- sub-metrics: columns (snake_case or camelCase) -> symptoms blob -> 3.
  A malformed blob on a columnar row is ignored; a blob-shaped row with a
  malformed blob is rejected with ParseError.
- date: leading YYYY-MM-DD of assessment_date / date, else of created_at /
  timestamp. Taken from the string as written, never from a converted datetime.
"""

import json
import math
from collections.abc import Callable
from datetime import UTC, date, datetime, time
from typing import Any

import structlog

from burnout.adapters.errors import ParseError
from burnout.domain.models import (
    DEFAULT_METRIC,
    DEFAULT_TOTAL_SCORE,
    METRIC_FIELDS,
    BurnoutRecord,
    RawAssessmentRecord,
    RawShape,
    RiskLevel,
    SourceOrigin,
)

logger = structlog.get_logger()

_DATE_FIELDS = ("assessment_date", "date")
_INSTANT_FIELDS = ("created_at", "timestamp")
_TOTAL_FIELDS = ("total_score", "totalScore")
_LEGACY_TOTAL_FIELDS = ("burnout_score", "burnoutScore")
_RISK_FIELDS = ("risk_level", "riskLevel", "level")
_RAW_SCALE_MIN = 5
_RAW_SCALE_SPAN = 20
# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 100_000_000_000


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


_METRIC_ALIASES = {name: (name, _camel(name)) for name in METRIC_FIELDS}


def as_number(value: Any) -> float | None:
    """Numeric value of an int, float, or numeric string. None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _lookup(payload: dict[str, Any], names: tuple[str, ...]) -> float | None:
    for name in names:
        number = as_number(payload.get(name))
        if number is not None:
            return number
    return None


def _clamp_metric(value: float) -> int:
    return min(max(round(value), 1), 5)


def _raw_to_normalized(raw_total: float) -> float:
    """Map the 5-25 questionnaire total onto 0-10 (1 decimal)."""
    return round((raw_total - _RAW_SCALE_MIN) / _RAW_SCALE_SPAN * 10, 1)


def _clamp_score(score: float) -> float:
    if score > 10:
        score = _raw_to_normalized(score)
    return min(max(score, 0.0), 10.0)


def decode_blob(value: Any) -> dict[str, Any]:
    """Decode a symptoms blob that may arrive as an object or a JSON string."""
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ParseError("symptoms blob is not valid JSON") from exc
    if not isinstance(value, dict):
        raise ParseError(f"symptoms blob must be an object, got {type(value).__name__}")
    return value


def _resolve_total(payload: dict[str, Any], metrics: dict[str, float | None]) -> float:
    explicit = _lookup(payload, _TOTAL_FIELDS)
    if explicit is not None:
        return _clamp_score(explicit)
    legacy = _lookup(payload, _LEGACY_TOTAL_FIELDS)
    if legacy is not None:
        return _clamp_score(legacy)
    if any(value is not None for value in metrics.values()):
        raw_total = sum(
            _clamp_metric(value) if value is not None else DEFAULT_METRIC
            for value in metrics.values()
        )
        return _clamp_score(_raw_to_normalized(raw_total))
    return DEFAULT_TOTAL_SCORE


def _resolve_risk(payload: dict[str, Any]) -> RiskLevel:
    for name in _RISK_FIELDS:
        value = payload.get(name)
        if isinstance(value, str):
            try:
                return RiskLevel(value.strip().lower())
            except ValueError:
                continue
    return RiskLevel.MODERATE


def _leading_date(value: Any) -> date | None:
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _resolve_date(payload: dict[str, Any]) -> date:
    for name in (*_DATE_FIELDS, *_INSTANT_FIELDS):
        day = _leading_date(payload.get(name))
        if day is not None:
            return day
    raise ParseError("record has no recognisable date")


def _parse_instant(value: Any) -> datetime | None:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    elif (number := as_number(value)) is not None:
        seconds = number / 1000 if number > _EPOCH_MS_THRESHOLD else number
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _resolve_timestamp(payload: dict[str, Any], day: date) -> datetime:
    for name in _INSTANT_FIELDS:
        instant = _parse_instant(payload.get(name))
        if instant is not None:
            return instant
    return datetime.combine(day, time.min, tzinfo=UTC)


def _build(
    payload: dict[str, Any], origin: SourceOrigin, metrics: dict[str, float | None]
) -> BurnoutRecord:
    day = _resolve_date(payload)
    return BurnoutRecord(
        **{
            name: _clamp_metric(value) if value is not None else DEFAULT_METRIC
            for name, value in metrics.items()
        },
        total_score=_resolve_total(payload, metrics),
        risk_level=_resolve_risk(payload),
        date=day,
        timestamp=_resolve_timestamp(payload, day),
        source_origin=origin,
    )


def _normalize_columnar(payload: dict[str, Any], origin: SourceOrigin) -> BurnoutRecord:
    metrics = {name: _lookup(payload, aliases) for name, aliases in _METRIC_ALIASES.items()}
    missing = [name for name, value in metrics.items() if value is None]
    if missing and payload.get("symptoms") not in (None, ""):
        try:
            blob = decode_blob(payload["symptoms"])
        except ParseError as exc:
            # Columns are usable on their own; missing metrics keep their defaults.
            logger.warning("symptoms_blob_ignored", origin=origin.value, reason=exc.detail)
            blob = {}
        for name in missing:
            metrics[name] = _lookup(blob, _METRIC_ALIASES[name])
    return _build(payload, origin, metrics)


def _normalize_blob(payload: dict[str, Any], origin: SourceOrigin) -> BurnoutRecord:
    blob = decode_blob(payload.get("symptoms"))
    metrics = {name: _lookup(blob, aliases) for name, aliases in _METRIC_ALIASES.items()}
    return _build(payload, origin, metrics)


def _normalize_minimal(payload: dict[str, Any], origin: SourceOrigin) -> BurnoutRecord:
    return _build(payload, origin, dict.fromkeys(METRIC_FIELDS))


_NORMALIZERS: dict[RawShape, Callable[[dict[str, Any], SourceOrigin], BurnoutRecord]] = {
    RawShape.COLUMNAR: _normalize_columnar,
    RawShape.BLOB: _normalize_blob,
    RawShape.MINIMAL: _normalize_minimal,
}


def normalize(raw: RawAssessmentRecord) -> BurnoutRecord:
    """Normalize one raw record. Raises ParseError for undecodable input."""
    return _NORMALIZERS[raw.shape](raw.payload, raw.origin)
