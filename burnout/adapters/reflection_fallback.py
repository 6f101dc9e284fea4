"""Fallback-derivation adapter: approximates burnout records from reflection history.

Only used by the explicit best-effort query path, never by the default chain.

Derivation per reflection entry, first match wins:
1. Entry data already carries burnout fields (metric columns, a symptoms blob,
   or a total/burnout score) -> passed through unchanged
2. A per-kind extractor over known field names -> 0-25 wellness score
3. overall_wellbeing (1-10) -> wellness * 2.5
4. A stress/energy pair -> (10 - stress) * 1.25 + energy * 1.25

Wellness (higher is better) is converted to a 0-10 burnout score
(lower is better) and labelled with its risk level.
"""

import json
from collections.abc import Callable
from typing import Any

import httpx

from burnout.adapters.credentials import resolve_access_token
from burnout.adapters.errors import AuthError, SourceError
from burnout.adapters.http_client import fetch_json, new_client, rest_headers
from burnout.adapters.protocol import classify_shape, guard_fetch
from burnout.adapters.remote_store import rows_from_body
from burnout.domain.models import (
    RawShape,
    SourceOrigin,
    SourceResult,
    UserContext,
    risk_level_for_score,
)
from burnout.domain.normalization import as_number
from shared.config import settings

WELLNESS_KINDS = (
    "burnout_assessment",
    "wellness_check_in",
    "pre_assignment_prep",
    "post_assignment_debrief",
    "teaming_reflection",
    "mentoring_reflection",
)

_NEUTRAL = 5.0
_SCORE_FIELDS = ("total_score", "totalScore", "burnout_score")


def _first(data: dict[str, Any], *names: str) -> float | None:
    for name in names:
        value = as_number(data.get(name))
        if value is not None:
            return value
    return None


def _pick(data: dict[str, Any], *names: str) -> float:
    value = _first(data, *names)
    return _NEUTRAL if value is None else value


# Each extractor: (fields that must be present for it to apply, scoring function)
_KIND_EXTRACTORS: dict[str, tuple[tuple[str, ...], Callable[[dict[str, Any]], float]]] = {
    "wellness_check_in": (
        ("stress_level", "current_stress_level", "energy_level", "physical_energy", "emotional_state"),
        lambda d: (
            10
            - _pick(d, "stress_level", "current_stress_level")
            + _pick(d, "energy_level", "physical_energy")
            + _pick(d, "emotional_state")
        )
        / 3
        * 2.5,
    ),
    "pre_assignment_prep": (
        ("confidence_level", "confidence_rating", "stress_level", "anticipated_stress"),
        lambda d: (
            _pick(d, "confidence_level", "confidence_rating")
            + 10
            - _pick(d, "stress_level", "anticipated_stress")
        )
        / 2
        * 2.5,
    ),
    "post_assignment_debrief": (
        ("energy_level_post", "energy_level", "stress_level_post", "stress_level", "satisfaction_level"),
        lambda d: (
            10
            - _pick(d, "stress_level_post", "stress_level")
            + _pick(d, "energy_level_post", "energy_level")
            + _pick(d, "satisfaction_level")
        )
        / 3
        * 2.5,
    ),
    "teaming_reflection": (
        ("team_dynamics_rating", "session_stress", "energy_after"),
        lambda d: (
            10
            - _pick(d, "session_stress")
            + _pick(d, "energy_after")
            + _pick(d, "team_dynamics_rating")
        )
        / 3
        * 2.5,
    ),
    "mentoring_reflection": (
        ("growth_rating", "energy_level", "session_value"),
        lambda d: (
            _pick(d, "growth_rating") + _pick(d, "energy_level") + _pick(d, "session_value")
        )
        / 3
        * 2.5,
    ),
}


def stress_energy_wellness(stress: float, energy: float) -> float:
    """Linear transform of a 1-10 stress/energy pair onto the 0-25 wellness scale."""
    stress_component = (10 - stress) * 1.25
    energy_component = energy * 1.25
    return stress_component + energy_component


def wellness_to_burnout(wellness: float) -> float:
    return round(min(max(10 - wellness / 2.5, 0.0), 10.0), 1)


def extract_wellness(entry_kind: str, data: dict[str, Any]) -> tuple[float, str] | None:
    """Return (wellness score, derivation method) or None when nothing is recognisable."""
    extractor = _KIND_EXTRACTORS.get(entry_kind)
    if extractor is not None:
        required, score = extractor
        if _first(data, *required) is not None:
            return score(data), "kind_fields"

    wellbeing = _first(data, "overall_wellbeing")
    if wellbeing is not None:
        return wellbeing * 2.5, "overall_wellbeing"

    stress = _first(data, "stress_level", "stress")
    energy = _first(data, "energy_level", "energy")
    if stress is not None and energy is not None:
        return stress_energy_wellness(stress, energy), "stress_energy"

    return None


def derive_payload(entry: dict[str, Any]) -> dict[str, Any] | None:
    """Turn one reflection entry into a raw assessment payload, or None to skip it."""
    data = entry.get("data")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            return None
    if not isinstance(data, dict):
        return None

    provenance = {
        "created_at": entry.get("created_at"),
        "entry_kind": entry.get("entry_kind"),
    }
    if data.get("date"):
        provenance["date"] = data["date"]

    if classify_shape(data) is not RawShape.MINIMAL or _first(data, *_SCORE_FIELDS) is not None:
        return {**data, **provenance, "derivation": "passthrough"}

    extracted = extract_wellness(str(entry.get("entry_kind", "")), data)
    if extracted is None:
        return None
    wellness, method = extracted
    score = wellness_to_burnout(wellness)
    return {
        **provenance,
        "total_score": score,
        "risk_level": risk_level_for_score(score).value,
        "derivation": method,
    }


class FallbackDerivationAdapter:
    """Best-effort adapter over reflection_entries."""

    origin = SourceOrigin.DERIVED
    authoritative = False

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    @staticmethod
    def query_params(user_id: str) -> dict[str, str]:
        return {
            "user_id": f"eq.{user_id}",
            "entry_kind": f"in.({','.join(WELLNESS_KINDS)})",
            "order": "created_at.desc",
            "limit": str(settings.reflections_row_limit),
            "select": "*",
        }

    async def fetch(self, user: UserContext, lookback_days: int) -> SourceResult:
        return await guard_fetch(self.origin, lambda: self._fetch_rows(user))

    async def _fetch_rows(self, user: UserContext) -> list[dict[str, Any]]:
        if not settings.remote_base_url:
            raise SourceError("remote store is not configured")
        if not user.is_authenticated:
            raise AuthError("reflection history requires a signed-in user")
        if self._client is not None:
            entries = await self._query(self._client, user)
        else:
            async with new_client() as client:
                entries = await self._query(client, user)
        payloads = (derive_payload(entry) for entry in entries)
        return [payload for payload in payloads if payload is not None]

    async def _query(self, client: httpx.AsyncClient, user: UserContext) -> list[dict[str, Any]]:
        token = await resolve_access_token(user, client)
        table = settings.reflections_table
        url = f"{settings.remote_base_url.rstrip('/')}/rest/v1/{table}"
        body = await fetch_json(
            client,
            "GET",
            url,
            headers=rest_headers(token),
            params=self.query_params(user.user_id or ""),
        )
        return rows_from_body(body, table)
