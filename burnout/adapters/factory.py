"""Adapter chain factory: which sources a reconciliation pass may consult.

- authenticated caller: remote store only
- unauthenticated caller: device-local cache only
- best-effort query: reflection-history derivation only

The chains never mix the remote store with the cached or derived sources, so
stale local data cannot stand in for remote state.
"""

from burnout.adapters.device_local import DeviceLocalAdapter
from burnout.adapters.protocol import SourceAdapter
from burnout.adapters.reflection_fallback import FallbackDerivationAdapter
from burnout.adapters.remote_store import RemoteStoreAdapter
from burnout.domain.models import UserContext


def build_default_chain(user: UserContext) -> list[SourceAdapter]:
    if user.is_authenticated:
        return [RemoteStoreAdapter()]
    return [DeviceLocalAdapter()]


def build_best_effort_chain() -> list[SourceAdapter]:
    return [FallbackDerivationAdapter()]
