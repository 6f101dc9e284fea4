"""Device-local adapter: reads cached assessments from a JSON key-value file.

The file is a JSON object mapping keys to values, as a browser's persisted
store holds them: a value is either a JSON array or a JSON-encoded string of
one. Missing file or key means "no data yet", never a failure.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from burnout.adapters.errors import ParseError, SourceError, SourcePermissionError
from burnout.adapters.protocol import guard_fetch
from burnout.domain.models import SourceOrigin, SourceResult, UserContext
from shared.config import settings


def _decode_value(value: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ParseError(f"value under '{key}' is not valid JSON") from exc
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"value under '{key}' is not a JSON array")
    return [item for item in value if isinstance(item, dict)]


def read_store(path: Path, key: str) -> list[dict[str, Any]]:
    """Read one key from the store file. Blocking; run off the event loop."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except PermissionError as exc:
        raise SourcePermissionError(f"local store {path} is not readable") from exc
    except OSError as exc:
        raise SourceError(f"local store {path} could not be read: {exc}") from exc
    try:
        store = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"local store {path} is not valid JSON") from exc
    if not isinstance(store, dict):
        raise ParseError(f"local store {path} is not a JSON object")
    return _decode_value(store.get(key), key)


class DeviceLocalAdapter:
    """Non-authoritative adapter over the on-device cache."""

    origin = SourceOrigin.DEVICE_LOCAL
    authoritative = False

    def __init__(self, path: Path | str | None = None, key: str | None = None) -> None:
        self._path = Path(path or settings.local_store_path)
        self._key = key or settings.local_store_key

    async def fetch(self, user: UserContext, lookback_days: int) -> SourceResult:
        # The window is applied downstream; the cache holds whatever the device kept.
        return await guard_fetch(
            self.origin, lambda: asyncio.to_thread(read_store, self._path, self._key)
        )
