"""In-memory storage tiers for tests and for running without a database."""

from __future__ import annotations

import copy
import json
from typing import Any

from core.storage.interface import KeyValueStore, StorageError, StringStore
from utils.time_utils import TimeUtils

__all__: list[str] = ["MemoryKeyValueStore", "MemoryStringStore"]


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed primary tier.

    Values go through a JSON round trip on write so the store behaves like the SQLite one:
    callers never share mutable state with it, and unserializable values are rejected.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.loads(json.dumps(value, allow_nan=False))
        except (TypeError, ValueError) as err:
            msg: str = f"Value for '{key}' is not JSON serializable: {err}"
            raise StorageError(msg) from err

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class MemoryStringStore(StringStore):
    """Dictionary-backed secondary tier honoring ``max_age``."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, int | None]] = {}

    def get(self, key: str) -> str | None:
        entry: tuple[str, int | None] | None = self._data.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and TimeUtils.now_ms() >= expires_at:
            del self._data[key]
            return None
        return value

    def set(self, key: str, value: str, *, max_age: float | None = None) -> None:
        expires_at: int | None = None if max_age is None else TimeUtils.now_ms() + int(max_age * 1000)
        self._data[key] = (str(value), expires_at)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
