"""In-memory LRU cache with per-item TTL and optional snapshot persistence."""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, Any

from models.cache_models import CacheEventType, CacheItem, CacheStats
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging

    from core.metrics.collector import MetricsCollector
    from core.metrics.events import CacheEventBus
    from core.storage.interface import KeyValueStore

# ruff: noqa: BLE001

__all__: list[str] = ["LRUCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class LRUCache[T]:
    """Least-recently-used cache whose items also expire after a time to live.

    Items are ordered from least to most recently used. Reading an item moves it to the most
    recent end; adding a new key to a full cache evicts exactly one item from the other end.
    Expired items are removed lazily when they are read.

    When persistence is enabled, every write saves a snapshot of all items to the primary
    storage tier and the snapshot is restored on construction. Snapshot failures never reach
    the caller.

    Attributes:
        max_size (int): Maximum number of items.
        default_ttl (int): Lifetime in milliseconds of items stored without an explicit ttl.
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: int = 3_600_000,
        *,
        metrics: MetricsCollector | None = None,
        events: CacheEventBus | None = None,
        storage: KeyValueStore | None = None,
        storage_key: str = "i18n_cache",
        enable_persistence: bool = False,
        production: bool = False,
    ) -> None:
        if max_size < 1:
            msg: str = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)

        self.max_size: int = max_size
        self.default_ttl: int = default_ttl
        self._items: OrderedDict[str, CacheItem[T]] = OrderedDict()
        self._metrics: MetricsCollector | None = metrics
        self._events: CacheEventBus | None = events if events is not None else (metrics.events if metrics else None)
        self._storage: KeyValueStore | None = storage
        self._storage_key: str = storage_key
        self._persist: bool = enable_persistence and storage is not None
        self._production: bool = production

        if self._persist:
            self._restore_snapshot()

    def _emit(self, event_type: CacheEventType, key: str | None = None, **metadata: Any) -> None:
        if self._events is not None:
            self._events.emit(event_type, key=key, metadata=metadata)

    def _record_hit(self) -> None:
        if self._metrics is not None:
            self._metrics.record_cache_hit()

    def _record_miss(self) -> None:
        if self._metrics is not None:
            self._metrics.record_cache_miss()

    def get(self, key: str) -> T | None:
        """Return the cached value, or None on a miss or when the item expired."""
        item: CacheItem[T] | None = self._items.get(key)
        if item is None:
            self._record_miss()
            return None

        if item.is_expired(TimeUtils.now_ms()):
            del self._items[key]
            self._emit(CacheEventType.EXPIRE, key, age=TimeUtils.now_ms() - item.timestamp)
            self._record_miss()
            self._save_snapshot()
            return None

        self._items.move_to_end(key)
        item.hits += 1
        self._record_hit()
        return item.data

    def set(self, key: str, value: T, ttl: int | None = None) -> None:
        """Store ``value``; replacing an existing key never evicts another item."""
        if key in self._items:
            self._items.move_to_end(key)
        elif len(self._items) >= self.max_size:
            evicted, _ = self._items.popitem(last=False)
            logger.debug("Evicted least recently used item: %s", evicted)
            self._emit(CacheEventType.DELETE, evicted, reason="evicted")

        self._items[key] = CacheItem(
            data=value,
            timestamp=TimeUtils.now_ms(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        self._emit(CacheEventType.SET, key, size=len(self._items))
        self._save_snapshot()

    def has(self, key: str) -> bool:
        """True when ``key`` holds an unexpired item. Does not touch recency or metrics."""
        item: CacheItem[T] | None = self._items.get(key)
        return item is not None and not item.is_expired(TimeUtils.now_ms())

    def delete(self, key: str) -> bool:
        if self._items.pop(key, None) is None:
            return False
        self._emit(CacheEventType.DELETE, key, reason="deleted")
        self._save_snapshot()
        return True

    def clear(self) -> None:
        self._items.clear()
        self._emit(CacheEventType.CLEAR, reason="cache_cleared")
        self._save_snapshot()

    def size(self) -> int:
        return len(self._items)

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._items.keys())

    def get_stats(self) -> CacheStats:
        now: int = TimeUtils.now_ms()
        items: list[CacheItem[T]] = list(self._items.values())
        return CacheStats(
            size=len(items),
            max_size=self.max_size,
            total_hits=sum(item.hits for item in items),
            average_age=sum(now - item.timestamp for item in items) / len(items) if items else 0.0,
        )

    def _report_snapshot_error(self, action: str, err: Exception) -> None:
        if not self._production:
            logger.warning("Failed to %s cache snapshot '%s': %s", action, self._storage_key, err)

    def _save_snapshot(self) -> None:
        if not self._persist or self._storage is None:
            return
        snapshot: dict[str, dict[str, Any]] = {
            key: {"data": item.data, "timestamp": item.timestamp, "ttl": item.ttl, "hits": item.hits}
            for key, item in self._items.items()
        }
        try:
            self._storage.set(self._storage_key, snapshot)
        except Exception as err:
            self._report_snapshot_error("save", err)

    def _restore_snapshot(self) -> None:
        if self._storage is None:
            return
        try:
            snapshot: Any = self._storage.get(self._storage_key)
            if not isinstance(snapshot, dict):
                return

            now: int = TimeUtils.now_ms()
            for key, raw in snapshot.items():
                item: CacheItem[T] = CacheItem(
                    data=raw["data"],
                    timestamp=int(raw["timestamp"]),
                    ttl=int(raw["ttl"]),
                    hits=int(raw.get("hits", 0)),
                )
                if not item.is_expired(now):
                    self._items[key] = item
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)
        except Exception as err:
            self._items.clear()
            self._report_snapshot_error("restore", err)
            return
        logger.debug("Restored %d cached item(s) from '%s'", len(self._items), self._storage_key)
