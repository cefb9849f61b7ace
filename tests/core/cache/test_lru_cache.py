"""Tests for LRUCache ordering, expiry, events and snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from core.cache.lru_cache import LRUCache
from core.metrics.collector import MetricsCollector
from models.cache_models import CacheEventType

if TYPE_CHECKING:
    from core.storage.memory_store import MemoryKeyValueStore
    from models.cache_models import CacheEvent, CacheStats
    from tests.conftest import FakeClock


@pytest.fixture
def metrics(clock: FakeClock) -> MetricsCollector:
    _ = clock
    return MetricsCollector()


@pytest.fixture
def cache(metrics: MetricsCollector) -> LRUCache[str]:
    return LRUCache(max_size=3, default_ttl=1_000, metrics=metrics)


def test_max_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="max_size"):
        LRUCache(max_size=0)


def test_get_and_set(cache: LRUCache[str]) -> None:
    cache.set("en", "hello")

    assert cache.get("en") == "hello"
    assert cache.get("zh") is None
    assert cache.size() == 1


def test_inserting_past_capacity_evicts_first_inserted(cache: LRUCache[str]) -> None:
    for key in ("a", "b", "c", "d"):
        cache.set(key, key.upper())

    assert cache.keys() == ["b", "c", "d"]
    assert cache.has("a") is False


def test_read_refreshes_recency(cache: LRUCache[str]) -> None:
    for key in ("a", "b", "c"):
        cache.set(key, key)
    cache.get("a")
    cache.set("d", "d")

    assert cache.keys() == ["c", "a", "d"]


def test_replacing_existing_key_never_evicts(cache: LRUCache[str]) -> None:
    for key in ("a", "b", "c"):
        cache.set(key, key)
    cache.set("a", "again")

    assert cache.keys() == ["b", "c", "a"]
    assert cache.get("a") == "again"


def test_items_expire(cache: LRUCache[str], clock: FakeClock) -> None:
    cache.set("en", "hello")
    cache.set("zh", "nihao", ttl=5_000)

    clock.advance(1_000)
    assert cache.get("en") == "hello"

    clock.advance(1)
    assert cache.has("en") is False
    assert cache.get("en") is None
    assert cache.size() == 1
    assert cache.get("zh") == "nihao"


def test_has_does_not_touch_metrics_or_order(cache: LRUCache[str], metrics: MetricsCollector) -> None:
    cache.set("a", "a")
    cache.set("b", "b")

    assert cache.has("a") is True
    assert cache.keys() == ["a", "b"]
    assert metrics.get_detailed_stats().total_requests == 0


def test_hits_and_misses_reach_metrics(cache: LRUCache[str], metrics: MetricsCollector) -> None:
    cache.set("en", "hello")
    cache.get("en")
    cache.get("en")
    cache.get("zh")

    assert metrics.get_metrics().cache_hit_rate == pytest.approx(2 / 3)


def test_delete_and_clear(cache: LRUCache[str]) -> None:
    cache.set("a", "a")
    cache.set("b", "b")

    assert cache.delete("a") is True
    assert cache.delete("a") is False

    cache.clear()
    assert cache.size() == 0


def test_events(cache: LRUCache[str], metrics: MetricsCollector, clock: FakeClock) -> None:
    events: list[CacheEvent] = []
    for event_type in (CacheEventType.SET, CacheEventType.DELETE, CacheEventType.EXPIRE, CacheEventType.CLEAR):
        metrics.events.add_listener(event_type, events.append)

    for key in ("a", "b", "c", "d"):
        cache.set(key, key)
    cache.delete("b")
    clock.advance(2_000)
    cache.get("c")
    cache.clear()

    assert [(event.type, event.key, event.metadata.get("reason")) for event in events] == [
        (CacheEventType.SET, "a", None),
        (CacheEventType.SET, "b", None),
        (CacheEventType.SET, "c", None),
        (CacheEventType.DELETE, "a", "evicted"),
        (CacheEventType.SET, "d", None),
        (CacheEventType.DELETE, "b", "deleted"),
        (CacheEventType.EXPIRE, "c", None),
        (CacheEventType.CLEAR, None, "cache_cleared"),
    ]


def test_get_stats(cache: LRUCache[str], clock: FakeClock) -> None:
    cache.set("a", "a")
    clock.advance(100)
    cache.set("b", "b")
    cache.get("a")
    cache.get("a")
    cache.get("b")

    stats: CacheStats = cache.get_stats()

    assert stats.size == 2
    assert stats.max_size == 3
    assert stats.total_hits == 3
    assert stats.average_age == pytest.approx(50.0)


def test_empty_stats(cache: LRUCache[str]) -> None:
    assert cache.get_stats().average_age == 0.0


def test_snapshot_round_trip(primary: MemoryKeyValueStore, clock: FakeClock) -> None:
    first: LRUCache[dict[str, str]] = LRUCache(
        max_size=5, default_ttl=10_000, storage=primary, enable_persistence=True
    )
    first.set("en", {"greeting": "Hello"})
    first.set("zh", {"greeting": "你好"}, ttl=100)
    clock.advance(500)

    restored: LRUCache[dict[str, str]] = LRUCache(
        max_size=5, default_ttl=10_000, storage=primary, enable_persistence=True
    )

    assert restored.keys() == ["en"]
    assert restored.get("en") == {"greeting": "Hello"}


def test_snapshot_restore_respects_max_size(primary: MemoryKeyValueStore, clock: FakeClock) -> None:
    _ = clock
    first: LRUCache[int] = LRUCache(max_size=3, storage=primary, enable_persistence=True)
    for index, key in enumerate(("a", "b", "c")):
        first.set(key, index)

    smaller: LRUCache[int] = LRUCache(max_size=2, storage=primary, enable_persistence=True)

    assert smaller.keys() == ["b", "c"]


def test_persistence_disabled_writes_nothing(primary: MemoryKeyValueStore) -> None:
    cache: LRUCache[int] = LRUCache(storage=primary, enable_persistence=False)
    cache.set("a", 1)

    assert primary.get("i18n_cache") is None


def test_snapshot_failures_are_contained(primary: MemoryKeyValueStore) -> None:
    primary.set("i18n_cache", {"en": {"data": 1}})

    cache: LRUCache[object] = LRUCache(storage=primary, enable_persistence=True)
    assert cache.size() == 0

    # Not JSON serializable: the save fails but the value stays cached.
    value = object()
    cache.set("en", value)
    assert cache.get("en") is value
