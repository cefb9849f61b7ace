"""Tests for the cache and storage event buses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.metrics.events import CacheEventBus, StorageEventBus
from models.cache_models import CacheEventType
from models.locale_models import StorageEventType

if TYPE_CHECKING:
    import pytest

    from models.cache_models import CacheEvent
    from models.locale_models import StorageEvent


def test_emit_delivers_typed_then_wildcard() -> None:
    bus = CacheEventBus()
    order: list[str] = []
    bus.add_listener("*", lambda event: order.append(f"any:{event.type}"))
    bus.add_listener(CacheEventType.HIT, lambda event: order.append(f"hit:{event.key}"))

    event: CacheEvent = bus.emit(CacheEventType.HIT, key="en", metadata={"hit_rate": 1.0})

    assert order == ["hit:en", "any:hit"]
    assert event.key == "en"
    assert event.metadata == {"hit_rate": 1.0}


def test_listener_only_receives_its_type() -> None:
    bus = CacheEventBus()
    received: list[CacheEvent] = []
    bus.add_listener(CacheEventType.MISS, received.append)

    bus.emit(CacheEventType.HIT)
    bus.emit(CacheEventType.MISS)

    assert [event.type for event in received] == [CacheEventType.MISS]


def test_failing_listener_does_not_stop_delivery(caplog: pytest.LogCaptureFixture) -> None:
    bus = CacheEventBus()
    received: list[CacheEvent] = []

    def broken(event: CacheEvent) -> None:
        _ = event
        msg = "listener failure"
        raise RuntimeError(msg)

    bus.add_listener(CacheEventType.SET, broken)
    bus.add_listener(CacheEventType.SET, received.append)

    with caplog.at_level(logging.ERROR):
        bus.emit(CacheEventType.SET, key="zh")

    assert len(received) == 1
    assert any("Error in cache event listener" in rec.getMessage() for rec in caplog.records)


def test_remove_listener() -> None:
    bus = CacheEventBus()
    received: list[CacheEvent] = []
    bus.add_listener(CacheEventType.CLEAR, received.append)
    bus.remove_listener(CacheEventType.CLEAR, received.append)
    # Removing twice is harmless
    bus.remove_listener(CacheEventType.CLEAR, received.append)

    bus.emit(CacheEventType.CLEAR)

    assert received == []
    assert bus.listener_count(CacheEventType.CLEAR) == 0


def test_unknown_event_type_is_ignored() -> None:
    bus = CacheEventBus()
    bus.add_listener("not_an_event", lambda event: None)

    assert bus.listener_count() == 0


def test_clear_removes_every_listener() -> None:
    bus = CacheEventBus()
    bus.add_listener("*", lambda event: None)
    bus.add_listener(CacheEventType.EXPIRE, lambda event: None)
    assert bus.listener_count() == 2

    bus.clear()

    assert bus.listener_count() == 0


def test_storage_bus_delivers_typed_then_wildcard() -> None:
    bus = StorageEventBus()
    order: list[str] = []
    bus.add_listener("*", lambda event: order.append(f"any:{event.type}"))
    bus.add_listener(StorageEventType.OVERRIDE_SET, lambda event: order.append(f"set:{event.data['locale']}"))

    event: StorageEvent = bus.emit(StorageEventType.OVERRIDE_SET, source="preference_store", data={"locale": "zh"})

    assert order == ["set:zh", "any:override_set"]
    assert event.source == "preference_store"


def test_storage_bus_rejects_cache_event_types(caplog: pytest.LogCaptureFixture) -> None:
    bus = StorageEventBus()

    with caplog.at_level(logging.WARNING):
        bus.add_listener(CacheEventType.HIT, lambda event: None)

    assert bus.listener_count() == 0
    assert any("Ignoring unknown storage event type: 'hit'" in rec.getMessage() for rec in caplog.records)


def test_storage_bus_isolates_failing_listener(caplog: pytest.LogCaptureFixture) -> None:
    bus = StorageEventBus()
    received: list[StorageEvent] = []

    def broken(event: StorageEvent) -> None:
        _ = event
        msg = "listener failure"
        raise RuntimeError(msg)

    bus.add_listener(StorageEventType.HISTORY_UPDATED, broken)
    bus.add_listener(StorageEventType.HISTORY_UPDATED, received.append)

    with caplog.at_level(logging.ERROR):
        bus.emit(StorageEventType.HISTORY_UPDATED, source="detection_history", data={"total_records": 3})

    assert [event.data for event in received] == [{"total_records": 3}]
    assert any("Error in storage event listener" in rec.getMessage() for rec in caplog.records)
