"""Tests for DetectionHistoryStore."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from core.history.store import DetectionHistoryStore, validate_detection_record
from core.metrics.events import StorageEventBus
from core.storage.interface import StorageError
from models.locale_models import DetectionHistory, LocaleDetectionRecord, StorageEventType, StorageTier

if TYPE_CHECKING:
    from core.storage.memory_store import MemoryKeyValueStore
    from models.locale_models import DetectionStats, StorageEvent
    from models.result_models import StorageOperationResult, ValidationResult
    from tests.conftest import FakeClock

HISTORY_KEY: str = "locale_detection_history"


class _BrokenStore:
    """Primary tier whose every operation fails."""

    def get(self, key: str) -> Any:
        msg = f"backend unavailable for {key}"
        raise StorageError(msg)

    def set(self, key: str, value: Any) -> None:
        _ = value
        msg = f"backend unavailable for {key}"
        raise StorageError(msg)

    def remove(self, key: str) -> None:
        _ = key

    def close(self) -> None:
        pass


@pytest.fixture
def store(primary: MemoryKeyValueStore, clock: FakeClock) -> DetectionHistoryStore:
    _ = clock
    return DetectionHistoryStore(primary)


def _record(
    locale: str = "en", source: str = "browser", confidence: float = 0.9, timestamp: float = 1
) -> dict[str, Any]:
    return {"locale": locale, "source": source, "confidence": confidence, "timestamp": timestamp, "metadata": None}


@pytest.mark.parametrize(
    ("raw", "errors"),
    [
        (_record(), []),
        ("not a record", ["Record is not an object"]),
        (_record(locale=""), ["Invalid locale"]),
        (_record(confidence=1.5), ["Invalid confidence"]),
        ({**_record(), "confidence": True}, ["Invalid confidence"]),
        (_record(timestamp=0), ["Invalid timestamp"]),
        (_record(timestamp=float("inf")), ["Invalid timestamp"]),
        (_record(timestamp=float("nan")), ["Invalid timestamp"]),
        (_record(confidence=float("nan")), ["Invalid confidence"]),
        ({**_record(), "metadata": "x"}, ["Invalid metadata"]),
        ({"locale": 1}, ["Invalid locale", "Invalid source", "Invalid confidence", "Invalid timestamp"]),
    ],
)
def test_validate_detection_record(raw: Any, errors: list[str]) -> None:
    result: ValidationResult = validate_detection_record(raw)

    assert result.errors == errors
    assert result.is_valid is (not errors)


def test_empty_history(store: DetectionHistoryStore) -> None:
    result: StorageOperationResult[DetectionHistory] = store.get_detection_history()

    assert result.success is True
    assert result.source == StorageTier.PRIMARY
    assert result.data == DetectionHistory()


def test_add_detection_record_appends_in_order(store: DetectionHistoryStore, clock: FakeClock) -> None:
    store.add_detection_record("en", "browser", 0.8)
    clock.advance(10)
    result: StorageOperationResult[DetectionHistory] = store.add_detection_record(
        "zh", "user", 1.0, {"via": "menu"}
    )

    assert result.success is True
    assert result.data is not None
    assert [record.locale for record in result.data.records] == ["en", "zh"]
    assert result.data.records[1].timestamp == clock.now
    assert result.data.records[1].metadata == {"via": "menu"}
    assert result.data.last_updated == clock.now


def test_add_detection_record_clamps_confidence(store: DetectionHistoryStore) -> None:
    store.add_detection_record("en", "browser", 1.7)
    store.add_detection_record("en", "geo", -2)

    records: list[LocaleDetectionRecord] = store.get_detection_history().data.records
    assert [record.confidence for record in records] == [1.0, 0.0]


@pytest.mark.parametrize("confidence", [float("nan"), float("inf"), float("-inf")])
def test_add_detection_record_rejects_non_finite_confidence(
    store: DetectionHistoryStore, primary: MemoryKeyValueStore, confidence: float
) -> None:
    store.add_detection_record("en", "browser", 0.5)

    result: StorageOperationResult[DetectionHistory] = store.add_detection_record("zh", "user", confidence)

    assert result.success is False
    assert result.error == f"Invalid confidence: {confidence!r}"
    assert len(primary.get(HISTORY_KEY)["records"]) == 1
    assert store.find_invalid_records().data == []


def test_history_is_stored_camel_case(store: DetectionHistoryStore, primary: MemoryKeyValueStore) -> None:
    store.add_detection_record("en", "browser", 0.5)

    raw: dict[str, Any] = primary.get(HISTORY_KEY)
    assert set(raw) == {"records", "lastUpdated"}
    assert raw["records"][0]["locale"] == "en"


def test_invalid_structure_is_a_failure(store: DetectionHistoryStore, primary: MemoryKeyValueStore) -> None:
    primary.set(HISTORY_KEY, {"entries": []})

    result: StorageOperationResult[DetectionHistory] = store.get_detection_history()

    assert result.success is False
    assert result.error == "Invalid history data structure"


def test_invalid_records_are_skipped_and_reported(store: DetectionHistoryStore, primary: MemoryKeyValueStore) -> None:
    primary.set(HISTORY_KEY, {"records": [_record(), _record(locale=""), 42], "lastUpdated": 5})

    history: DetectionHistory = store.get_detection_history().data
    invalid: StorageOperationResult[list[Any]] = store.find_invalid_records()

    assert len(history.records) == 1
    assert history.last_updated == 5
    assert invalid.data == [_record(locale=""), 42]


def test_storage_failure_becomes_result() -> None:
    store = DetectionHistoryStore(_BrokenStore())  # type: ignore[arg-type]

    read: StorageOperationResult[DetectionHistory] = store.get_detection_history()
    added: StorageOperationResult[DetectionHistory] = store.add_detection_record("en", "user", 1.0)

    assert read.success is False
    assert "backend unavailable" in (read.error or "")
    assert added.success is False


def test_save_failure_is_reported(primary: MemoryKeyValueStore) -> None:
    store = DetectionHistoryStore(primary)
    primary.set = _BrokenStore().set  # type: ignore[method-assign]

    result: StorageOperationResult[DetectionHistory] = store.save_history(DetectionHistory())

    assert result.success is False


def test_queries(store: DetectionHistoryStore, clock: FakeClock) -> None:
    start: int = clock.now
    for locale, source in [("en", "browser"), ("zh", "user"), ("en", "geo"), ("zh", "browser")]:
        store.add_detection_record(locale, source, 0.9)
        clock.advance(1000)

    assert [r.source for r in store.get_recent_detections(2)] == ["browser", "geo"]
    assert [r.source for r in store.get_detections_by_locale("zh")] == ["user", "browser"]
    assert [r.locale for r in store.get_detections_by_source("browser")] == ["en", "zh"]
    assert [r.source for r in store.get_detections_by_time_range(start + 1000, start + 2000)] == ["user", "geo"]
    assert store.get_recent_detections(0) == []


def test_detection_stats(store: DetectionHistoryStore, clock: FakeClock) -> None:
    start: int = clock.now
    store.add_detection_record("en", "browser", 0.6)
    clock.advance(500)
    store.add_detection_record("zh", "user", 1.0)
    clock.advance(500)
    store.add_detection_record("zh", "browser", 0.8)

    stats: DetectionStats = store.get_detection_stats()

    assert stats.total_records == 3
    assert stats.locale_counts == {"en": 1, "zh": 2}
    assert stats.source_counts == {"browser": 2, "user": 1}
    assert stats.average_confidence == pytest.approx(0.8)
    assert stats.most_common_locale == "zh"
    assert stats.oldest_timestamp == start
    assert stats.newest_timestamp == start + 1000


def test_detection_stats_are_cached_until_write(store: DetectionHistoryStore, primary: MemoryKeyValueStore) -> None:
    store.add_detection_record("en", "browser", 0.6)
    first: DetectionStats = store.get_detection_stats()

    # Changes made behind the store's back are not seen until the cache is dropped.
    primary.set(HISTORY_KEY, {"records": [], "lastUpdated": 1})
    assert store.get_detection_stats() is first

    store.invalidate_cache()
    assert store.get_detection_stats().total_records == 0

    store.add_detection_record("zh", "user", 1.0)
    assert store.get_detection_stats().total_records == 1


def test_export_and_import(store: DetectionHistoryStore, primary: MemoryKeyValueStore, clock: FakeClock) -> None:
    store.add_detection_record("en", "browser", 0.6)
    clock.advance(100)
    store.add_detection_record("zh", "user", 1.0)
    exported: str = store.export_history_as_json().data or ""

    assert json.loads(exported)["records"][1]["locale"] == "zh"

    primary.remove(HISTORY_KEY)
    imported: StorageOperationResult[DetectionHistory] = store.import_history_from_json(exported)

    assert imported.success is True
    assert [record.locale for record in store.get_detection_history().data.records] == ["en", "zh"]


def test_import_merge_skips_known_records(store: DetectionHistoryStore, clock: FakeClock) -> None:
    store.add_detection_record("en", "browser", 0.6)
    exported: str = store.export_history_as_json().data or ""
    clock.advance(100)
    store.add_detection_record("zh", "user", 1.0)

    document: dict[str, Any] = json.loads(exported)
    document["records"].append(_record(locale="fr", timestamp=clock.now - 50))
    result: StorageOperationResult[DetectionHistory] = store.import_history_from_json(
        json.dumps(document), merge=True
    )

    assert result.success is True
    assert [record.locale for record in result.data.records] == ["en", "fr", "zh"]


def test_import_rejects_invalid_documents(store: DetectionHistoryStore) -> None:
    store.add_detection_record("en", "browser", 0.6)

    broken_json: StorageOperationResult[DetectionHistory] = store.import_history_from_json("{oops")
    wrong_shape: StorageOperationResult[DetectionHistory] = store.import_history_from_json('{"items": []}')
    bad_record: StorageOperationResult[DetectionHistory] = store.import_history_from_json(
        json.dumps({"records": [_record(), _record(confidence=3)]})
    )

    assert broken_json.success is False
    assert wrong_shape.success is False
    assert bad_record.success is False
    assert bad_record.error == "1 invalid record(s)"
    assert len(store.get_detection_history().data.records) == 1


def test_writes_publish_history_events(primary: MemoryKeyValueStore, clock: FakeClock) -> None:
    _ = clock
    events = StorageEventBus()
    received: list[StorageEvent] = []
    events.add_listener("*", received.append)
    store = DetectionHistoryStore(primary, events=events)

    store.add_detection_record("en", "browser", 0.8)
    store.add_detection_record("zh", "user", float("nan"))

    assert [event.type for event in received] == [StorageEventType.HISTORY_UPDATED, StorageEventType.HISTORY_ERROR]
    assert received[0].data == {"total_records": 1}
    assert received[1].data == {"operation": "Adding a detection record", "error": "Invalid confidence: nan"}
    assert all(event.source == "detection_history" for event in received)


def test_storage_failure_publishes_history_error() -> None:
    store = DetectionHistoryStore(_BrokenStore())  # type: ignore[arg-type]
    errors: list[StorageEvent] = []
    store.events.add_listener(StorageEventType.HISTORY_ERROR, errors.append)

    store.save_history(DetectionHistory())

    assert [event.data["operation"] for event in errors] == ["Saving detection history"]
