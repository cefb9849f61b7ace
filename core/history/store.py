"""Detection history kept in the primary storage tier.

The history is a single JSON document (``{"records": [...], "lastUpdated": ...}``) stored under
one key. Records are appended in chronological order and never modified afterwards; only the
maintenance operations remove them.
"""

from __future__ import annotations

import json
import math
import time
from collections import Counter
from typing import TYPE_CHECKING, Any

from core.metrics.events import StorageEventBus
from models.locale_models import (
    DetectionHistory,
    DetectionStats,
    LocaleDetectionRecord,
    StorageEventType,
    StorageTier,
)
from models.result_models import StorageOperationResult, ValidationResult
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging

    from core.storage.interface import KeyValueStore

# ruff: noqa: BLE001

__all__: list[str] = ["DEFAULT_HISTORY_KEY", "DetectionHistoryStore", "validate_detection_record"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_HISTORY_KEY: str = "locale_detection_history"
EVENT_SOURCE: str = "detection_history"


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def validate_detection_record(raw: Any) -> ValidationResult:
    """Check the structure of one stored detection record.

    Args:
        raw (Any): Decoded JSON value.

    Returns:
        ValidationResult: Validity and the list of problems found.
    """
    if not isinstance(raw, dict):
        return ValidationResult(is_valid=False, errors=["Record is not an object"])

    errors: list[str] = []
    locale: Any = raw.get("locale")
    if not isinstance(locale, str) or not locale:
        errors.append("Invalid locale")
    source: Any = raw.get("source")
    if not isinstance(source, str) or not source:
        errors.append("Invalid source")
    confidence: Any = raw.get("confidence")
    if not _is_finite_number(confidence) or not 0.0 <= confidence <= 1.0:
        errors.append("Invalid confidence")
    timestamp: Any = raw.get("timestamp")
    if not _is_finite_number(timestamp) or timestamp <= 0:
        errors.append("Invalid timestamp")
    if raw.get("metadata") is not None and not isinstance(raw.get("metadata"), dict):
        errors.append("Invalid metadata")

    return ValidationResult(is_valid=not errors, errors=errors)


class DetectionHistoryStore:
    """Reads, appends to and queries the detection history.

    Derived statistics are cached in memory and dropped on every write made through this
    instance. Storage failures are turned into unsuccessful results and, outside production,
    logged.

    Attributes:
        storage (KeyValueStore): Primary storage tier.
        history_key (str): Key the history document is stored under.
        events (StorageEventBus): Receives history change events.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        history_key: str = DEFAULT_HISTORY_KEY,
        events: StorageEventBus | None = None,
        production: bool = False,
    ) -> None:
        self.storage: KeyValueStore = storage
        self.history_key: str = history_key
        self.events: StorageEventBus = events if events is not None else StorageEventBus()
        self._production: bool = production
        self._stats_cache: DetectionStats | None = None

    def _failure(self, operation: str, err: Exception | str) -> str:
        message: str = str(err)
        if not self._production:
            logger.error("%s failed: %s", operation, message)
        self.notify(StorageEventType.HISTORY_ERROR, operation=operation, error=message)
        return message

    def notify(self, event_type: StorageEventType, **data: Any) -> None:
        self.events.emit(event_type, source=EVENT_SOURCE, data=data)

    def _load_raw(self) -> dict[str, Any] | None:
        """Return the stored document, None when nothing is stored.

        Raises:
            ValueError: If the stored document does not have the history structure.
        """
        raw: Any = self.storage.get(self.history_key)
        if raw is None:
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("records"), list):
            msg: str = "Invalid history data structure"
            raise ValueError(msg)
        return raw

    def _parse(self, raw: dict[str, Any]) -> DetectionHistory:
        records: list[LocaleDetectionRecord] = []
        for entry in raw["records"]:
            if not validate_detection_record(entry).is_valid:
                logger.debug("Skipping invalid detection record: %s", entry)
                continue
            records.append(LocaleDetectionRecord.from_dict(entry, infer_missing=True))

        last_updated: Any = raw.get("lastUpdated", 0)
        if not _is_finite_number(last_updated):
            last_updated = 0
        return DetectionHistory(records=records, last_updated=int(last_updated))

    def get_detection_history(self) -> StorageOperationResult[DetectionHistory]:
        """Return the stored history, or an empty one when nothing is stored."""
        start: float = time.perf_counter()
        try:
            raw: dict[str, Any] | None = self._load_raw()
            history: DetectionHistory = DetectionHistory() if raw is None else self._parse(raw)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Reading detection history", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        return StorageOperationResult(
            success=True,
            data=history,
            source=StorageTier.PRIMARY,
            response_time=TimeUtils.elapsed_ms(start),
        )

    def find_invalid_records(self) -> StorageOperationResult[list[Any]]:
        """Return the stored records that fail structural validation."""
        try:
            raw: dict[str, Any] | None = self._load_raw()
        except Exception as err:
            return StorageOperationResult(success=False, error=self._failure("Reading detection history", err))
        entries: list[Any] = [] if raw is None else raw["records"]
        invalid: list[Any] = [entry for entry in entries if not validate_detection_record(entry).is_valid]
        return StorageOperationResult(success=True, data=invalid, source=StorageTier.PRIMARY)

    def save_history(self, history: DetectionHistory) -> StorageOperationResult[DetectionHistory]:
        start: float = time.perf_counter()
        try:
            self.storage.set(self.history_key, history.to_dict())
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Saving detection history", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        finally:
            self.invalidate_cache()
        self.notify(StorageEventType.HISTORY_UPDATED, total_records=len(history.records))
        return StorageOperationResult(success=True, data=history, response_time=TimeUtils.elapsed_ms(start))

    def add_detection_record(
        self,
        locale: str,
        source: str,
        confidence: float,
        metadata: dict[str, Any] | None = None,
    ) -> StorageOperationResult[DetectionHistory]:
        """Append one detection to the history.

        Args:
            locale (str): Detected locale.
            source (str): Detection source.
            confidence (float): Detection confidence; clamped to 0.0 to 1.0. NaN and infinities are rejected.
            metadata (dict[str, Any] | None): Optional detector data.

        Returns:
            StorageOperationResult[DetectionHistory]: The updated history on success.
        """
        if not _is_finite_number(confidence):
            return StorageOperationResult(
                success=False, error=self._failure("Adding a detection record", f"Invalid confidence: {confidence!r}")
            )

        current: StorageOperationResult[DetectionHistory] = self.get_detection_history()
        if not current.success or current.data is None:
            return current

        now: int = TimeUtils.now_ms()
        record = LocaleDetectionRecord(
            locale=locale,
            source=str(source),
            confidence=min(max(float(confidence), 0.0), 1.0),
            timestamp=now,
            metadata=metadata,
        )
        history = DetectionHistory(records=[*current.data.records, record], last_updated=now)
        return self.save_history(history)

    def invalidate_cache(self) -> None:
        self._stats_cache = None

    def _records(self) -> list[LocaleDetectionRecord]:
        result: StorageOperationResult[DetectionHistory] = self.get_detection_history()
        if not result.success or result.data is None:
            return []
        return result.data.records

    def get_recent_detections(self, limit: int = 10) -> list[LocaleDetectionRecord]:
        """Most recent records first."""
        records: list[LocaleDetectionRecord] = sorted(self._records(), key=lambda r: r.timestamp, reverse=True)
        return records[: max(limit, 0)]

    def get_detections_by_locale(self, locale: str) -> list[LocaleDetectionRecord]:
        return [record for record in self._records() if record.locale == locale]

    def get_detections_by_source(self, source: str) -> list[LocaleDetectionRecord]:
        return [record for record in self._records() if record.source == source]

    def get_detections_by_time_range(self, start: int, end: int) -> list[LocaleDetectionRecord]:
        """Records with ``start <= timestamp <= end``."""
        return [record for record in self._records() if start <= record.timestamp <= end]

    def get_detection_stats(self) -> DetectionStats:
        if self._stats_cache is not None:
            return self._stats_cache

        records: list[LocaleDetectionRecord] = self._records()
        if not records:
            self._stats_cache = DetectionStats()
            return self._stats_cache

        locale_counts: Counter[str] = Counter(record.locale for record in records)
        source_counts: Counter[str] = Counter(record.source for record in records)
        timestamps: list[int] = [record.timestamp for record in records]

        self._stats_cache = DetectionStats(
            total_records=len(records),
            locale_counts=dict(locale_counts),
            source_counts=dict(source_counts),
            average_confidence=sum(record.confidence for record in records) / len(records),
            most_common_locale=locale_counts.most_common(1)[0][0],
            oldest_timestamp=min(timestamps),
            newest_timestamp=max(timestamps),
        )
        return self._stats_cache

    def export_history_as_json(self) -> StorageOperationResult[str]:
        result: StorageOperationResult[DetectionHistory] = self.get_detection_history()
        if not result.success or result.data is None:
            return StorageOperationResult(success=False, error=result.error)
        return StorageOperationResult(
            success=True,
            data=json.dumps(result.data.to_dict(), ensure_ascii=False, indent=2),
            source=StorageTier.PRIMARY,
        )

    def import_history_from_json(self, text: str, *, merge: bool = False) -> StorageOperationResult[DetectionHistory]:
        """Replace (or merge into) the stored history with an exported document.

        The import is rejected as a whole when the document or any of its records is malformed.

        Args:
            text (str): JSON produced by export_history_as_json.
            merge (bool): Keep existing records and add the imported ones not already present.

        Returns:
            StorageOperationResult[DetectionHistory]: The history that was saved.
        """
        try:
            raw: Any = json.loads(text)
        except json.JSONDecodeError as err:
            return StorageOperationResult(success=False, error=self._failure("Importing detection history", err))

        if not isinstance(raw, dict) or not isinstance(raw.get("records"), list):
            return StorageOperationResult(
                success=False, error=self._failure("Importing detection history", "Invalid history data structure")
            )
        invalid: list[Any] = [entry for entry in raw["records"] if not validate_detection_record(entry).is_valid]
        if invalid:
            return StorageOperationResult(
                success=False,
                error=self._failure("Importing detection history", f"{len(invalid)} invalid record(s)"),
            )

        imported: list[LocaleDetectionRecord] = [
            LocaleDetectionRecord.from_dict(entry, infer_missing=True) for entry in raw["records"]
        ]
        if merge:
            current: StorageOperationResult[DetectionHistory] = self.get_detection_history()
            if not current.success or current.data is None:
                return current
            seen: set[tuple[str, str, float, int]] = {
                (r.locale, r.source, r.confidence, r.timestamp) for r in current.data.records
            }
            imported = [
                *current.data.records,
                *(r for r in imported if (r.locale, r.source, r.confidence, r.timestamp) not in seen),
            ]

        history = DetectionHistory(
            records=sorted(imported, key=lambda r: r.timestamp),
            last_updated=TimeUtils.now_ms(),
        )
        logger.info("Importing %d detection record(s) (merge=%s)", len(history.records), merge)
        return self.save_history(history)
