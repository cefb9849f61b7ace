"""Maintenance of the detection history.

Each cleanup step reads the history, filters it and writes it back only when something changed, so
running a step twice in a row removes nothing the second time. Nothing here raises: failures are
reported through StorageOperationResult.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from models.config_models import HistorySettings
from models.locale_models import DetectionHistory, LocaleDetectionRecord, StorageEventType
from models.maintenance_models import MaintenanceOptions, MaintenanceRecommendations, MaintenanceResult, Urgency
from models.result_models import StorageOperationResult
from utils.logger_utils import LoggerUtils
from utils.time_utils import DAY_MS, TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.history.store import DetectionHistoryStore

# ruff: noqa: BLE001

__all__: list[str] = ["HistoryMaintenance"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type _RecordKey = tuple[str, str, float]


class HistoryMaintenance:
    """Expiry, de-duplication and size limiting for the detection history.

    Attributes:
        history (DetectionHistoryStore): Store the maintenance operates on.
        settings (HistorySettings): Default limits and the duplicate window.
    """

    # Share of the recommended maximum above which the urgency becomes high.
    OVERFLOW_FACTOR: float = 1.5

    def __init__(
        self,
        history: DetectionHistoryStore,
        *,
        settings: HistorySettings | None = None,
        production: bool = False,
    ) -> None:
        self.history: DetectionHistoryStore = history
        self.settings: HistorySettings = settings if settings is not None else HistorySettings()
        self._production: bool = production

    @property
    def default_max_age(self) -> int:
        return self.settings.MAX_AGE_DAYS * DAY_MS

    def _failure(self, operation: str, err: Exception | str | None) -> str:
        message: str = str(err) if err is not None else "Unknown error"
        if not self._production:
            logger.error("%s failed: %s", operation, message)
        return message

    def _rewrite(
        self,
        operation: str,
        select: Callable[[list[LocaleDetectionRecord]], list[LocaleDetectionRecord]],
    ) -> StorageOperationResult[int]:
        """Apply ``select`` to the stored records and persist the result if it removed anything.

        Args:
            operation (str): Name used in log messages.
            select (Callable): Returns the records to keep.

        Returns:
            StorageOperationResult[int]: Number of records removed.
        """
        start: float = time.perf_counter()
        try:
            current: StorageOperationResult[DetectionHistory] = self.history.get_detection_history()
            if not current.success or current.data is None:
                return StorageOperationResult(
                    success=False,
                    error=self._failure(operation, current.error),
                    response_time=TimeUtils.elapsed_ms(start),
                )

            records: list[LocaleDetectionRecord] = current.data.records
            kept: list[LocaleDetectionRecord] = select(records)
            removed: int = len(records) - len(kept)
            if removed > 0:
                saved: StorageOperationResult[DetectionHistory] = self.history.save_history(
                    DetectionHistory(records=kept, last_updated=TimeUtils.now_ms())
                )
                if not saved.success:
                    return StorageOperationResult(
                        success=False,
                        error=self._failure(operation, saved.error),
                        response_time=TimeUtils.elapsed_ms(start),
                    )
                logger.info("%s: removed %d record(s)", operation, removed)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure(operation, err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        return StorageOperationResult(success=True, data=removed, response_time=TimeUtils.elapsed_ms(start))

    def cleanup_expired_detections(self, max_age: int | None = None) -> StorageOperationResult[int]:
        """Remove records older than ``max_age`` milliseconds (30 days by default)."""
        age: int = self.default_max_age if max_age is None else max_age
        cutoff: int = TimeUtils.now_ms() - age
        return self._rewrite(
            "Expired detection cleanup",
            lambda records: [record for record in records if record.timestamp > cutoff],
        )

    def _without_duplicates(self, records: list[LocaleDetectionRecord]) -> list[LocaleDetectionRecord]:
        window: int = self.settings.DUPLICATE_WINDOW_MS
        last_kept: dict[_RecordKey, int] = {}
        dropped: set[int] = set()

        # Newest first, so the most recent record of a burst is the one kept.
        ordered: list[tuple[int, LocaleDetectionRecord]] = sorted(
            enumerate(records), key=lambda item: item[1].timestamp, reverse=True
        )
        for index, record in ordered:
            key: _RecordKey = (record.locale, record.source, record.confidence)
            kept_at: int | None = last_kept.get(key)
            if kept_at is not None and kept_at - record.timestamp <= window:
                dropped.add(index)
                continue
            last_kept[key] = record.timestamp

        return [record for index, record in enumerate(records) if index not in dropped]

    def cleanup_duplicate_detections(self) -> StorageOperationResult[int]:
        """Collapse bursts of identical detections, keeping the most recent of each burst."""
        return self._rewrite("Duplicate detection cleanup", self._without_duplicates)

    def limit_history_size(self, max_records: int | None = None) -> StorageOperationResult[int]:
        """Keep only the ``max_records`` most recent records (100 by default)."""
        limit: int = self.settings.MAX_RECORDS if max_records is None else max(max_records, 0)

        def select(records: list[LocaleDetectionRecord]) -> list[LocaleDetectionRecord]:
            if len(records) <= limit:
                return records
            newest: list[LocaleDetectionRecord] = sorted(records, key=lambda r: r.timestamp, reverse=True)[:limit]
            return sorted(newest, key=lambda r: r.timestamp)

        return self._rewrite("History size limit", select)

    def clear_all_history(self) -> StorageOperationResult[None]:
        start: float = time.perf_counter()
        result: StorageOperationResult[DetectionHistory] = self.history.save_history(
            DetectionHistory(records=[], last_updated=TimeUtils.now_ms())
        )
        if not result.success:
            return StorageOperationResult(
                success=False,
                error=self._failure("Clearing history", result.error),
                response_time=TimeUtils.elapsed_ms(start),
            )
        logger.info("Detection history cleared")
        self.history.notify(StorageEventType.HISTORY_CLEANUP, action="clear")
        return StorageOperationResult(success=True, response_time=TimeUtils.elapsed_ms(start))

    def perform_maintenance(
        self, options: MaintenanceOptions | None = None
    ) -> StorageOperationResult[MaintenanceResult]:
        """Run the selected cleanup steps in order: expiry, duplicates, size.

        Args:
            options (MaintenanceOptions | None): Steps and limits; everything enabled by default.

        Returns:
            StorageOperationResult[MaintenanceResult]: Counts removed by each step. The first failing
                step aborts the run and its error is returned.
        """
        options = options if options is not None else MaintenanceOptions()
        start: float = time.perf_counter()
        summary = MaintenanceResult()

        steps: list[tuple[bool, str, Callable[[], StorageOperationResult[int]]]] = [
            (options.cleanup_expired, "expired_removed", lambda: self.cleanup_expired_detections(options.max_age)),
            (options.remove_duplicates, "duplicates_removed", self.cleanup_duplicate_detections),
            (options.limit_size, "size_reduced", lambda: self.limit_history_size(options.max_records)),
        ]
        for enabled, field_name, step in steps:
            if not enabled:
                continue
            result: StorageOperationResult[int] = step()
            if not result.success:
                return StorageOperationResult(
                    success=False,
                    error=result.error,
                    response_time=TimeUtils.elapsed_ms(start),
                )
            setattr(summary, field_name, result.data or 0)

        logger.info(
            "Maintenance finished: expired=%d duplicates=%d size=%d",
            summary.expired_removed,
            summary.duplicates_removed,
            summary.size_reduced,
        )
        self.history.notify(StorageEventType.HISTORY_CLEANUP, action="maintenance", **summary.to_dict())
        return StorageOperationResult(success=True, data=summary, response_time=TimeUtils.elapsed_ms(start))

    def get_maintenance_recommendations(self, max_records: int | None = None) -> MaintenanceRecommendations:
        """Inspect the history and suggest maintenance, without changing anything.

        Args:
            max_records (int | None): Recommended maximum; HISTORY.RECOMMENDED_MAX_RECORDS by default.

        Returns:
            MaintenanceRecommendations: Urgency (which only rises while checks run) and the findings.
        """
        limit: int = self.settings.RECOMMENDED_MAX_RECORDS if max_records is None else max_records
        advice = MaintenanceRecommendations()

        try:
            current: StorageOperationResult[DetectionHistory] = self.history.get_detection_history()
            invalid: StorageOperationResult[list[Any]] = self.history.find_invalid_records()
        except Exception as err:
            current = StorageOperationResult(success=False, error=str(err))
            invalid = StorageOperationResult(success=False, error=str(err))

        if not current.success or current.data is None or not invalid.success:
            advice.raise_urgency(Urgency.HIGH)
            advice.recommendations.append(f"History unavailable: {current.error or invalid.error}")
            return advice

        records: list[LocaleDetectionRecord] = current.data.records
        count: int = len(records) + len(invalid.data or [])

        if count > limit * self.OVERFLOW_FACTOR:
            advice.raise_urgency(Urgency.HIGH)
            advice.recommendations.append(f"Too many records ({count} > {limit}); limit the history size.")
        elif count > limit:
            advice.raise_urgency(Urgency.MEDIUM)
            advice.recommendations.append(f"Record count elevated ({count} > {limit}); consider limiting the history.")

        cutoff: int = TimeUtils.now_ms() - self.default_max_age
        expired: int = sum(1 for record in records if record.timestamp <= cutoff)
        if expired:
            advice.raise_urgency(Urgency.MEDIUM)
            advice.recommendations.append(f"Expired records present ({expired}); run the expiry cleanup.")

        duplicates: int = len(records) - len(self._without_duplicates(records))
        if duplicates:
            advice.raise_urgency(Urgency.MEDIUM)
            advice.recommendations.append(f"Duplicate records present ({duplicates}); run the duplicate cleanup.")

        if invalid.data:
            advice.raise_urgency(Urgency.HIGH)
            advice.recommendations.append(
                f"Invalid records present ({len(invalid.data)}); repair or clear the history."
            )

        if not advice.recommendations:
            advice.recommendations.append("History is healthy; no maintenance needed.")
        return advice
