"""Storage statistics, health checks and integrity validation.

Everything here only reads the stored data, except the availability check of the health check,
which writes and removes one test entry per tier.
"""

from __future__ import annotations

import json
import math
import time
from collections import Counter
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

from models.analytics_models import (
    HealthStatus,
    HistoryStorageStats,
    IntegrityReport,
    StorageAvailability,
    StorageHealthCheck,
    StorageQuota,
    StorageStats,
)
from models.result_models import StorageOperationResult
from utils.logger_utils import LoggerUtils
from utils.time_utils import DAY_MS, TimeUtils

if TYPE_CHECKING:
    import logging

    from core.history.store import DetectionHistoryStore
    from core.preference.store import PreferenceStore
    from models.locale_models import DetectionHistory

# ruff: noqa: BLE001

__all__: list[str] = ["StorageAnalytics"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_QUOTA_BYTES: Final[int] = 5 * 1024 * 1024
FRESHNESS_WINDOW_MS: Final[int] = 7 * DAY_MS
HISTORY_ENTRY_LIMIT: Final[int] = 1000
QUOTA_WARNING_SHARE: Final[float] = 0.8
CHECK_KEY: Final[str] = "__storage_health_check__"
CHECK_MAX_AGE_SEC: Final[float] = 60.0

# Sizes beyond which the efficiency score starts to drop.
EFFICIENT_SIZE_BYTES: Final[int] = 1024 * 1024
EFFICIENT_HISTORY_ENTRIES: Final[int] = 100

HEALTHY_SCORE: Final[float] = 0.8
WARNING_SCORE: Final[float] = 0.5

ISSUE_PRIMARY_UNAVAILABLE: Final[str] = "Primary storage tier unavailable"
ISSUE_SECONDARY_UNAVAILABLE: Final[str] = "Secondary storage tier unavailable"
ISSUE_STALE_DATA: Final[str] = "Stored data is stale"
ISSUE_HIGH_USAGE: Final[str] = "Storage usage is high"
ISSUE_LONG_HISTORY: Final[str] = "Too many detection history records"

# (deduction, recommendation) per issue
ISSUE_RULES: Final[dict[str, tuple[float, str]]] = {
    ISSUE_PRIMARY_UNAVAILABLE: (0.4, "Check that the primary database is reachable and writable."),
    ISSUE_SECONDARY_UNAVAILABLE: (0.2, "Check that the secondary store is reachable and writable."),
    ISSUE_STALE_DATA: (0.2, "Refresh or clean up data that has not been updated for a week."),
    ISSUE_HIGH_USAGE: (0.1, "Remove unneeded detection history to free storage."),
    ISSUE_LONG_HISTORY: (0.1, "Run history maintenance regularly to limit old detection records."),
}
CRITICAL_RECOMMENDATION: Final[str] = "Check the storage configuration immediately."
ALL_CLEAR_RECOMMENDATION: Final[str] = "Storage is healthy; keep monitoring it periodically."


def _serialized_size(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return len(json.dumps(value, ensure_ascii=False).encode("utf-8"))


def _timestamp_of(value: Any, key: str) -> int:
    if not isinstance(value, Mapping):
        return 0
    stamp: Any = value.get(key)
    if isinstance(stamp, bool) or not isinstance(stamp, int | float) or not math.isfinite(stamp):
        return 0
    return int(stamp)


class StorageAnalytics:
    """Statistics, health and integrity of the preference tiers and the detection history.

    Attributes:
        preferences (PreferenceStore): Owner of both storage tiers and the preference keys.
        history (DetectionHistoryStore): Detection history kept in the primary tier.
        quota_bytes (int): Storage quota the usage is measured against.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        history: DetectionHistoryStore,
        *,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        production: bool = False,
    ) -> None:
        self.preferences: PreferenceStore = preferences
        self.history: DetectionHistoryStore = history
        self.quota_bytes: int = quota_bytes
        self._production: bool = production

    def _failure(self, operation: str, err: Exception | str) -> str:
        message: str = str(err)
        if not self._production:
            logger.error("%s failed: %s", operation, message)
        return message

    def calculate_storage_stats(self) -> StorageStats:
        """Measure the stored entries.

        Raises:
            StorageError: If a storage tier cannot be read.
        """
        primary = self.preferences.primary
        preference_raw: Any = primary.get(self.preferences.preference_key)
        override_raw: Any = primary.get(self.preferences.override_key)
        history_raw: Any = primary.get(self.history.history_key)
        secondary_raw: str | None = self.preferences.secondary.get(self.preferences.preference_key)

        breakdown: dict[str, int] = {
            "preference": _serialized_size(preference_raw),
            "override": _serialized_size(override_raw),
            "history": _serialized_size(history_raw),
            "secondary": _serialized_size(secondary_raw),
        }

        loaded: StorageOperationResult[DetectionHistory] = self.history.get_detection_history()
        history: DetectionHistory | None = loaded.data if loaded.success else None
        timestamps: list[int] = [record.timestamp for record in history.records] if history else []
        distribution: Counter[str] = Counter(record.locale for record in history.records) if history else Counter()

        last_activity: int = max(
            _timestamp_of(preference_raw, "timestamp"),
            _timestamp_of(override_raw, "timestamp"),
            history.last_updated if history else 0,
            max(timestamps, default=0),
        )
        freshness: float = 0.0
        if last_activity > 0:
            age: int = TimeUtils.now_ms() - last_activity
            freshness = min(max(1.0 - age / FRESHNESS_WINDOW_MS, 0.0), 1.0)

        return StorageStats(
            total_size=sum(breakdown.values()),
            item_count=sum(value is not None for value in (preference_raw, override_raw, history_raw, secondary_raw)),
            last_activity=last_activity,
            freshness=freshness,
            breakdown=breakdown,
            history_stats=HistoryStorageStats(
                total_entries=len(timestamps),
                unique_locales=len(distribution),
                oldest_entry=min(timestamps, default=0),
                newest_entry=max(timestamps, default=0),
            ),
            locale_distribution=dict(distribution),
        )

    def get_storage_stats(self) -> StorageOperationResult[StorageStats]:
        start: float = time.perf_counter()
        try:
            stats: StorageStats = self.calculate_storage_stats()
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Collecting storage statistics", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        return StorageOperationResult(success=True, data=stats, response_time=TimeUtils.elapsed_ms(start))

    def check_availability(self) -> StorageAvailability:
        """Write, read back and remove a test entry on each tier."""
        availability = StorageAvailability()
        primary = self.preferences.primary
        try:
            primary.set(CHECK_KEY, {"check": True})
            availability.primary = primary.get(CHECK_KEY) == {"check": True}
            primary.remove(CHECK_KEY)
        except Exception as err:
            logger.warning("Primary storage tier check failed: %s", err)

        secondary = self.preferences.secondary
        try:
            secondary.set(CHECK_KEY, "check", max_age=CHECK_MAX_AGE_SEC)
            availability.secondary = secondary.get(CHECK_KEY) == "check"
            secondary.remove(CHECK_KEY)
        except Exception as err:
            logger.warning("Secondary storage tier check failed: %s", err)
        return availability

    @staticmethod
    def calculate_storage_efficiency(stats: StorageStats) -> float:
        """Score freshness, total size and history length together, 0.0 to 1.0."""
        efficiency: float = 0.6 + 0.4 * stats.freshness
        size_efficiency: float = min(1.0, EFFICIENT_SIZE_BYTES / max(stats.total_size, 1))
        efficiency *= 0.7 + 0.3 * size_efficiency
        history_efficiency: float = min(1.0, EFFICIENT_HISTORY_ENTRIES / max(stats.history_stats.total_entries, 1))
        efficiency *= 0.7 + 0.3 * history_efficiency
        return min(max(efficiency, 0.0), 1.0)

    def calculate_health_check(self) -> StorageHealthCheck:
        """Check both tiers and grade the stored data.

        Data that has never been written is not reported as stale.
        """
        availability: StorageAvailability = self.check_availability()
        issues: list[str] = []
        if not availability.primary:
            issues.append(ISSUE_PRIMARY_UNAVAILABLE)
        if not availability.secondary:
            issues.append(ISSUE_SECONDARY_UNAVAILABLE)

        measured: StorageOperationResult[StorageStats] = self.get_storage_stats()
        stats: StorageStats = measured.data if measured.success and measured.data is not None else StorageStats()
        if stats.last_activity > 0 and stats.freshness < 0.5:
            issues.append(ISSUE_STALE_DATA)
        if stats.total_size > self.quota_bytes * QUOTA_WARNING_SHARE:
            issues.append(ISSUE_HIGH_USAGE)
        if stats.history_stats.total_entries > HISTORY_ENTRY_LIMIT:
            issues.append(ISSUE_LONG_HISTORY)

        score: float = round(max(1.0 - sum(ISSUE_RULES[issue][0] for issue in issues), 0.0), 2)
        if score >= HEALTHY_SCORE:
            status = HealthStatus.HEALTHY
        elif score >= WARNING_SCORE:
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.ERROR

        recommendations: list[str] = [ISSUE_RULES[issue][1] for issue in issues]
        if score < WARNING_SCORE:
            recommendations.insert(0, CRITICAL_RECOMMENDATION)
        if not recommendations:
            recommendations.append(ALL_CLEAR_RECOMMENDATION)

        return StorageHealthCheck(
            status=status,
            score=score,
            issues=issues,
            recommendations=recommendations,
            availability=availability,
            quota=StorageQuota(
                used=stats.total_size,
                available=max(self.quota_bytes - stats.total_size, 0),
                total=self.quota_bytes,
                usage_percentage=stats.total_size / self.quota_bytes * 100,
            ),
            efficiency=self.calculate_storage_efficiency(stats),
            last_check=TimeUtils.now_ms(),
        )

    def perform_health_check(self) -> StorageOperationResult[StorageHealthCheck]:
        start: float = time.perf_counter()
        try:
            check: StorageHealthCheck = self.calculate_health_check()
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Storage health check", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        if check.status is not HealthStatus.HEALTHY:
            logger.warning("Storage health %s (score %.2f): %s", check.status, check.score, ", ".join(check.issues))
        return StorageOperationResult(success=True, data=check, response_time=TimeUtils.elapsed_ms(start))

    def validate_storage_integrity(self) -> StorageOperationResult[IntegrityReport]:
        """Check the stored preference, override and history, and that both tiers agree.

        Returns:
            StorageOperationResult[IntegrityReport]: Successful only when no issue was found; the
                report is attached either way. A storage failure yields no report.
        """
        start: float = time.perf_counter()
        report = IntegrityReport()
        preferences: PreferenceStore = self.preferences
        try:
            preference_raw: Any = preferences.primary.get(preferences.preference_key)
            preference_valid: bool = preference_raw is not None
            if preference_raw is not None and not preferences.validate_preference_data(preference_raw).is_valid:
                report.issues.append("Invalid preference data in the primary tier")
                preference_valid = False

            override_raw: Any = preferences.primary.get(preferences.override_key)
            if override_raw is not None and not preferences.validate_preference_data(override_raw).is_valid:
                report.issues.append("Invalid override data in the primary tier")

            invalid: StorageOperationResult[list[Any]] = self.history.find_invalid_records()
            if not invalid.success:
                report.issues.append(f"Invalid detection history: {invalid.error}")
            elif invalid.data:
                report.invalid_records = len(invalid.data)
                report.issues.append(f"{report.invalid_records} invalid detection record(s)")

            secondary_locale: str | None = preferences.secondary.get(preferences.preference_key)
            if preference_valid:
                primary_locale: Any = preference_raw.get("locale")
                if not secondary_locale:
                    report.issues.append("Preference is missing from the secondary tier")
                elif secondary_locale != primary_locale:
                    report.issues.append(
                        f"Storage tiers disagree: primary '{primary_locale}' vs secondary '{secondary_locale}'"
                    )
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Validating storage integrity", err),
                response_time=TimeUtils.elapsed_ms(start),
            )

        if report.issues:
            logger.warning("Storage integrity issues: %s", "; ".join(report.issues))
        return StorageOperationResult(
            success=not report.issues,
            data=report,
            error="; ".join(report.issues) or None,
            response_time=TimeUtils.elapsed_ms(start),
        )
