"""Data models for the locale pipeline.

This package contains dataclass definitions for configuration, locale preferences and detection
history, storage events and results, storage analytics, the catalog cache, maintenance and
metrics reports.
"""

from __future__ import annotations

from models.analytics_models import (
    HealthStatus,
    HistoryStorageStats,
    IntegrityReport,
    StorageAvailability,
    StorageHealthCheck,
    StorageQuota,
    StorageStats,
)
from models.cache_models import WILDCARD, CacheEvent, CacheEventType, CacheItem, CacheStats, Messages
from models.config_models import (
    CacheSettings,
    Config,
    General,
    HistorySettings,
    LocaleSettings,
    MetricsSettings,
    StorageSettings,
)
from models.locale_models import (
    DetectionHistory,
    DetectionStats,
    LocaleDetectionRecord,
    PreferenceComparison,
    PreferenceSource,
    PreferenceSourceInfo,
    PreferenceSummary,
    StorageEvent,
    StorageEventType,
    StorageTier,
    UserLocalePreference,
)
from models.maintenance_models import MaintenanceOptions, MaintenanceRecommendations, MaintenanceResult, Urgency
from models.metrics_models import (
    DetailedStats,
    I18nMetrics,
    LoadTimePercentiles,
    LocaleDistribution,
    PerformanceReport,
)
from models.result_models import StorageOperationResult, ValidationResult

__all__: list[str] = [
    "WILDCARD",
    "CacheEvent",
    "CacheEventType",
    "CacheItem",
    "CacheSettings",
    "CacheStats",
    "Config",
    "DetailedStats",
    "DetectionHistory",
    "DetectionStats",
    "General",
    "HealthStatus",
    "HistorySettings",
    "HistoryStorageStats",
    "I18nMetrics",
    "IntegrityReport",
    "LoadTimePercentiles",
    "LocaleDetectionRecord",
    "LocaleDistribution",
    "LocaleSettings",
    "MaintenanceOptions",
    "MaintenanceRecommendations",
    "MaintenanceResult",
    "Messages",
    "MetricsSettings",
    "PerformanceReport",
    "PreferenceComparison",
    "PreferenceSource",
    "PreferenceSourceInfo",
    "PreferenceSummary",
    "StorageAvailability",
    "StorageEvent",
    "StorageEventType",
    "StorageHealthCheck",
    "StorageOperationResult",
    "StorageQuota",
    "StorageSettings",
    "StorageStats",
    "StorageTier",
    "Urgency",
    "UserLocalePreference",
    "ValidationResult",
]
