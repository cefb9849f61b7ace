"""Models for storage statistics, health checks and integrity reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from dataclasses_json import DataClassJsonMixin, dataclass_json

__all__: list[str] = [
    "HealthStatus",
    "HistoryStorageStats",
    "IntegrityReport",
    "StorageAvailability",
    "StorageHealthCheck",
    "StorageQuota",
    "StorageStats",
]


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


@dataclass_json
@dataclass
class HistoryStorageStats(DataClassJsonMixin):
    total_entries: int = 0
    unique_locales: int = 0
    oldest_entry: int = 0
    newest_entry: int = 0


@dataclass_json
@dataclass
class StorageStats(DataClassJsonMixin):
    """Footprint and activity of everything the pipeline keeps in storage.

    Attributes:
        total_size (int): Serialized size of all stored entries in bytes.
        item_count (int): Number of stored entries.
        last_activity (int): Newest timestamp found in the stored data, 0 when nothing is stored.
        freshness (float): 1.0 for data written just now, falling linearly to 0.0 after a week.
        breakdown (dict[str, int]): Size in bytes per stored entry.
        history_stats (HistoryStorageStats): Record counts and time span of the detection history.
        locale_distribution (dict[str, int]): Detection count per locale.
    """

    total_size: int = 0
    item_count: int = 0
    last_activity: int = 0
    freshness: float = 0.0
    breakdown: dict[str, int] = field(default_factory=dict)
    history_stats: HistoryStorageStats = field(default_factory=HistoryStorageStats)
    locale_distribution: dict[str, int] = field(default_factory=dict)


@dataclass_json
@dataclass
class StorageAvailability(DataClassJsonMixin):
    primary: bool = False
    secondary: bool = False


@dataclass_json
@dataclass
class StorageQuota(DataClassJsonMixin):
    used: int = 0
    available: int = 0
    total: int = 0
    usage_percentage: float = 0.0


@dataclass_json
@dataclass
class StorageHealthCheck(DataClassJsonMixin):
    """Outcome of a storage health check.

    Attributes:
        status (HealthStatus): Derived from the score: healthy from 0.8, warning from 0.5, error below.
        score (float): 1.0 minus a fixed deduction per issue, never below 0.0.
        issues (list[str]): Problems found.
        recommendations (list[str]): One suggestion per issue, or a single all-clear note.
        availability (StorageAvailability): Whether each tier accepted a test write.
        quota (StorageQuota): Usage against the configured quota.
        efficiency (float): Combined freshness, size and history-length score, 0.0 to 1.0.
        last_check (int): Epoch milliseconds of the check.
    """

    status: HealthStatus = HealthStatus.HEALTHY
    score: float = 1.0
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    availability: StorageAvailability = field(default_factory=StorageAvailability)
    quota: StorageQuota = field(default_factory=StorageQuota)
    efficiency: float = 1.0
    last_check: int = 0


@dataclass_json
@dataclass
class IntegrityReport(DataClassJsonMixin):
    issues: list[str] = field(default_factory=list)
    invalid_records: int = 0
