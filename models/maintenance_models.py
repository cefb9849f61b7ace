"""Models for detection history maintenance."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from dataclasses_json import DataClassJsonMixin, dataclass_json

__all__: list[str] = [
    "MaintenanceOptions",
    "MaintenanceRecommendations",
    "MaintenanceResult",
    "Urgency",
]


class Urgency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


@dataclass
class MaintenanceOptions:
    """Which maintenance steps to run.

    Attributes:
        cleanup_expired (bool): Remove records older than ``max_age``.
        max_age (int | None): Expiry age in milliseconds; None uses the configured default.
        remove_duplicates (bool): Collapse near-simultaneous identical detections.
        limit_size (bool): Truncate the history to ``max_records``.
        max_records (int | None): Size limit; None uses the configured default.
    """

    cleanup_expired: bool = True
    max_age: int | None = None
    remove_duplicates: bool = True
    limit_size: bool = True
    max_records: int | None = None


@dataclass_json
@dataclass
class MaintenanceResult(DataClassJsonMixin):
    expired_removed: int = 0
    duplicates_removed: int = 0
    size_reduced: int = 0


@dataclass_json
@dataclass
class MaintenanceRecommendations(DataClassJsonMixin):
    urgency: Urgency = Urgency.LOW
    recommendations: list[str] = field(default_factory=list)

    def raise_urgency(self, level: Urgency) -> None:
        """Raise the urgency to ``level`` unless it is already higher."""
        if level.rank > self.urgency.rank:
            self.urgency = level
