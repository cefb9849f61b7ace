"""Locale preference and detection history models.

The stored shapes (preference, detection record, history) are serialized with dataclasses_json
in camelCase so the JSON written to the durable store matches what browser-side code reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

from utils.time_utils import TimeUtils

__all__: list[str] = [
    "DetectionHistory",
    "DetectionStats",
    "LocaleDetectionRecord",
    "PreferenceComparison",
    "PreferenceSource",
    "PreferenceSourceInfo",
    "PreferenceSummary",
    "StorageEvent",
    "StorageEventType",
    "StorageTier",
    "UserLocalePreference",
]


class PreferenceSource(StrEnum):
    """How a locale was chosen."""

    USER = "user"
    BROWSER = "browser"
    GEO = "geo"
    URL = "url"
    DEFAULT = "default"
    USER_OVERRIDE = "user_override"


class StorageTier(StrEnum):
    """Where a preference was read from, in fallback order."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    DEFAULT = "default"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class UserLocalePreference(DataClassJsonMixin):
    """The single active locale preference of a storage tier.

    Attributes:
        locale (str): Locale code such as ``en`` or ``zh``.
        source (str): A PreferenceSource value describing the provenance.
        confidence (float): Certainty of the choice, 0.0 to 1.0 after normalization.
        timestamp (int): Epoch milliseconds of the decision.
        metadata (dict[str, Any]): Free-form detector data.
    """

    locale: str
    source: str
    confidence: float
    timestamp: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class LocaleDetectionRecord(DataClassJsonMixin):
    """One detection event. Records are never modified after being appended."""

    locale: str
    source: str
    confidence: float
    timestamp: int
    metadata: dict[str, Any] | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class DetectionHistory(DataClassJsonMixin):
    """Append-only detection log, oldest record first."""

    records: list[LocaleDetectionRecord] = field(default_factory=list)
    last_updated: int = 0


@dataclass
class PreferenceSourceInfo:
    source: StorageTier
    priority: int
    available: bool


@dataclass
class PreferenceComparison:
    is_equal: bool
    differences: list[str] = field(default_factory=list)


@dataclass
class PreferenceSummary:
    """Condensed view of the resolved preference.

    Attributes:
        has_preference (bool): True when a preference (stored or default) was resolved.
        locale (str | None): Resolved locale.
        source (str | None): Provenance of the resolved preference.
        confidence (float | None): Confidence of the resolved preference.
        age (int | None): Milliseconds since the preference timestamp.
        is_valid (bool): Whether the resolved preference passes structural validation.
    """

    has_preference: bool = False
    locale: str | None = None
    source: str | None = None
    confidence: float | None = None
    age: int | None = None
    is_valid: bool = False


@dataclass_json
@dataclass
class DetectionStats(DataClassJsonMixin):
    """Aggregates derived from the detection history."""

    total_records: int = 0
    locale_counts: dict[str, int] = field(default_factory=dict)
    source_counts: dict[str, int] = field(default_factory=dict)
    average_confidence: float = 0.0
    most_common_locale: str | None = None
    oldest_timestamp: int | None = None
    newest_timestamp: int | None = None


class StorageEventType(StrEnum):
    """Changes announced by the preference store and the detection history."""

    PREFERENCE_SAVED = "preference_saved"
    PREFERENCE_LOADED = "preference_loaded"
    PREFERENCE_CLEARED = "preference_cleared"
    PREFERENCE_ERROR = "preference_error"
    OVERRIDE_SET = "override_set"
    OVERRIDE_CLEARED = "override_cleared"
    HISTORY_UPDATED = "history_updated"
    HISTORY_CLEANUP = "history_cleanup"
    HISTORY_ERROR = "history_error"


@dataclass
class StorageEvent:
    """A single notification published on the storage event bus.

    Attributes:
        type (StorageEventType): Event kind.
        source (str): Emitting component.
        data (dict[str, Any]): Event payload.
        timestamp (int): Epoch milliseconds when the event was created.
    """

    type: StorageEventType
    source: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: TimeUtils.now_ms())
