"""Locale preference persistence across the two storage tiers.

Reads resolve in a fixed order: the JSON preference of the primary tier, then the raw locale
string of the secondary tier, then a synthesized default. A read therefore always yields a
preference unless a storage backend raises.
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

from core.metrics.events import StorageEventBus
from models.config_models import LocaleSettings, StorageSettings
from models.locale_models import (
    PreferenceComparison,
    PreferenceSource,
    PreferenceSourceInfo,
    PreferenceSummary,
    StorageEventType,
    StorageTier,
    UserLocalePreference,
)
from models.result_models import StorageOperationResult, ValidationResult
from utils.logger_utils import LoggerUtils
from utils.time_utils import DAY_MS, TimeUtils

if TYPE_CHECKING:
    import logging

    from core.history.store import DetectionHistoryStore
    from core.storage.interface import KeyValueStore, StringStore

# ruff: noqa: BLE001

__all__: list[str] = ["PreferenceStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_CONFIDENCE: Final[float] = 0.5
SECONDARY_CONFIDENCE: Final[float] = 0.8
OVERRIDE_CONFIDENCE: Final[float] = 1.0
CONFIDENCE_TOLERANCE: Final[float] = 0.01
TIMESTAMP_TOLERANCE_MS: Final[int] = 1000
EVENT_SOURCE: Final[str] = "preference_store"


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def _clamp(value: float) -> float:
    """Clamp a confidence to 0.0 to 1.0; NaN and infinities become the default confidence."""
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return min(max(float(value), 0.0), 1.0)


class PreferenceStore:
    """Validates, normalizes, persists and resolves the user's locale preference.

    The primary tier holds the full preference as JSON. The secondary tier only holds the raw
    locale string with a maximum age, so it can still answer when the primary tier was wiped.
    The tiers are written independently; a failed secondary write does not undo the primary one.

    Attributes:
        primary (KeyValueStore): Durable JSON store.
        secondary (StringStore): Expiring string store.
        history (DetectionHistoryStore | None): Receives one record per saved preference.
        events (StorageEventBus): Receives preference and override change events.
    """

    def __init__(
        self,
        primary: KeyValueStore,
        secondary: StringStore,
        *,
        storage_settings: StorageSettings | None = None,
        locale_settings: LocaleSettings | None = None,
        history: DetectionHistoryStore | None = None,
        events: StorageEventBus | None = None,
        production: bool = False,
    ) -> None:
        logger.debug("Initializing %s", self.__class__.__name__)
        self.primary: KeyValueStore = primary
        self.secondary: StringStore = secondary
        self.history: DetectionHistoryStore | None = history
        self.events: StorageEventBus = events if events is not None else StorageEventBus()
        self._storage: StorageSettings = storage_settings if storage_settings is not None else StorageSettings()
        self._locales: LocaleSettings = locale_settings if locale_settings is not None else LocaleSettings()
        self._production: bool = production

    @property
    def preference_key(self) -> str:
        return self._storage.PREFERENCE_KEY

    @property
    def override_key(self) -> str:
        return self._storage.OVERRIDE_KEY

    @property
    def secondary_max_age(self) -> float:
        """Lifetime of the secondary-tier entry in seconds."""
        return self._storage.COOKIE_MAX_AGE_DAYS * DAY_MS / 1000

    def _failure(self, operation: str, err: Exception | str) -> str:
        message: str = str(err)
        if not self._production:
            logger.error("%s failed: %s", operation, message)
        self._notify(StorageEventType.PREFERENCE_ERROR, operation=operation, error=message)
        return message

    def _notify(self, event_type: StorageEventType, **data: Any) -> None:
        self.events.emit(event_type, source=EVENT_SOURCE, data=data)

    @staticmethod
    def _as_mapping(candidate: Any) -> Mapping[str, Any] | None:
        if isinstance(candidate, UserLocalePreference):
            return candidate.to_dict()
        if isinstance(candidate, Mapping):
            return candidate
        return None

    def validate_preference_data(self, candidate: Any) -> ValidationResult:
        """Check the structure of a preference without raising.

        Args:
            candidate (Any): UserLocalePreference or decoded JSON value.

        Returns:
            ValidationResult: Validity and the problems found.
        """
        data: Mapping[str, Any] | None = self._as_mapping(candidate)
        if data is None:
            return ValidationResult(is_valid=False, errors=["Invalid preference data structure"])

        errors: list[str] = []
        locale: Any = data.get("locale")
        if not isinstance(locale, str) or not locale:
            errors.append("Invalid locale")
        source: Any = data.get("source")
        if not isinstance(source, str) or not source:
            errors.append("Invalid source")
        confidence: Any = data.get("confidence")
        if not _is_finite_number(confidence) or not 0.0 <= confidence <= 1.0:
            errors.append("Invalid confidence")
        timestamp: Any = data.get("timestamp")
        if not _is_finite_number(timestamp) or timestamp <= 0:
            errors.append("Invalid timestamp")
        if data.get("metadata") is not None and not isinstance(data.get("metadata"), Mapping):
            errors.append("Invalid metadata")

        return ValidationResult(is_valid=not errors, errors=errors)

    def normalize_preference(self, candidate: Any) -> UserLocalePreference:
        """Clamp the confidence and fill in a missing or non-finite timestamp or metadata.

        Locale and source are carried over as they are; call validate_preference_data for those.
        """
        data: Mapping[str, Any] = self._as_mapping(candidate) or {}

        confidence: Any = data.get("confidence")
        timestamp: Any = data.get("timestamp")
        metadata: Any = data.get("metadata")
        return UserLocalePreference(
            locale=str(data.get("locale") or ""),
            source=str(data.get("source") or ""),
            confidence=_clamp(confidence) if _is_number(confidence) else DEFAULT_CONFIDENCE,
            timestamp=int(timestamp) if _is_finite_number(timestamp) and timestamp > 0 else TimeUtils.now_ms(),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )

    def create_default_preference(self, locale: str | None = None) -> UserLocalePreference:
        return UserLocalePreference(
            locale=locale or self._locales.DEFAULT_LOCALE,
            source=PreferenceSource.DEFAULT,
            confidence=DEFAULT_CONFIDENCE,
            timestamp=TimeUtils.now_ms(),
            metadata={},
        )

    def _write(self, preference: UserLocalePreference) -> None:
        """Write both tiers. Only a primary-tier failure propagates."""
        self.primary.set(self.preference_key, preference.to_dict())
        try:
            self.secondary.set(self.preference_key, preference.locale, max_age=self.secondary_max_age)
        except Exception as err:
            self._failure("Writing the secondary preference tier", err)

    def save_user_preference(self, preference: Any) -> StorageOperationResult[UserLocalePreference]:
        """Validate, normalize and persist a preference, then record the detection.

        Args:
            preference (Any): UserLocalePreference or mapping with the same fields.

        Returns:
            StorageOperationResult[UserLocalePreference]: The stored preference on success.
        """
        start: float = time.perf_counter()
        validation: ValidationResult = self.validate_preference_data(preference)
        if not validation.is_valid:
            return StorageOperationResult(
                success=False,
                error=f"Invalid preference data: {', '.join(validation.errors)}",
                response_time=TimeUtils.elapsed_ms(start),
            )

        normalized: UserLocalePreference = self.normalize_preference(preference)
        try:
            self._write(normalized)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Saving the locale preference", err),
                response_time=TimeUtils.elapsed_ms(start),
            )

        if self.history is not None:
            recorded = self.history.add_detection_record(
                normalized.locale, normalized.source, normalized.confidence, normalized.metadata or None
            )
            if not recorded.success:
                logger.warning("Preference saved but the detection record was not: %s", recorded.error)

        logger.debug("Saved locale preference: %s (%s)", normalized.locale, normalized.source)
        self._notify(
            StorageEventType.PREFERENCE_SAVED,
            locale=normalized.locale,
            source=normalized.source,
            confidence=normalized.confidence,
        )
        return StorageOperationResult(
            success=True,
            data=normalized,
            source=StorageTier.PRIMARY,
            response_time=TimeUtils.elapsed_ms(start),
        )

    def _read_primary(self) -> UserLocalePreference | None:
        raw: Any = self.primary.get(self.preference_key)
        if raw is None:
            return None
        if not self.validate_preference_data(raw).is_valid:
            logger.warning("Ignoring invalid preference in the primary tier")
            return None
        return self.normalize_preference(raw)

    def _resolve(self) -> tuple[UserLocalePreference, StorageTier]:
        stored: UserLocalePreference | None = self._read_primary()
        if stored is not None:
            return stored, StorageTier.PRIMARY

        raw_locale: str | None = self.secondary.get(self.preference_key)
        if raw_locale:
            synthesized = UserLocalePreference(
                locale=raw_locale,
                source=PreferenceSource.USER,
                confidence=SECONDARY_CONFIDENCE,
                timestamp=TimeUtils.now_ms(),
                metadata={"tier": StorageTier.SECONDARY.value},
            )
            return synthesized, StorageTier.SECONDARY
        return self.create_default_preference(), StorageTier.DEFAULT

    def get_user_preference(self) -> StorageOperationResult[UserLocalePreference]:
        """Resolve the preference: primary tier, then secondary tier, then the default."""
        start: float = time.perf_counter()
        try:
            preference, tier = self._resolve()
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Reading the locale preference", err),
                response_time=TimeUtils.elapsed_ms(start),
            )

        self._notify(StorageEventType.PREFERENCE_LOADED, locale=preference.locale, tier=tier.value)
        return StorageOperationResult(
            success=True, data=preference, source=tier, response_time=TimeUtils.elapsed_ms(start)
        )

    def _primary_available(self) -> bool:
        try:
            return self._read_primary() is not None
        except Exception as err:
            self._failure("Checking the primary preference tier", err)
            return False

    def _secondary_available(self) -> bool:
        try:
            return bool(self.secondary.get(self.preference_key))
        except Exception as err:
            self._failure("Checking the secondary preference tier", err)
            return False

    def has_user_preference(self) -> bool:
        return self._primary_available() or self._secondary_available()

    def update_preference_confidence(self, confidence: float) -> StorageOperationResult[UserLocalePreference]:
        """Persist the current (or default) preference with a new clamped confidence.

        NaN and infinite confidences are rejected with an unsuccessful result.
        """
        start: float = time.perf_counter()
        if not _is_finite_number(confidence):
            return StorageOperationResult(
                success=False,
                error=f"Invalid confidence: {confidence!r}",
                response_time=TimeUtils.elapsed_ms(start),
            )
        current: StorageOperationResult[UserLocalePreference] = self.get_user_preference()
        base: UserLocalePreference = (
            current.data if current.success and current.data else self.create_default_preference()
        )

        updated = UserLocalePreference(
            locale=base.locale,
            source=base.source,
            confidence=_clamp(confidence),
            timestamp=TimeUtils.now_ms(),
            metadata=dict(base.metadata),
        )
        try:
            self._write(updated)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Updating the preference confidence", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        self._notify(
            StorageEventType.PREFERENCE_SAVED,
            locale=updated.locale,
            source=updated.source,
            confidence=updated.confidence,
        )
        return StorageOperationResult(
            success=True, data=updated, source=StorageTier.PRIMARY, response_time=TimeUtils.elapsed_ms(start)
        )

    def clear_user_preference(self) -> StorageOperationResult[None]:
        start: float = time.perf_counter()
        try:
            self.primary.remove(self.preference_key)
            self.secondary.remove(self.preference_key)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Clearing the locale preference", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        logger.debug("Cleared locale preference")
        self._notify(StorageEventType.PREFERENCE_CLEARED)
        return StorageOperationResult(success=True, response_time=TimeUtils.elapsed_ms(start))

    @staticmethod
    def compare_preferences(first: UserLocalePreference, second: UserLocalePreference) -> PreferenceComparison:
        """Compare two preferences, ignoring tiny confidence and timestamp drift.

        Returns:
            PreferenceComparison: Equality and one ``"<field>: <a> vs <b>"`` entry per difference.
        """
        differences: list[str] = []
        if first.locale != second.locale:
            differences.append(f"locale: {first.locale} vs {second.locale}")
        if first.source != second.source:
            differences.append(f"source: {first.source} vs {second.source}")
        if abs(first.confidence - second.confidence) > CONFIDENCE_TOLERANCE:
            differences.append(f"confidence: {first.confidence} vs {second.confidence}")
        if abs(first.timestamp - second.timestamp) > TIMESTAMP_TOLERANCE_MS:
            differences.append(f"timestamp: {first.timestamp} vs {second.timestamp}")
        return PreferenceComparison(is_equal=not differences, differences=differences)

    def get_preference_source_priority(self) -> list[PreferenceSourceInfo]:
        return [
            PreferenceSourceInfo(source=StorageTier.PRIMARY, priority=1, available=self._primary_available()),
            PreferenceSourceInfo(source=StorageTier.SECONDARY, priority=2, available=self._secondary_available()),
            PreferenceSourceInfo(source=StorageTier.DEFAULT, priority=3, available=True),
        ]

    def get_preference_summary(self) -> PreferenceSummary:
        try:
            result: StorageOperationResult[UserLocalePreference] = self.get_user_preference()
            if not result.success or result.data is None:
                return PreferenceSummary()

            preference: UserLocalePreference = result.data
            return PreferenceSummary(
                has_preference=True,
                locale=preference.locale,
                source=preference.source,
                confidence=preference.confidence,
                age=TimeUtils.now_ms() - preference.timestamp,
                is_valid=self.validate_preference_data(preference).is_valid,
            )
        except Exception as err:
            self._failure("Summarizing the locale preference", err)
            return PreferenceSummary()

    def set_user_override(self, locale: str) -> StorageOperationResult[UserLocalePreference]:
        """Store an explicit locale choice that takes precedence over any detection.

        Raises nothing; an empty or unsupported locale yields an unsuccessful result.
        """
        start: float = time.perf_counter()
        if not locale or locale not in self._locales.SUPPORTED_LOCALES:
            return StorageOperationResult(
                success=False,
                error=f"Unsupported locale: '{locale}'",
                response_time=TimeUtils.elapsed_ms(start),
            )

        override = UserLocalePreference(
            locale=locale,
            source=PreferenceSource.USER_OVERRIDE,
            confidence=OVERRIDE_CONFIDENCE,
            timestamp=TimeUtils.now_ms(),
            metadata={},
        )
        try:
            self.primary.set(self.override_key, override.to_dict())
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Saving the locale override", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        logger.info("User locale override set to '%s'", locale)
        self._notify(StorageEventType.OVERRIDE_SET, locale=locale)
        return StorageOperationResult(
            success=True, data=override, source=StorageTier.PRIMARY, response_time=TimeUtils.elapsed_ms(start)
        )

    def get_user_override(self) -> StorageOperationResult[UserLocalePreference]:
        """Return the stored override; ``data`` is None when no valid override exists."""
        start: float = time.perf_counter()
        try:
            raw: Any = self.primary.get(self.override_key)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Reading the locale override", err),
                response_time=TimeUtils.elapsed_ms(start),
            )

        override: UserLocalePreference | None = None
        if raw is not None and self.validate_preference_data(raw).is_valid:
            override = self.normalize_preference(raw)
        return StorageOperationResult(
            success=True,
            data=override,
            source=StorageTier.PRIMARY if override is not None else None,
            response_time=TimeUtils.elapsed_ms(start),
        )

    def clear_user_override(self) -> StorageOperationResult[None]:
        start: float = time.perf_counter()
        try:
            self.primary.remove(self.override_key)
        except Exception as err:
            return StorageOperationResult(
                success=False,
                error=self._failure("Clearing the locale override", err),
                response_time=TimeUtils.elapsed_ms(start),
            )
        self._notify(StorageEventType.OVERRIDE_CLEARED)
        return StorageOperationResult(success=True, response_time=TimeUtils.elapsed_ms(start))
