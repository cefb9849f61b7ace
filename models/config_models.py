"""Configuration data models for the locale pipeline.

Each dataclass mirrors one section of ``locale_pipeline.ini``. Field names are the INI keys,
and the default values double as the type hints used by the loader when coercing strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "CacheSettings",
    "Config",
    "General",
    "HistorySettings",
    "LocaleSettings",
    "MetricsSettings",
    "StorageSettings",
]


@dataclass
class General:
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_FILE: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@dataclass
class LocaleSettings:
    DEFAULT_LOCALE: str = "en"
    SUPPORTED_LOCALES: list[str] = field(default_factory=lambda: ["en", "zh"])


@dataclass
class StorageSettings:
    DB_PATH: str = "locale_pipeline.db"
    PREFERENCE_KEY: str = "locale_preference"
    OVERRIDE_KEY: str = "user_locale_override"
    HISTORY_KEY: str = "locale_detection_history"
    COOKIE_MAX_AGE_DAYS: int = 365
    QUOTA_BYTES: int = 5 * 1024 * 1024


@dataclass
class CacheSettings:
    MAX_SIZE: int = 100
    TTL_SEC: float = 3600.0
    ENABLE_PERSISTENCE: bool = True
    STORAGE_KEY: str = "i18n_cache"
    WARMUP_DELAY_SEC: float = 0.1
    LOAD_TIMEOUT_SEC: float = 10.0
    MESSAGES_DIR: str = "messages"
    MESSAGES_URL: str = ""


@dataclass
class HistorySettings:
    MAX_RECORDS: int = 100
    RECOMMENDED_MAX_RECORDS: int = 30
    MAX_AGE_DAYS: int = 30
    # Records with the same locale/source/confidence this close together count as one detection.
    DUPLICATE_WINDOW_MS: int = 1000


@dataclass
class MetricsSettings:
    LOAD_TIME_SAMPLES: int = 100


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    LOCALE: LocaleSettings = field(default_factory=LocaleSettings)
    STORAGE: StorageSettings = field(default_factory=StorageSettings)
    CACHE: CacheSettings = field(default_factory=CacheSettings)
    HISTORY: HistorySettings = field(default_factory=HistorySettings)
    METRICS: MetricsSettings = field(default_factory=MetricsSettings)
