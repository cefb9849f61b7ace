"""Shared data management for the locale pipeline.

This module defines the SharedData class, the single place where the storage tiers, metrics
collector, storage event bus, detection history, preference store, storage analytics and
catalog cache are built from a Config and wired together. Nothing in the pipeline is a module-level singleton.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.cache.loader import HTTPCatalogLoader, JSONFileCatalogLoader
from core.cache.manager import MessageCacheManager
from core.history.maintenance import HistoryMaintenance
from core.history.store import DetectionHistoryStore
from core.metrics.collector import MetricsCollector
from core.metrics.events import StorageEventBus
from core.preference.store import PreferenceStore
from core.storage.analytics import StorageAnalytics
from core.storage.sqlite_store import SQLiteKeyValueStore, SQLiteStringStore
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.cache.loader import CatalogLoaderInterface
    from core.storage.interface import KeyValueStore, StringStore
    from models.config_models import Config


__all__: list[str] = ["SharedData"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass
class SharedData:
    _config: Config = field()
    _primary: KeyValueStore = field(init=False)
    _secondary: StringStore = field(init=False)
    _metrics: MetricsCollector = field(init=False)
    _storage_events: StorageEventBus = field(init=False)
    _history: DetectionHistoryStore = field(init=False)
    _maintenance: HistoryMaintenance = field(init=False)
    _preference_store: PreferenceStore = field(init=False)
    _analytics: StorageAnalytics = field(init=False)
    _cache_manager: MessageCacheManager = field(init=False)

    async def async_init(
        self,
        *,
        primary: KeyValueStore | None = None,
        secondary: StringStore | None = None,
        loader: CatalogLoaderInterface | None = None,
    ) -> None:
        """Build every component.

        Args:
            primary (KeyValueStore | None): Primary tier; SQLite at STORAGE.DB_PATH when omitted.
            secondary (StringStore | None): Secondary tier; SQLite at STORAGE.DB_PATH when omitted.
            loader (CatalogLoaderInterface | None): Catalog source; chosen from CACHE settings when omitted.
        """
        config: Config = self.config
        production: bool = config.GENERAL.is_production

        self._primary = primary if primary is not None else SQLiteKeyValueStore(config.STORAGE.DB_PATH)
        self._secondary = secondary if secondary is not None else SQLiteStringStore(config.STORAGE.DB_PATH)
        self._metrics = MetricsCollector(
            config.LOCALE.SUPPORTED_LOCALES,
            load_time_samples=config.METRICS.LOAD_TIME_SAMPLES,
        )
        self._storage_events = StorageEventBus()
        self._history = DetectionHistoryStore(
            self._primary,
            history_key=config.STORAGE.HISTORY_KEY,
            events=self._storage_events,
            production=production,
        )
        self._maintenance = HistoryMaintenance(self._history, settings=config.HISTORY, production=production)
        self._preference_store = PreferenceStore(
            self._primary,
            self._secondary,
            storage_settings=config.STORAGE,
            locale_settings=config.LOCALE,
            history=self._history,
            events=self._storage_events,
            production=production,
        )
        self._analytics = StorageAnalytics(
            self._preference_store,
            self._history,
            quota_bytes=config.STORAGE.QUOTA_BYTES,
            production=production,
        )
        self._cache_manager = MessageCacheManager(
            loader if loader is not None else self._default_loader(),
            cache_settings=config.CACHE,
            locale_settings=config.LOCALE,
            metrics=self._metrics,
            storage=self._primary,
            production=production,
        )
        logger.debug("SharedData initialized (environment=%s)", config.GENERAL.ENVIRONMENT)

    def _default_loader(self) -> CatalogLoaderInterface:
        if self.config.CACHE.MESSAGES_URL:
            return HTTPCatalogLoader(self.config.CACHE.MESSAGES_URL, total_timeout=self.config.CACHE.LOAD_TIMEOUT_SEC)
        return JSONFileCatalogLoader(self.config.CACHE.MESSAGES_DIR)

    async def component_load(self) -> None:
        await self._cache_manager.component_load()

    async def component_teardown(self) -> None:
        """Stop the cache manager and close both storage tiers."""
        await self._cache_manager.component_teardown()
        self._secondary.close()
        self._primary.close()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def primary_storage(self) -> KeyValueStore:
        return self._primary

    @property
    def secondary_storage(self) -> StringStore:
        return self._secondary

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def storage_events(self) -> StorageEventBus:
        return self._storage_events

    @property
    def history(self) -> DetectionHistoryStore:
        return self._history

    @property
    def maintenance(self) -> HistoryMaintenance:
        return self._maintenance

    @property
    def preference_store(self) -> PreferenceStore:
        return self._preference_store

    @property
    def analytics(self) -> StorageAnalytics:
        return self._analytics

    @property
    def cache_manager(self) -> MessageCacheManager:
        return self._cache_manager
