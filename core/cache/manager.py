# ruff: noqa: BLE001
"""Translation catalog cache manager.

Serves catalogs from an LRU+TTL cache, loads missing ones through a catalog loader, and makes
sure that concurrent requests for the same locale share a single load. Every lookup and load is
reported to the metrics collector.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightManager
from core.cache.loader import CatalogLoadError
from core.cache.lru_cache import LRUCache
from core.metrics.collector import MetricsCollector
from models.cache_models import CacheEventType, CacheStats, Messages
from models.config_models import CacheSettings, LocaleSettings
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging

    from core.cache.loader import CatalogLoaderInterface
    from core.storage.interface import KeyValueStore
    from models.metrics_models import I18nMetrics

__all__: list[str] = ["MessageCacheManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class MessageCacheManager:
    """Cache of translation catalogs keyed by locale.

    A lookup first checks the cache. On a miss the locale is loaded once, however many callers
    ask for it at the same time, and the result is cached. Failed loads are never cached: the
    error is recorded and CatalogLoadError is raised to every waiting caller.

    Attributes:
        loader (CatalogLoaderInterface): Source of catalogs.
        metrics (MetricsCollector): Receives hits, misses, load times, errors and usage.
        cache (LRUCache[Messages]): Catalog cache.
    """

    def __init__(
        self,
        loader: CatalogLoaderInterface,
        *,
        cache_settings: CacheSettings | None = None,
        locale_settings: LocaleSettings | None = None,
        metrics: MetricsCollector | None = None,
        storage: KeyValueStore | None = None,
        production: bool = False,
    ) -> None:
        """Initialize the cache manager.

        Args:
            loader (CatalogLoaderInterface): Source of catalogs.
            cache_settings (CacheSettings | None): Size, TTL, persistence and warmup settings.
            locale_settings (LocaleSettings | None): Default and supported locales.
            metrics (MetricsCollector | None): Shared collector; a private one is created when omitted.
            storage (KeyValueStore | None): Primary tier for cache snapshots.
            production (bool): Suppresses snapshot failure logging.
        """
        self.loader: CatalogLoaderInterface = loader
        self.settings: CacheSettings = cache_settings if cache_settings is not None else CacheSettings()
        self.locales: LocaleSettings = locale_settings if locale_settings is not None else LocaleSettings()
        self.metrics: MetricsCollector = (
            metrics if metrics is not None else MetricsCollector(self.locales.SUPPORTED_LOCALES)
        )
        self.cache: LRUCache[Messages] = LRUCache(
            max_size=self.settings.MAX_SIZE,
            default_ttl=int(self.settings.TTL_SEC * 1000),
            metrics=self.metrics,
            storage=storage,
            storage_key=self.settings.STORAGE_KEY,
            enable_persistence=self.settings.ENABLE_PERSISTENCE,
            production=production,
        )
        self.inflight: InFlightManager[Messages] = InFlightManager()
        self._background: set[asyncio.Task[None]] = set()
        self._is_initialized: bool = False
        logger.debug("MessageCacheManager instance created")

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def component_load(self) -> None:
        await self.inflight.component_load()
        self._is_initialized = True
        logger.info("MessageCacheManager initialized with %d cached catalog(s)", self.cache.size())

    async def component_teardown(self) -> None:
        """Cancel warmup and pending loads, then close the loader."""
        logger.info("MessageCacheManager shutdown started")
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()

        await self.inflight.component_teardown()
        try:
            await self.loader.close()
        except Exception as err:
            logger.error("Error closing catalog loader: %s", err)
        self._is_initialized = False
        logger.info("MessageCacheManager shutdown completed")

    async def get_messages(self, locale: str) -> Messages:
        """Return the catalog of ``locale`` and count it as one use of that locale.

        Raises:
            CatalogLoadError: If the catalog had to be loaded and the load failed.
        """
        self.metrics.record_locale_usage(locale)
        return await self.preload_locale(locale)

    async def preload_locale(self, locale: str) -> Messages:
        """Return the cached catalog, joining or starting its load on a miss.

        Raises:
            CatalogLoadError: If the load failed or timed out.
        """
        cached: Messages | None = self.cache.get(locale)
        if cached is not None:
            return cached

        task: asyncio.Task[Messages] = self.inflight.join_or_start(locale, lambda: self._load(locale))
        return await asyncio.shield(task)

    async def _load(self, locale: str) -> Messages:
        self.metrics.events.emit(CacheEventType.PRELOAD_START, key=locale)
        start: float = time.perf_counter()
        timeout: float | None = self.settings.LOAD_TIMEOUT_SEC if self.settings.LOAD_TIMEOUT_SEC > 0 else None
        try:
            messages: Messages = await asyncio.wait_for(self.loader.load(locale), timeout=timeout)
        except CatalogLoadError as err:
            self.metrics.record_error()
            logger.error("%s", err)
            raise
        except TimeoutError as err:
            self.metrics.record_error()
            logger.error("Loading catalog '%s' timed out after %.1fs", locale, timeout)
            raise CatalogLoadError(locale, f"timed out after {timeout}s") from err
        except Exception as err:
            self.metrics.record_error()
            logger.error("Unexpected error loading catalog '%s': %s", locale, err)
            raise CatalogLoadError(locale, str(err)) from err

        load_time: float = TimeUtils.elapsed_ms(start)
        self.metrics.record_load_time(load_time)
        self.cache.set(locale, messages)
        logger.debug("Catalog '%s' loaded in %.1fms", locale, load_time)
        return messages

    async def _warm(self, locale: str) -> None:
        try:
            await self.preload_locale(locale)
        except Exception as err:
            logger.warning("Warmup of catalog '%s' failed: %s", locale, err)

    async def _warm_later(self, locales: list[str]) -> None:
        await asyncio.sleep(self.settings.WARMUP_DELAY_SEC)
        await asyncio.gather(*(self._warm(locale) for locale in locales))

    def _track(self, task: asyncio.Task[None]) -> asyncio.Task[None]:
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def warmup_cache(self) -> list[asyncio.Task[None]]:
        """Start preloading in the background and return the started tasks.

        The default locale starts immediately; the other supported locales follow after
        CACHE.WARMUP_DELAY_SEC. Failures are logged and never raised.
        """
        default: str = self.locales.DEFAULT_LOCALE
        others: list[str] = [locale for locale in self.locales.SUPPORTED_LOCALES if locale != default]

        tasks: list[asyncio.Task[None]] = [self._track(asyncio.create_task(self._warm(default)))]
        if others:
            tasks.append(self._track(asyncio.create_task(self._warm_later(others))))
        logger.debug("Cache warmup started: %s then %s", default, others)
        return tasks

    async def preload_all(self) -> dict[str, Messages]:
        """Load every supported locale concurrently; failed locales are logged and left out."""
        locales: list[str] = list(self.locales.SUPPORTED_LOCALES)
        results: list[Messages | BaseException] = await asyncio.gather(
            *(self.preload_locale(locale) for locale in locales), return_exceptions=True
        )

        loaded: dict[str, Messages] = {}
        for locale, result in zip(locales, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Preloading catalog '%s' failed: %s", locale, result)
                continue
            loaded[locale] = result
        return loaded

    def get_metrics(self) -> I18nMetrics:
        return self.metrics.get_metrics()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Catalog cache cleared")

    def reset_metrics(self) -> None:
        self.metrics.reset()
