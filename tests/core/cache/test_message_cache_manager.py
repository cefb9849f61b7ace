"""Tests for MessageCacheManager.

Covers cache hits, load coalescing, failure handling, timeouts, warmup and teardown.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from core.cache.loader import CatalogLoaderInterface, CatalogLoadError
from core.cache.manager import MessageCacheManager
from models.cache_models import CacheEventType
from models.config_models import CacheSettings, LocaleSettings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from core.storage.memory_store import MemoryKeyValueStore
    from models.cache_models import CacheEvent, Messages

CATALOGS: dict[str, Messages] = {
    "en": {"greeting": "Hello"},
    "zh": {"greeting": "你好"},
}


class _FakeLoader(CatalogLoaderInterface):
    """Serves CATALOGS; waits on ``gate`` first when one is given."""

    def __init__(self, gate: asyncio.Event | None = None, error: Exception | None = None) -> None:
        self.gate: asyncio.Event | None = gate
        self.error: Exception | None = error
        self.calls: list[str] = []
        self.closed: bool = False

    async def load(self, locale: str) -> Messages:
        self.calls.append(locale)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if locale not in CATALOGS:
            raise CatalogLoadError(locale, "not found")
        return CATALOGS[locale]

    async def close(self) -> None:
        self.closed = True


def _settings(**overrides: float | int | bool) -> CacheSettings:
    settings = CacheSettings(ENABLE_PERSISTENCE=False, WARMUP_DELAY_SEC=0.0, LOAD_TIMEOUT_SEC=5.0)
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


@pytest.fixture
def loader() -> _FakeLoader:
    return _FakeLoader()


@pytest.fixture
async def manager(loader: _FakeLoader) -> AsyncGenerator[MessageCacheManager]:
    cache_manager = MessageCacheManager(loader, cache_settings=_settings())
    await cache_manager.component_load()
    yield cache_manager
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_component_lifecycle(loader: _FakeLoader) -> None:
    cache_manager = MessageCacheManager(loader, cache_settings=_settings())
    await cache_manager.component_load()
    assert cache_manager.is_initialized is True

    await cache_manager.component_teardown()

    assert cache_manager.is_initialized is False
    assert loader.closed is True


@pytest.mark.asyncio
async def test_get_messages_loads_once_then_hits(manager: MessageCacheManager, loader: _FakeLoader) -> None:
    first: Messages = await manager.get_messages("en")
    second: Messages = await manager.get_messages("en")

    assert first == {"greeting": "Hello"}
    assert second is first
    assert loader.calls == ["en"]

    metrics = manager.get_metrics()
    assert metrics.cache_hit_rate == pytest.approx(0.5)
    assert metrics.locale_usage["en"] == 2
    assert metrics.load_time >= 0.0


@pytest.mark.asyncio
async def test_concurrent_preloads_share_one_load() -> None:
    gate = asyncio.Event()
    loader = _FakeLoader(gate=gate)
    cache_manager = MessageCacheManager(loader, cache_settings=_settings())

    first = asyncio.create_task(cache_manager.preload_locale("zh"))
    second = asyncio.create_task(cache_manager.preload_locale("zh"))
    await asyncio.sleep(0)
    assert cache_manager.inflight.is_inflight("zh") is True

    gate.set()
    results: list[Messages] = await asyncio.gather(first, second)

    assert loader.calls == ["zh"]
    assert results[0] is results[1]
    assert results[0] == {"greeting": "你好"}
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_failed_load_is_not_cached(manager: MessageCacheManager, loader: _FakeLoader) -> None:
    with pytest.raises(CatalogLoadError, match="not found"):
        await manager.get_messages("fr")
    with pytest.raises(CatalogLoadError):
        await manager.get_messages("fr")

    assert loader.calls == ["fr", "fr"]
    assert manager.cache.has("fr") is False
    assert manager.get_metrics().error_rate == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_unexpected_loader_error_is_wrapped() -> None:
    loader = _FakeLoader(error=RuntimeError("disk on fire"))
    cache_manager = MessageCacheManager(loader, cache_settings=_settings())

    with pytest.raises(CatalogLoadError) as exc_info:
        await cache_manager.preload_locale("en")

    assert exc_info.value.reason == "disk on fire"
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_load_timeout() -> None:
    loader = _FakeLoader(gate=asyncio.Event())
    cache_manager = MessageCacheManager(loader, cache_settings=_settings(LOAD_TIMEOUT_SEC=0.05))

    with pytest.raises(CatalogLoadError, match="timed out"):
        await cache_manager.preload_locale("en")

    assert cache_manager.get_metrics().error_rate == pytest.approx(1.0)
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_load_events(manager: MessageCacheManager) -> None:
    seen: list[CacheEvent] = []
    manager.metrics.events.add_listener("*", seen.append)

    await manager.preload_locale("en")

    assert [event.type for event in seen] == [
        CacheEventType.MISS,
        CacheEventType.PRELOAD_START,
        CacheEventType.PRELOAD_COMPLETE,
        CacheEventType.SET,
    ]
    assert seen[1].key == "en"


@pytest.mark.asyncio
async def test_warmup_cache_loads_every_supported_locale(loader: _FakeLoader) -> None:
    cache_manager = MessageCacheManager(
        loader,
        cache_settings=_settings(),
        locale_settings=LocaleSettings(DEFAULT_LOCALE="zh", SUPPORTED_LOCALES=["en", "zh", "ja"]),
    )

    tasks: list[asyncio.Task[None]] = cache_manager.warmup_cache()
    await asyncio.gather(*tasks)

    assert loader.calls[0] == "zh"
    assert sorted(loader.calls) == ["en", "ja", "zh"]
    assert sorted(cache_manager.cache.keys()) == ["en", "zh"]
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_teardown_cancels_delayed_warmup(loader: _FakeLoader) -> None:
    cache_manager = MessageCacheManager(loader, cache_settings=_settings(WARMUP_DELAY_SEC=30.0))

    tasks: list[asyncio.Task[None]] = cache_manager.warmup_cache()
    await tasks[0]
    await cache_manager.component_teardown()

    assert tasks[1].cancelled() is True
    assert loader.calls == ["en"]


@pytest.mark.asyncio
async def test_preload_all_skips_failures(loader: _FakeLoader) -> None:
    cache_manager = MessageCacheManager(
        loader,
        cache_settings=_settings(),
        locale_settings=LocaleSettings(DEFAULT_LOCALE="en", SUPPORTED_LOCALES=["en", "zh", "ja"]),
    )

    loaded: dict[str, Messages] = await cache_manager.preload_all()

    assert loaded == CATALOGS
    await cache_manager.component_teardown()


@pytest.mark.asyncio
async def test_stats_clear_and_reset(manager: MessageCacheManager) -> None:
    await manager.get_messages("en")
    await manager.get_messages("zh")

    assert manager.get_cache_stats().size == 2

    manager.clear_cache()
    manager.reset_metrics()

    assert manager.get_cache_stats().size == 0
    assert manager.get_metrics().locale_usage == {"en": 0, "zh": 0}


@pytest.mark.asyncio
async def test_cache_survives_restart_with_persistence(primary: MemoryKeyValueStore) -> None:
    first_loader = _FakeLoader()
    first = MessageCacheManager(first_loader, cache_settings=_settings(ENABLE_PERSISTENCE=True), storage=primary)
    await first.get_messages("en")
    await first.component_teardown()

    second_loader = _FakeLoader()
    second = MessageCacheManager(second_loader, cache_settings=_settings(ENABLE_PERSISTENCE=True), storage=primary)

    assert await second.get_messages("en") == {"greeting": "Hello"}
    assert second_loader.calls == []
    await second.component_teardown()
