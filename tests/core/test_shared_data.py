"""Tests for SharedData wiring."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from core.cache.loader import HTTPCatalogLoader, JSONFileCatalogLoader
from core.shared_data import SharedData
from core.storage.sqlite_store import SQLiteKeyValueStore, SQLiteStringStore
from models.config_models import Config
from models.locale_models import StorageEventType

if TYPE_CHECKING:
    from pathlib import Path

    from core.storage.memory_store import MemoryKeyValueStore, MemoryStringStore
    from models.locale_models import StorageEvent


@pytest.fixture
def config(tmp_path: Path) -> Config:
    messages_dir: Path = tmp_path / "messages"
    messages_dir.mkdir()
    (messages_dir / "en.json").write_text(json.dumps({"greeting": "Hello"}), encoding="utf-8")

    config = Config()
    config.STORAGE.DB_PATH = str(tmp_path / "pipeline.db")
    config.CACHE.MESSAGES_DIR = str(messages_dir)
    config.CACHE.WARMUP_DELAY_SEC = 0.0
    return config


@pytest.mark.asyncio
async def test_defaults_to_sqlite_and_file_loader(config: Config) -> None:
    shared = SharedData(config)
    await shared.async_init()

    assert isinstance(shared.primary_storage, SQLiteKeyValueStore)
    assert isinstance(shared.secondary_storage, SQLiteStringStore)
    assert isinstance(shared.cache_manager.loader, JSONFileCatalogLoader)
    assert shared.config is config
    await shared.component_teardown()


@pytest.mark.asyncio
async def test_http_loader_when_url_configured(config: Config) -> None:
    config.CACHE.MESSAGES_URL = "https://cdn.example.com/messages"
    shared = SharedData(config)
    await shared.async_init()

    assert isinstance(shared.cache_manager.loader, HTTPCatalogLoader)
    await shared.component_teardown()


@pytest.mark.asyncio
async def test_components_share_storage_and_metrics(
    config: Config, primary: MemoryKeyValueStore, secondary: MemoryStringStore
) -> None:
    shared = SharedData(config)
    await shared.async_init(primary=primary, secondary=secondary)
    await shared.component_load()

    saved = shared.preference_store.save_user_preference(
        {"locale": "zh", "source": "browser", "confidence": 0.7, "timestamp": 1_700_000_000_000}
    )
    await shared.cache_manager.get_messages("en")

    assert saved.success is True
    assert shared.history.get_detection_stats().total_records == 1
    assert shared.maintenance.history is shared.history
    assert shared.cache_manager.metrics is shared.metrics
    assert shared.metrics.get_metrics().locale_usage["en"] == 1
    assert primary.get("locale_preference")["locale"] == "zh"
    await shared.component_teardown()


@pytest.mark.asyncio
async def test_production_flag_reaches_components(config: Config) -> None:
    config.GENERAL.ENVIRONMENT = "production"
    shared = SharedData(config)
    await shared.async_init()

    assert shared.preference_store._production is True
    assert shared.history._production is True
    await shared.component_teardown()


@pytest.mark.asyncio
async def test_stores_publish_on_shared_storage_events(
    config: Config, primary: MemoryKeyValueStore, secondary: MemoryStringStore
) -> None:
    shared = SharedData(config)
    await shared.async_init(primary=primary, secondary=secondary)
    received: list[StorageEvent] = []
    shared.storage_events.add_listener("*", received.append)

    shared.preference_store.save_user_preference(
        {"locale": "zh", "source": "browser", "confidence": 0.7, "timestamp": 1_700_000_000_000}
    )
    health = shared.analytics.perform_health_check()

    assert shared.history.events is shared.storage_events
    assert shared.preference_store.events is shared.storage_events
    assert shared.analytics.preferences is shared.preference_store
    assert shared.analytics.history is shared.history
    assert [event.type for event in received] == [StorageEventType.HISTORY_UPDATED, StorageEventType.PREFERENCE_SAVED]
    assert health.success is True
    assert health.data is not None
    assert health.data.quota.total == config.STORAGE.QUOTA_BYTES
    await shared.component_teardown()
