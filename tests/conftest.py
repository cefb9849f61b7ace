"""Shared fixtures for the locale pipeline tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from core.storage.memory_store import MemoryKeyValueStore, MemoryStringStore
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    from pytest import MonkeyPatch

START_MS: int = 1_700_000_000_000


class FakeClock:
    """Replacement for TimeUtils.now_ms that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now: int = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock(monkeypatch: MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(TimeUtils, "now_ms", staticmethod(fake))
    return fake


@pytest.fixture
def primary() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def secondary() -> MemoryStringStore:
    return MemoryStringStore()
