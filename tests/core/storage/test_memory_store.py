"""Tests for the in-memory storage tiers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from core.storage.interface import StorageError

if TYPE_CHECKING:
    from core.storage.memory_store import MemoryKeyValueStore, MemoryStringStore
    from tests.conftest import FakeClock


def test_memory_kv_isolates_callers(primary: MemoryKeyValueStore) -> None:
    value: dict[str, list[int]] = {"records": [1]}
    primary.set("history", value)
    value["records"].append(2)

    stored = primary.get("history")
    assert stored == {"records": [1]}

    stored["records"].append(3)
    assert primary.get("history") == {"records": [1]}


def test_memory_kv_rejects_unserializable(primary: MemoryKeyValueStore) -> None:
    with pytest.raises(StorageError):
        primary.set("key", {1, 2})


@pytest.mark.parametrize("number", [float("nan"), float("inf"), float("-inf")])
def test_memory_kv_rejects_non_finite_numbers(primary: MemoryKeyValueStore, number: float) -> None:
    with pytest.raises(StorageError):
        primary.set("key", {"confidence": number})

    assert "key" not in primary


def test_memory_kv_remove_and_contains(primary: MemoryKeyValueStore) -> None:
    primary.set("key", 1)
    assert "key" in primary

    primary.remove("key")
    primary.remove("key")

    assert "key" not in primary
    assert primary.get("key") is None


def test_memory_string_store_max_age(secondary: MemoryStringStore, clock: FakeClock) -> None:
    secondary.set("locale", "en", max_age=1)

    clock.advance(999)
    assert secondary.get("locale") == "en"

    clock.advance(1)
    assert secondary.get("locale") is None


def test_memory_string_store_remove(secondary: MemoryStringStore) -> None:
    secondary.set("locale", "en")
    secondary.remove("locale")

    assert secondary.get("locale") is None
