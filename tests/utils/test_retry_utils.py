from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from utils.retry_utils import retry_async

if TYPE_CHECKING:
    from pytest import MonkeyPatch


@pytest.fixture
def sleeps(monkeypatch: MonkeyPatch) -> list[float]:
    """Record requested sleep durations instead of waiting."""
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.mark.asyncio
async def test_retry_returns_first_success_without_waiting(sleeps: list[float]) -> None:
    calls: list[int] = []

    async def succeed() -> str:
        calls.append(1)
        return "ok"

    assert await retry_async(succeed) == "ok"
    assert len(calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_retry_waits_linearly_between_attempts(sleeps: list[float]) -> None:
    attempts: list[int] = []

    async def flaky() -> int:
        attempts.append(1)
        if len(attempts) < 3:
            msg = "temporary"
            raise ConnectionError(msg)
        return len(attempts)

    assert await retry_async(flaky, max_attempts=3, delay=1.0) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_reraises_last_error(sleeps: list[float]) -> None:
    attempts: list[int] = []

    async def always_fail() -> None:
        attempts.append(1)
        msg = f"failure {len(attempts)}"
        raise RuntimeError(msg)

    with pytest.raises(RuntimeError, match="failure 3"):
        await retry_async(always_fail, max_attempts=3, delay=0.5)
    assert sleeps == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_caps_wait_with_max_delay(sleeps: list[float]) -> None:
    async def always_fail() -> None:
        msg = "down"
        raise OSError(msg)

    with pytest.raises(OSError, match="down"):
        await retry_async(always_fail, max_attempts=4, delay=2.0, max_delay=3.0)
    assert sleeps == [2.0, 3.0, 3.0]


@pytest.mark.asyncio
async def test_retry_rejects_non_positive_attempts() -> None:
    async def unused() -> None:
        return None

    with pytest.raises(ValueError, match="max_attempts"):
        await retry_async(unused, max_attempts=0)
