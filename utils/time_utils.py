from __future__ import annotations

import time
from typing import Final

__all__: list[str] = ["DAY_MS", "TimeUtils"]

DAY_MS: Final[int] = 24 * 60 * 60 * 1000


class TimeUtils:
    """Millisecond epoch helpers shared by the storage, history and metrics layers."""

    @staticmethod
    def now_ms() -> int:
        """Current wall-clock time as integer milliseconds since the epoch."""
        return time.time_ns() // 1_000_000

    @staticmethod
    def elapsed_ms(start: float) -> float:
        """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
        return (time.perf_counter() - start) * 1000.0

