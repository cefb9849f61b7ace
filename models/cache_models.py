"""Models for the translation catalog cache and its event stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

from utils.time_utils import TimeUtils

__all__: list[str] = [
    "WILDCARD",
    "CacheEvent",
    "CacheEventType",
    "CacheItem",
    "CacheStats",
    "Messages",
]

type Messages = dict[str, Any]

WILDCARD: Final[str] = "*"


class CacheEventType(StrEnum):
    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DELETE = "delete"
    CLEAR = "clear"
    EXPIRE = "expire"
    PRELOAD_START = "preload_start"
    PRELOAD_COMPLETE = "preload_complete"
    PRELOAD_ERROR = "preload_error"


@dataclass
class CacheEvent:
    """A single notification published on the cache event bus.

    Attributes:
        type (CacheEventType): Event kind.
        timestamp (int): Epoch milliseconds when the event was created.
        key (str | None): Cache key concerned, if any.
        metadata (dict[str, Any]): Event-specific values (rates, counts, load time...).
    """

    type: CacheEventType
    timestamp: int = field(default_factory=TimeUtils.now_ms)
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CacheItem[T]:
    """Cached value with its freshness bookkeeping.

    Attributes:
        data (T): Cached payload.
        timestamp (int): Epoch milliseconds when the item was stored.
        ttl (int): Lifetime in milliseconds.
        hits (int): Number of reads served from this item.
    """

    data: T
    timestamp: int
    ttl: int
    hits: int = 0

    def is_expired(self, now: int) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheStats:
    size: int = 0
    max_size: int = 0
    total_hits: int = 0
    average_age: float = 0.0
