"""Storage tiers for preferences, detection history and cache snapshots."""

from core.storage.analytics import StorageAnalytics
from core.storage.interface import KeyValueStore, StorageError, StringStore
from core.storage.memory_store import MemoryKeyValueStore, MemoryStringStore
from core.storage.sqlite_store import SQLiteKeyValueStore, SQLiteStringStore

__all__: list[str] = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MemoryStringStore",
    "SQLiteKeyValueStore",
    "SQLiteStringStore",
    "StorageAnalytics",
    "StorageError",
    "StringStore",
]
