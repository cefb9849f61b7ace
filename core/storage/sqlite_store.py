"""SQLite3-backed storage tiers.

Both stores share one lazily opened autocommit connection per instance. Values of the key-value
store are kept as JSON text; the string store keeps raw text with an optional expiry time.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from core.storage.interface import KeyValueStore, StorageError, StringStore
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["SQLiteKeyValueStore", "SQLiteStringStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class _SQLiteBackend:
    """Connection handling shared by the SQLite stores.

    Attributes:
        db_path (Path): Path to the SQLite database file, or ``:memory:``.
        _connection (sqlite3.Connection | None): Active database connection.
    """

    TABLE_DDL: str = ""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store with the path to the database file.

        Args:
            db_path (str | Path): Path to the SQLite database file.

        Raises:
            StorageError: If the database path is empty.
        """
        logger.debug("Initializing %s", self.__class__.__name__)

        if str(db_path).strip() == "":
            msg: str = "The database path is empty."
            raise StorageError(msg)

        self.db_path: Path = Path(db_path)
        self._connection: sqlite3.Connection | None = None
        logger.debug("Database path set to: %s", self.db_path)

    def __enter__(self) -> Self:
        self._initialize_database()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        self.close()

    def _initialize_database(self) -> None:
        """Open the connection and create the table if it does not exist."""
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute(self.TABLE_DDL)
        except sqlite3.Error as err:
            msg: str = f"Failed to open database '{self.db_path}': {err}"
            raise StorageError(msg) from err
        logger.debug("Database initialized successfully: %s", self.db_path)

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._initialize_database()
        # _initialize_database either sets the connection or raises
        assert self._connection is not None
        return self._connection

    def _execute(self, sql: str, params: tuple[Any, ...]) -> sqlite3.Cursor:
        try:
            return self.connection.execute(sql, params)
        except sqlite3.Error as err:
            msg: str = f"SQLite operation failed: {err}"
            raise StorageError(msg) from err

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")


class SQLiteKeyValueStore(_SQLiteBackend, KeyValueStore):
    """Durable JSON key-value store; the primary storage tier."""

    TABLE_DDL = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at INTEGER NOT NULL
        )
        """

    def get(self, key: str) -> Any | None:
        row: sqlite3.Row | None = self._execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            logger.debug("No value stored for key: %s", key)
            return None

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as err:
            msg: str = f"Stored value for '{key}' is not valid JSON: {err}"
            raise StorageError(msg) from err

    def set(self, key: str, value: Any) -> None:
        try:
            payload: str = json.dumps(value, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as err:
            msg: str = f"Value for '{key}' is not JSON serializable: {err}"
            raise StorageError(msg) from err

        self._execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, payload, TimeUtils.now_ms()),
        )
        logger.debug("Saved value for key: %s", key)

    def remove(self, key: str) -> None:
        self._execute("DELETE FROM kv_store WHERE key = ?", (key,))
        logger.debug("Deleted value for key: %s", key)


class SQLiteStringStore(_SQLiteBackend, StringStore):
    """Expiring string store; the secondary storage tier.

    Expired rows are treated as absent and deleted on read.
    """

    TABLE_DDL = """
        CREATE TABLE IF NOT EXISTS string_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            expires_at INTEGER
        )
        """

    def get(self, key: str) -> str | None:
        row: sqlite3.Row | None = self._execute(
            "SELECT value, expires_at FROM string_store WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None

        expires_at: int | None = row["expires_at"]
        if expires_at is not None and TimeUtils.now_ms() >= expires_at:
            logger.debug("Entry '%s' expired; removing it", key)
            self.remove(key)
            return None
        return str(row["value"])

    def set(self, key: str, value: str, *, max_age: float | None = None) -> None:
        expires_at: int | None = None
        if max_age is not None:
            expires_at = TimeUtils.now_ms() + int(max_age * 1000)

        self._execute(
            "INSERT OR REPLACE INTO string_store (key, value, expires_at) VALUES (?, ?, ?)",
            (key, str(value), expires_at),
        )
        logger.debug("Saved string for key: %s (expires_at=%s)", key, expires_at)

    def remove(self, key: str) -> None:
        self._execute("DELETE FROM string_store WHERE key = ?", (key,))
