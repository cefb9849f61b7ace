"""Abstract storage tiers used by the preference, history and cache layers.

The primary tier is a durable key-value store holding JSON-compatible values. The secondary tier
is a small string store whose entries can expire, comparable to a browser cookie jar.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

__all__: list[str] = ["KeyValueStore", "StorageError", "StringStore"]


class StorageError(Exception):
    """Raised when a storage tier cannot read, write or decode a value."""


class KeyValueStore(ABC):
    """Durable store of JSON-compatible values."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent.

        Raises:
            StorageError: If the backend fails or the stored value cannot be decoded.
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageError: If the backend fails or the value is not JSON serializable.
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is not an error."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources. The default implementation holds none."""


class StringStore(ABC):
    """Small string store whose entries may carry a maximum age."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored string, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: str, *, max_age: float | None = None) -> None:
        """Store ``value`` under ``key``.

        Args:
            key (str): Entry name.
            value (str): Raw string value.
            max_age (float | None): Lifetime in seconds; None keeps the entry until removed.
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is not an error."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources. The default implementation holds none."""
