from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

from models.cache_models import WILDCARD, CacheEvent, CacheEventType
from models.locale_models import StorageEvent, StorageEventType
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = ["CacheEventBus", "CacheEventListener", "StorageEventBus", "StorageEventListener"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type CacheEventListener = Callable[[CacheEvent], None]
type StorageEventListener = Callable[[StorageEvent], None]


class _EventBus[E: StrEnum, V]:
    """Typed publish/subscribe channels keyed by the members of one event enum.

    Listeners subscribe to one event type or to the ``"*"`` wildcard, which receives every
    event. A listener that raises is logged and skipped; the remaining listeners and the
    emitting call are not affected.
    """

    def __init__(self, event_types: type[E], kind: str) -> None:
        self._kind: str = kind
        self._listeners: dict[str, list[Callable[[V], None]]] = {WILDCARD: []}
        for event_type in event_types:
            self._listeners[event_type.value] = []

    def _channel(self, event_type: E | str) -> str | None:
        channel: str = str(event_type)
        if channel not in self._listeners:
            logger.warning("Ignoring unknown %s event type: '%s'", self._kind, channel)
            return None
        return channel

    def add_listener(self, event_type: E | str, listener: Callable[[V], None]) -> None:
        channel: str | None = self._channel(event_type)
        if channel is None:
            return
        self._listeners[channel].append(listener)

    def remove_listener(self, event_type: E | str, listener: Callable[[V], None]) -> None:
        channel: str | None = self._channel(event_type)
        if channel is None:
            return
        try:
            self._listeners[channel].remove(listener)
        except ValueError:
            logger.debug("Listener was not registered on channel '%s'", channel)

    def listener_count(self, event_type: E | str | None = None) -> int:
        if event_type is None:
            return sum(len(listeners) for listeners in self._listeners.values())
        return len(self._listeners.get(str(event_type), []))

    def _deliver(self, event_type: E, event: V) -> V:
        # Copy: a listener may unsubscribe itself while being notified.
        targets: list[Callable[[V], None]] = [*self._listeners[event_type.value], *self._listeners[WILDCARD]]
        for listener in targets:
            try:
                listener(event)
            except Exception as err:  # noqa: BLE001
                logger.error("Error in %s event listener: %s", self._kind, err)
        return event

    def clear(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()


class CacheEventBus(_EventBus[CacheEventType, CacheEvent]):
    """Event channels of the translation catalog cache."""

    def __init__(self) -> None:
        super().__init__(CacheEventType, "cache")

    def emit(
        self,
        event_type: CacheEventType,
        *,
        key: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CacheEvent:
        """Build an event and deliver it to the typed channel, then to the wildcard channel."""
        event = CacheEvent(type=event_type, key=key, metadata=metadata or {})
        return self._deliver(event_type, event)


class StorageEventBus(_EventBus[StorageEventType, StorageEvent]):
    """Change notifications of the preference store and the detection history."""

    def __init__(self) -> None:
        super().__init__(StorageEventType, "storage")

    def emit(
        self,
        event_type: StorageEventType,
        *,
        source: str,
        data: dict[str, Any] | None = None,
    ) -> StorageEvent:
        """Deliver a storage event.

        Args:
            event_type (StorageEventType): What changed.
            source (str): Name of the emitting component.
            data (dict[str, Any] | None): Event payload (locale, tier, counts, error...).

        Returns:
            StorageEvent: The delivered event.
        """
        event = StorageEvent(type=event_type, source=source, data=data or {})
        return self._deliver(event_type, event)
