"""Pipeline metrics and the cache event bus.

Provides the MetricsCollector that derives hit/error rates, load-time percentiles and a
performance grade, together with the typed publish/subscribe buses for cache and storage events.
"""

from core.metrics.collector import MetricsCollector, format_metrics
from core.metrics.events import CacheEventBus, CacheEventListener, StorageEventBus, StorageEventListener

__all__: list[str] = [
    "CacheEventBus",
    "CacheEventListener",
    "MetricsCollector",
    "StorageEventBus",
    "StorageEventListener",
    "format_metrics",
]
