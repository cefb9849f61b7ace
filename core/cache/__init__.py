"""Translation catalog cache package.

Provides the LRU+TTL catalog cache, in-flight load coalescing and the catalog loaders.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightManager
from core.cache.loader import CatalogLoaderInterface, CatalogLoadError, HTTPCatalogLoader, JSONFileCatalogLoader
from core.cache.lru_cache import LRUCache
from core.cache.manager import MessageCacheManager

__all__: list[str] = [
    "CatalogLoadError",
    "CatalogLoaderInterface",
    "HTTPCatalogLoader",
    "InFlightManager",
    "JSONFileCatalogLoader",
    "LRUCache",
    "MessageCacheManager",
]
