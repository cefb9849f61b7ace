"""Core components of the locale pipeline.

This package contains the shared data container, the storage tiers, preference persistence,
detection history and its maintenance, the catalog cache and the metrics collector.
"""

from core.shared_data import SharedData
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "SharedData",
]
