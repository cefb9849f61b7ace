"""Locale detection history and its maintenance."""

from core.history.maintenance import HistoryMaintenance
from core.history.store import DetectionHistoryStore, validate_detection_record

__all__: list[str] = ["DetectionHistoryStore", "HistoryMaintenance", "validate_detection_record"]
