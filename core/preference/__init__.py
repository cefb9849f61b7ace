"""Locale preference persistence."""

from core.preference.store import PreferenceStore

__all__: list[str] = ["PreferenceStore"]
