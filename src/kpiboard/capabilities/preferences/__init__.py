"""Preference capability exports."""

from .base import PreferenceStore
from .models import DEFAULT_PRESET_KEY, UserPreference

__all__ = ["PreferenceStore", "DEFAULT_PRESET_KEY", "UserPreference"]
