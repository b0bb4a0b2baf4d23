"""Preference storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from kpiboard.core.auth import Credential

from .models import UserPreference


class PreferenceStore(ABC):
    """Key/value preferences of the calling user.

    Rows are scoped to the user behind ``credential``; a save replaces the
    value previously stored under the same key.
    """

    @abstractmethod
    async def get(self, key: str, *, credential: Credential) -> Optional[UserPreference]:
        ...

    @abstractmethod
    async def upsert(
        self, key: str, value: Dict[str, Any], *, credential: Credential
    ) -> UserPreference:
        ...
