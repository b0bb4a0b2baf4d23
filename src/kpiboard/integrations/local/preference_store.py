"""In-memory preference store."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from kpiboard.capabilities.preferences import PreferenceStore, UserPreference
from kpiboard.core.auth import Credential


class InMemoryPreferenceStore(PreferenceStore):
    """Non-persistent reference implementation keyed by ``(token, key)``."""

    def __init__(self) -> None:
        self._prefs: Dict[Tuple[str, str], UserPreference] = {}
        self._ids = itertools.count(1)

    async def get(self, key: str, *, credential: Credential) -> Optional[UserPreference]:
        pref = self._prefs.get((credential.token, key))
        return pref.model_copy(deep=True) if pref is not None else None

    async def upsert(
        self, key: str, value: Dict[str, Any], *, credential: Credential
    ) -> UserPreference:
        existing = self._prefs.get((credential.token, key))
        stored = UserPreference(
            id=existing.id if existing else next(self._ids),
            key=key,
            value=value,
            updated_at=datetime.now(timezone.utc),
        ).model_copy(deep=True)
        self._prefs[(credential.token, key)] = stored
        return stored.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._prefs)
