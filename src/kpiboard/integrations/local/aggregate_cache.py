"""In-memory aggregate result cache."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Tuple

from kpiboard.capabilities.semantic import AggregateCache, AggregateResult
from kpiboard.core.auth import Credential


class InMemoryAggregateCache(AggregateCache):
    """Non-persistent cache; entries are kept per bearer token.

    Expired entries are dropped when they are next looked up.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], Tuple[AggregateResult, datetime]] = {}

    async def get(
        self, signature: str, *, now: datetime, credential: Credential
    ) -> Optional[AggregateResult]:
        entry_key = (credential.token, signature)
        entry = self._entries.get(entry_key)
        if entry is None:
            return None
        result, expires_at = entry
        if expires_at <= now:
            del self._entries[entry_key]
            return None
        return result.model_copy(deep=True)

    async def put(
        self,
        signature: str,
        result: AggregateResult,
        *,
        expires_at: datetime,
        credential: Credential,
    ) -> None:
        self._entries[(credential.token, signature)] = (
            AggregateResult(rows=result.rows, sql=result.sql).model_copy(deep=True),
            expires_at,
        )

    def __len__(self) -> int:
        return len(self._entries)
