"""Semantic model storage and aggregation procedure interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from kpiboard.core.auth import Credential

from .models import AggregateRequest, AggregateResult, SemanticModel


class SemanticModelStore(ABC):
    """Durable store of semantic models keyed by ``board_id``.

    Implementations perform no authorization of their own; the credential is
    handed to the backing datastore.
    """

    @abstractmethod
    async def get(
        self, board_id: int, *, credential: Credential
    ) -> Optional[SemanticModel]:
        """Return the model for ``board_id`` or ``None`` when none exists."""
        ...

    @abstractmethod
    async def upsert(
        self, model: SemanticModel, *, credential: Credential
    ) -> SemanticModel:
        """Insert or fully replace the model for ``model.board_id``."""
        ...


class AggregateProcedure(ABC):
    """Remote aggregation procedure.

    Resolves metric keys against the board's semantic model, compiles and runs
    the query, and reports the rows together with the resolved query text.
    """

    @abstractmethod
    async def aggregate(
        self, request: AggregateRequest, *, credential: Credential
    ) -> AggregateResult:
        ...


class AggregateCache(ABC):
    """Short-lived store of aggregate results keyed by request signature."""

    @abstractmethod
    async def get(
        self, signature: str, *, now: datetime, credential: Credential
    ) -> Optional[AggregateResult]:
        """Return the entry for ``signature`` unless it expired at or before ``now``."""
        ...

    @abstractmethod
    async def put(
        self,
        signature: str,
        result: AggregateResult,
        *,
        expires_at: datetime,
        credential: Credential,
    ) -> None:
        ...
