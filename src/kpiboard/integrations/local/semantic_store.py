"""In-memory semantic model store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from kpiboard.capabilities.semantic import SemanticModel, SemanticModelStore
from kpiboard.core.auth import Credential


class InMemorySemanticModelStore(SemanticModelStore):
    """Non-persistent, in-memory reference implementation."""

    def __init__(self) -> None:
        self._models: Dict[int, SemanticModel] = {}

    async def get(
        self, board_id: int, *, credential: Credential
    ) -> Optional[SemanticModel]:
        model = self._models.get(board_id)
        if model is None:
            return None
        return model.model_copy(deep=True)

    async def upsert(
        self, model: SemanticModel, *, credential: Credential
    ) -> SemanticModel:
        now = datetime.now(timezone.utc)
        existing = self._models.get(model.board_id)
        stored = model.model_copy(
            deep=True,
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            },
        )
        self._models[model.board_id] = stored
        return stored.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._models)
