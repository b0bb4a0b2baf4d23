"""Semantic model store backed by a PostgREST table."""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from kpiboard.capabilities.semantic import SemanticModel, SemanticModelStore
from kpiboard.core.auth import Credential
from kpiboard.core.errors import UpstreamError, describe_validation_error

from .client import PostgrestClient


def _model_from_row(row: dict) -> SemanticModel:
    try:
        return SemanticModel.model_validate(row)
    except PydanticValidationError as e:
        raise UpstreamError(
            f"Stored semantic model is malformed: {describe_validation_error(e)}"
        ) from e


class PostgrestSemanticModelStore(SemanticModelStore):
    """Reads and upserts ``semantic_models`` rows keyed on ``board_id``."""

    def __init__(self, client: PostgrestClient, *, table: str = "semantic_models") -> None:
        self.client = client
        self.table = table

    async def get(
        self, board_id: int, *, credential: Credential
    ) -> Optional[SemanticModel]:
        row = await self.client.select_one(
            self.table, credential=credential, filters={"board_id": board_id}
        )
        if row is None:
            return None
        return _model_from_row(row)

    async def upsert(
        self, model: SemanticModel, *, credential: Credential
    ) -> SemanticModel:
        row = await self.client.upsert(
            self.table, model.to_row(), credential=credential, on_conflict="board_id"
        )
        if row is None:
            # Representation suppressed by the datastore; echo what was written.
            return model
        return _model_from_row(row)
