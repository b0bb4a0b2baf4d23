"""Semantic model persistence service."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from kpiboard.capabilities.semantic import SemanticModel, SemanticModelStore
from kpiboard.capabilities.semantic.models import coerce_board_id
from kpiboard.core.auth import Credential, require_credential
from kpiboard.core.errors import ValidationError
from kpiboard.core.parsing import parse_payload, upstream_errors

logger = logging.getLogger(__name__)


def parse_board_id(value: Any) -> int:
    try:
        return coerce_board_id(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e


class SemanticModelService:
    """Save and load the semantic model of a board.

    Saving is an upsert keyed on ``board_id``: dimensions, metrics, glossary
    and date column of an existing model are replaced, never merged. A board
    without a model reads back as ``None``.
    """

    def __init__(self, store: SemanticModelStore) -> None:
        self._store = store

    async def save(
        self,
        model: Union[SemanticModel, Mapping[str, Any]],
        *,
        credential: Optional[Credential],
    ) -> SemanticModel:
        credential = require_credential(credential)
        parsed = parse_payload(SemanticModel, model)
        logger.info(
            "Saving semantic model board=%s metrics=%d dimensions=%d",
            parsed.board_id,
            len(parsed.metrics),
            len(parsed.dimensions),
        )
        with upstream_errors("semantic model save"):
            return await self._store.upsert(parsed, credential=credential)

    async def get(
        self, board_id: Any, *, credential: Optional[Credential]
    ) -> Optional[SemanticModel]:
        credential = require_credential(credential)
        board = parse_board_id(board_id)
        with upstream_errors("semantic model get"):
            return await self._store.get(board, credential=credential)
