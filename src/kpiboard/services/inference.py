"""
Semantic model inference from sample rows.

Guesses a type per column, then proposes dimensions (text columns), metrics
(count plus sum/avg/min/max over numeric columns) and a date column. The
proposal uses closed ``agg``/``column`` metrics only.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

import pandas as pd

from kpiboard.capabilities.semantic import MetricDef, SemanticModel
from kpiboard.capabilities.semantic.models import IDENTIFIER_PATTERN
from kpiboard.core.auth import Credential
from kpiboard.core.errors import ValidationError

from .semantic_models import SemanticModelService, parse_board_id

logger = logging.getLogger(__name__)

ColumnType = Literal["number", "date", "string"]

SAMPLE_SIZE = 500
MAX_DIMENSIONS = 6
MAX_METRIC_COLUMNS = 10
MAX_DIMENSION_NAME_LENGTH = 60
DATE_COLUMN_PRIORITY = ("date", "transaction_date", "created_at", "updated_at")

_DATE_VALUE = r"^\d{4}-\d{2}-\d{2}"
_NUMERIC_NAME = re.compile(r"^\d+(?:[/\-.\s]\d+)*$")
_ID_LIKE = re.compile(r"(^id$|_id$|^id_)", re.IGNORECASE)
_MONEY_LIKE = re.compile(r"(amount|revenue|price|cost|total|sales)", re.IGNORECASE)


def guess_column_type(values: pd.Series) -> Optional[ColumnType]:
    """Majority vote over non-blank values; ties favour number, then date.

    Returns ``None`` for a column without any value.
    """
    present = values[values.notna()]
    present = present[present.astype(str).str.strip() != ""]
    if present.empty:
        return None

    numeric = pd.to_numeric(present, errors="coerce").notna()
    dates = ~numeric & present.astype(str).str.match(_DATE_VALUE)
    n = int(numeric.sum())
    d = int(dates.sum())
    s = len(present) - n - d
    if n >= d and n >= s:
        return "number"
    if d >= n and d >= s:
        return "date"
    return "string"


def _pick_date_column(columns: List[str], types: Dict[str, ColumnType]) -> Optional[str]:
    lowered = {c.lower(): c for c in reversed(columns)}
    for candidate in DATE_COLUMN_PRIORITY:
        if candidate in lowered:
            return lowered[candidate]
    for column in columns:
        if types.get(column) == "date":
            return column
    return None


def _metrics_for(column: str) -> List[MetricDef]:
    money = bool(_MONEY_LIKE.search(column))
    fmt = "currency" if money else "number"
    return [
        MetricDef(key=f"{agg}_{column}", label=f"{title} {column}", agg=agg, column=column, format=fmt)
        for agg, title in (("sum", "Sum"), ("avg", "Avg"), ("min", "Min"), ("max", "Max"))
    ]


class ModelInferenceService:
    """Proposes (and optionally saves) a semantic model from sample rows."""

    def __init__(self, model_service: Optional[SemanticModelService] = None) -> None:
        self._model_service = model_service

    def infer(
        self,
        board_id: Any,
        rows: Iterable[Mapping[str, Any]],
        *,
        name: Optional[str] = None,
    ) -> SemanticModel:
        board = parse_board_id(board_id)
        if rows is None or isinstance(rows, (str, bytes, Mapping)):
            raise ValidationError("rows must be a list of sample records")
        sample = [dict(r) for r in list(rows)[:SAMPLE_SIZE] if isinstance(r, Mapping)]
        if not sample:
            raise ValidationError("rows must contain at least one sample record")

        df = pd.DataFrame(sample)
        columns = [str(c) for c in df.columns]
        df.columns = columns
        types: Dict[str, ColumnType] = {}
        for column in columns:
            guessed = guess_column_type(df[column])
            if guessed is not None:
                types[column] = guessed

        dimensions = [
            c
            for c in columns
            if types.get(c) == "string"
            and c.strip()
            and not _NUMERIC_NAME.match(c)
            and len(c) <= MAX_DIMENSION_NAME_LENGTH
        ][:MAX_DIMENSIONS]
        metric_columns = [
            c
            for c in columns
            if types.get(c) == "number"
            and not _ID_LIKE.search(c)
            and IDENTIFIER_PATTERN.match(c)
        ][:MAX_METRIC_COLUMNS]

        metrics = [MetricDef(key="count", label="Rows", agg="count", column="*")]
        for column in metric_columns:
            metrics.extend(_metrics_for(column))

        model = SemanticModel(
            board_id=board,
            name=name or f"Board {board}",
            date_column=_pick_date_column(columns, types),
            dimensions=dimensions,
            metrics=metrics,
            glossary={},
        )
        logger.info(
            "Inferred model for board %s: %d dimension(s), %d metric(s), date=%s",
            board,
            len(model.dimensions),
            len(model.metrics),
            model.date_column,
        )
        return model

    async def infer_and_save(
        self,
        board_id: Any,
        rows: Iterable[Mapping[str, Any]],
        *,
        name: Optional[str] = None,
        credential: Optional[Credential],
    ) -> SemanticModel:
        if self._model_service is None:
            raise RuntimeError("ModelInferenceService was created without a model service")
        model = self.infer(board_id, rows, name=name)
        return await self._model_service.save(model, credential=credential)
