"""Semantic model and aggregate query models.

JSON payloads use camelCase (``boardId``, ``dateColumn``); Python attributes
are snake_case. Both spellings are accepted on input.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


MetricFormat = Literal["number", "currency", "percent"]
AggregationOp = Literal["count", "count_distinct", "sum", "avg", "min", "max"]
FilterOp = Literal["=", "!=", "in", "between", "like"]

DEFAULT_AGGREGATE_LIMIT = 1000

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_BOARD_ID_PATTERN = re.compile(r"^[+-]?\d+$")
_CLOSED_AGGREGATION = re.compile(
    r"^\s*(count|sum|avg|min|max)\s*\(\s*(distinct\s+)?(\*|[A-Za-z_][A-Za-z0-9_]*)\s*\)\s*$",
    re.IGNORECASE,
)


def coerce_board_id(value: Any) -> int:
    """Normalise a board identifier.

    Accepts integers and decimal strings. ``0``, ``None`` and ``""`` count as
    absent. Raises ``ValueError`` otherwise.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("boardId is required")
    if isinstance(value, bool):
        raise ValueError("boardId must be a numeric identifier")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and _BOARD_ID_PATTERN.match(value.strip()):
        number = int(value.strip())
    else:
        raise ValueError("boardId must be a numeric identifier")
    if number == 0:
        raise ValueError("boardId is required")
    return number


def render_aggregation(agg: str, column: str) -> str:
    """Render a closed aggregation as expression text."""
    if agg == "count_distinct":
        return f"count(distinct {column})"
    return f"{agg}({column})"


class MetricDef(BaseModel):
    """A named measure.

    ``sql`` is opaque here and is resolved by the aggregation procedure. The
    optional ``agg``/``column`` pair describes the same measure as a closed
    operator over a column reference.
    """

    key: str = Field(min_length=1)
    label: Optional[str] = None
    sql: Optional[str] = None
    format: MetricFormat = "number"
    agg: Optional[AggregationOp] = None
    column: Optional[str] = None

    @model_validator(mode="after")
    def _check_definition(self) -> "MetricDef":
        if self.label is None:
            self.label = self.key
        if self.agg is not None:
            if not self.column:
                raise ValueError(f"metric '{self.key}': column is required with agg")
            if self.column == "*":
                if self.agg != "count":
                    raise ValueError(f"metric '{self.key}': '*' is only valid for count")
            elif not IDENTIFIER_PATTERN.match(self.column):
                raise ValueError(f"metric '{self.key}': invalid column '{self.column}'")
            if not self.sql:
                self.sql = render_aggregation(self.agg, self.column)
        elif not self.sql or not self.sql.strip():
            raise ValueError(f"metric '{self.key}' needs either sql or agg")
        return self

    def aggregation(self) -> Optional[Tuple[str, str]]:
        """Return ``(agg, column)`` when the metric is a closed aggregation."""
        if self.agg is not None and self.column:
            return self.agg, self.column
        match = _CLOSED_AGGREGATION.match(self.sql or "")
        if match is None:
            return None
        fn, distinct, column = match.groups()
        fn = fn.lower()
        if distinct:
            if fn != "count" or column == "*":
                return None
            return "count_distinct", column
        if column == "*" and fn != "count":
            return None
        return fn, column

    def to_payload(self) -> Dict[str, Any]:
        """JSON form; ``agg`` and ``column`` only appear when set."""
        return self.model_dump(mode="json", exclude_none=True)


class SemanticModel(BaseModel):
    """Declarative metric/dimension/glossary definition owned by one board."""

    model_config = ConfigDict(populate_by_name=True)

    board_id: int = Field(alias="boardId")
    name: str
    date_column: Optional[str] = Field(default=None, alias="dateColumn")
    dimensions: List[str] = Field(default_factory=list)
    metrics: List[MetricDef] = Field(default_factory=list)
    glossary: Dict[str, str] = Field(default_factory=dict)

    # Assigned by storage
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("board_id", mode="before")
    @classmethod
    def _board_id(cls, value: Any) -> int:
        return coerce_board_id(value)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name is required")
        return value

    @field_validator("date_column", mode="before")
    @classmethod
    def _date_column(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("dimensions", "metrics", "glossary", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "glossary" else []
        return value

    @field_validator("dimensions")
    @classmethod
    def _ordered_set(cls, value: List[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for dimension in value:
            seen.setdefault(dimension, None)
        return list(seen)

    @model_validator(mode="after")
    def _unique_metric_keys(self) -> "SemanticModel":
        keys = [m.key for m in self.metrics]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"duplicate metric keys: {', '.join(duplicates)}")
        return self

    def get_metric(self, key: str) -> Optional[MetricDef]:
        for metric in self.metrics:
            if metric.key == key:
                return metric
        return None

    def to_payload(self) -> Dict[str, Any]:
        """camelCase JSON body for API responses."""
        payload = self.model_dump(mode="json", by_alias=True, exclude={"metrics"})
        payload["metrics"] = [m.to_payload() for m in self.metrics]
        return payload

    def to_row(self) -> Dict[str, Any]:
        """snake_case row for storage; storage-assigned fields are left out."""
        row = self.model_dump(mode="json", exclude={"created_at", "updated_at", "metrics"})
        row["metrics"] = [m.to_payload() for m in self.metrics]
        return row


class AggregateFilter(BaseModel):
    """One predicate. ``value`` is forwarded untouched."""

    field: str = Field(min_length=1)
    op: FilterOp
    value: Any = None


class DateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field: Optional[str] = None
    date_from: Optional[str] = Field(default=None, alias="from")
    date_to: Optional[str] = Field(default=None, alias="to")


class AggregateRequest(BaseModel):
    """An aggregate query against one board's semantic model."""

    model_config = ConfigDict(populate_by_name=True)

    board_id: int = Field(alias="boardId")
    metrics: List[str]
    dimensions: List[str] = Field(default_factory=list)
    filters: List[AggregateFilter] = Field(default_factory=list)
    date_range: Optional[DateRange] = Field(default=None, alias="dateRange")
    limit: int = DEFAULT_AGGREGATE_LIMIT

    @field_validator("board_id", mode="before")
    @classmethod
    def _board_id(cls, value: Any) -> int:
        return coerce_board_id(value)

    @field_validator("metrics", mode="before")
    @classmethod
    def _metrics(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)) or len(value) == 0:
            raise ValueError("metrics must be a non-empty list of metric keys")
        return list(value)

    @field_validator("dimensions", "filters", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, value: Any) -> Any:
        return DEFAULT_AGGREGATE_LIMIT if value is None else value

    def to_procedure_params(self) -> Dict[str, Any]:
        """Named parameters of the remote ``aggregate_items`` procedure."""
        date_range = self.date_range or DateRange()
        return {
            "p_board_id": self.board_id,
            "p_metrics": list(self.metrics),
            "p_dimensions": list(self.dimensions),
            "p_filters": [f.model_dump(mode="json") for f in self.filters],
            "p_date_from": date_range.date_from,
            "p_date_to": date_range.date_to,
            "p_date_field": date_range.field,
            "p_limit": self.limit,
        }


class AggregateResult(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    sql: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.rows


class AggregateRunResult(AggregateResult):
    """Aggregate result that reports whether it came from the result cache."""

    cached: bool = False
