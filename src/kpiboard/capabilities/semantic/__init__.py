"""Semantic capability exports."""

from .base import AggregateCache, AggregateProcedure, SemanticModelStore
from .models import (
    DEFAULT_AGGREGATE_LIMIT,
    AggregateFilter,
    AggregateRequest,
    AggregateResult,
    AggregateRunResult,
    DateRange,
    MetricDef,
    SemanticModel,
    coerce_board_id,
)

__all__ = [
    "AggregateCache",
    "AggregateProcedure",
    "SemanticModelStore",
    "DEFAULT_AGGREGATE_LIMIT",
    "AggregateFilter",
    "AggregateRequest",
    "AggregateResult",
    "AggregateRunResult",
    "DateRange",
    "MetricDef",
    "SemanticModel",
    "coerce_board_id",
]
