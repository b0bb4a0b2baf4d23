"""Service layer: validation, authentication checks and orchestration."""

from .aggregate import (
    DEFAULT_CACHE_TTL,
    AggregateQueryExecutor,
    CachedAggregateRunner,
    aggregate_signature,
)
from .dashboards import DashboardService
from .hydration import DashboardHydrator, HydrationScope
from .inference import ModelInferenceService, guess_column_type
from .preferences import FilterPresetService, parse_preset_key
from .semantic_models import SemanticModelService, parse_board_id

__all__ = [
    "DEFAULT_CACHE_TTL",
    "AggregateQueryExecutor",
    "CachedAggregateRunner",
    "aggregate_signature",
    "DashboardService",
    "DashboardHydrator",
    "HydrationScope",
    "ModelInferenceService",
    "guess_column_type",
    "FilterPresetService",
    "parse_preset_key",
    "SemanticModelService",
    "parse_board_id",
]
