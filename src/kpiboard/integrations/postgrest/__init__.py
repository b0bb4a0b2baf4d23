"""PostgREST datastore integration."""

from .aggregate_cache import PostgrestAggregateCache
from .client import PostgrestClient
from .dashboard_store import PostgrestDashboardStore
from .preference_store import PostgrestPreferenceStore
from .procedure import PostgrestAggregateProcedure
from .semantic_store import PostgrestSemanticModelStore

__all__ = [
    "PostgrestAggregateCache",
    "PostgrestClient",
    "PostgrestDashboardStore",
    "PostgrestPreferenceStore",
    "PostgrestAggregateProcedure",
    "PostgrestSemanticModelStore",
]
