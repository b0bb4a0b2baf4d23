"""In-memory reference implementations."""

from .aggregate_cache import InMemoryAggregateCache
from .dashboard_store import InMemoryDashboardStore
from .preference_store import InMemoryPreferenceStore
from .semantic_store import InMemorySemanticModelStore

__all__ = [
    "InMemoryAggregateCache",
    "InMemoryDashboardStore",
    "InMemoryPreferenceStore",
    "InMemorySemanticModelStore",
]
