"""Wiring of stores, procedure and services from a :class:`KpiboardConfig`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from kpiboard.capabilities.dashboards import DashboardStore
from kpiboard.capabilities.preferences import PreferenceStore
from kpiboard.capabilities.semantic import (
    AggregateCache,
    AggregateProcedure,
    SemanticModelStore,
)
from kpiboard.config import KpiboardConfig
from kpiboard.integrations.local import (
    InMemoryAggregateCache,
    InMemoryDashboardStore,
    InMemoryPreferenceStore,
    InMemorySemanticModelStore,
)
from kpiboard.integrations.postgrest import (
    PostgrestAggregateCache,
    PostgrestAggregateProcedure,
    PostgrestClient,
    PostgrestDashboardStore,
    PostgrestPreferenceStore,
    PostgrestSemanticModelStore,
)
from kpiboard.integrations.sqlite import SqliteAggregateProcedure
from kpiboard.services import (
    AggregateQueryExecutor,
    CachedAggregateRunner,
    DashboardService,
    FilterPresetService,
    ModelInferenceService,
    SemanticModelService,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceBundle:
    """Everything the HTTP layer needs, plus the resources to release."""

    model_service: SemanticModelService
    executor: AggregateQueryExecutor
    dashboard_service: DashboardService
    inference_service: ModelInferenceService
    preset_service: FilterPresetService
    aggregate_runner: CachedAggregateRunner
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for closer in reversed(self.closers):
            await closer()
        self.closers.clear()


def build_service_bundle(
    config: KpiboardConfig,
    *,
    semantic_store: Optional[SemanticModelStore] = None,
    procedure: Optional[AggregateProcedure] = None,
    dashboard_store: Optional[DashboardStore] = None,
    preference_store: Optional[PreferenceStore] = None,
    aggregate_cache: Optional[AggregateCache] = None,
) -> ServiceBundle:
    """Build services for ``config``; explicit components take precedence.

    With ``datastore_url`` set, everything talks to the PostgREST datastore.
    Otherwise models, dashboards, presets and cached results live in memory
    and aggregates run on the SQLite reference procedure.
    """
    closers: List[Callable[[], Awaitable[None]]] = []

    if config.uses_remote_datastore:
        client = PostgrestClient(
            config.datastore_url or "",
            api_key=config.datastore_api_key,
            timeout=config.datastore_timeout,
        )
        closers.append(client.aclose)
        if semantic_store is None:
            semantic_store = PostgrestSemanticModelStore(
                client, table=config.semantic_models_table
            )
        if dashboard_store is None:
            dashboard_store = PostgrestDashboardStore(
                client,
                dashboards_table=config.dashboards_table,
                widgets_table=config.widgets_table,
            )
        if preference_store is None:
            preference_store = PostgrestPreferenceStore(
                client, table=config.preferences_table
            )
        if aggregate_cache is None:
            aggregate_cache = PostgrestAggregateCache(
                client, table=config.aggregate_cache_table
            )
        if procedure is None:
            procedure = PostgrestAggregateProcedure(
                client, function=config.aggregate_procedure
            )
        logger.info("Using PostgREST datastore at %s", config.datastore_url)
    else:
        if semantic_store is None:
            semantic_store = InMemorySemanticModelStore()
        if dashboard_store is None:
            dashboard_store = InMemoryDashboardStore()
        if preference_store is None:
            preference_store = InMemoryPreferenceStore()
        if aggregate_cache is None:
            aggregate_cache = InMemoryAggregateCache()
        if procedure is None:
            sqlite_procedure = SqliteAggregateProcedure(
                semantic_store, config.sqlite_path, table=config.sqlite_items_table
            )

            async def close_sqlite() -> None:
                sqlite_procedure.close()

            closers.append(close_sqlite)
            procedure = sqlite_procedure
        logger.warning(
            "No datastore configured; using in-memory stores and SQLite at %s",
            config.sqlite_path,
        )

    model_service = SemanticModelService(semantic_store)
    executor = AggregateQueryExecutor(procedure)
    preset_service = FilterPresetService(preference_store)
    return ServiceBundle(
        model_service=model_service,
        executor=executor,
        dashboard_service=DashboardService(dashboard_store, executor),
        inference_service=ModelInferenceService(model_service),
        preset_service=preset_service,
        aggregate_runner=CachedAggregateRunner(
            executor,
            aggregate_cache,
            presets=preset_service,
            ttl_seconds=config.aggregate_cache_ttl,
        ),
        closers=closers,
    )
