"""Dashboard save/get/run/hydrate."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from kpiboard.capabilities.dashboards import Dashboard, DashboardStore, WidgetResult
from kpiboard.capabilities.semantic import AggregateRequest, AggregateResult
from kpiboard.core.auth import Credential, require_credential
from kpiboard.core.errors import ValidationError
from kpiboard.core.parsing import parse_payload, upstream_errors

from .aggregate import AggregateQueryExecutor
from .hydration import DashboardHydrator

logger = logging.getLogger(__name__)


def _require_id(dashboard_id: Any) -> str:
    if dashboard_id is None or not str(dashboard_id).strip():
        raise ValidationError("id is required")
    return str(dashboard_id).strip()


class DashboardService:
    """Dashboard persistence plus widget query execution."""

    def __init__(
        self,
        store: DashboardStore,
        executor: AggregateQueryExecutor,
        *,
        hydrator: Optional[DashboardHydrator] = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._hydrator = hydrator or DashboardHydrator(executor)

    async def save(
        self,
        dashboard: Union[Dashboard, Mapping[str, Any]],
        widgets: Optional[Sequence[Mapping[str, Any]]] = None,
        *,
        credential: Optional[Credential],
    ) -> Dashboard:
        """Upsert a dashboard and then each of its widgets.

        ``widgets`` given separately are attached to ``dashboard``; when omitted
        the widgets embedded in ``dashboard`` are used. Ownership
        (``created_by``) is assigned by storage, never taken from the payload.
        """
        credential = require_credential(credential)
        if isinstance(dashboard, Mapping):
            data: Dict[str, Any] = dict(dashboard)
            if widgets is not None:
                if not isinstance(widgets, (list, tuple)):
                    raise ValidationError("widgets must be a list")
                data["widgets"] = list(widgets)
            dashboard = data
        parsed = parse_payload(Dashboard, dashboard)
        if parsed.created_by is not None:
            logger.debug("Ignoring client-supplied created_by on dashboard %s", parsed.id)
            parsed = parsed.model_copy(update={"created_by": None})
        logger.info("Saving dashboard %s with %d widget(s)", parsed.id, len(parsed.widgets))
        with upstream_errors("dashboard save"):
            return await self._store.save(parsed, credential=credential)

    async def get(
        self, dashboard_id: Any, *, credential: Optional[Credential]
    ) -> Optional[Dashboard]:
        credential = require_credential(credential)
        key = _require_id(dashboard_id)
        with upstream_errors("dashboard get"):
            return await self._store.get(key, credential=credential)

    async def run(
        self,
        query: Union[AggregateRequest, Mapping[str, Any]],
        *,
        credential: Optional[Credential],
    ) -> AggregateResult:
        """Run one widget query."""
        if query is None:
            raise ValidationError("query is required")
        return await self._executor.execute(query, credential=credential)

    async def hydrate(
        self, dashboard_id: Any, *, credential: Optional[Credential]
    ) -> Tuple[Optional[Dashboard], Dict[str, WidgetResult]]:
        """Load a dashboard and every widget's data in a single scope."""
        dashboard = await self.get(dashboard_id, credential=credential)
        if dashboard is None:
            return None, {}
        results = await self._hydrator.hydrate(
            dashboard.widgets, credential=require_credential(credential)
        )
        failed: List[str] = [k for k, r in results.items() if r.status == "error"]
        if failed:
            logger.warning("Dashboard %s: %d widget(s) failed", dashboard.id, len(failed))
        return dashboard, results
