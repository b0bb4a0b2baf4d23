"""In-memory dashboard store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from kpiboard.capabilities.dashboards import Dashboard, DashboardStore, Widget
from kpiboard.core.auth import Credential


class InMemoryDashboardStore(DashboardStore):
    """Non-persistent, in-memory reference implementation.

    Widgets are upserted one by one, so widgets missing from a later save are
    kept, the same as with a relational widget table.
    """

    def __init__(self) -> None:
        self._dashboards: Dict[str, Dashboard] = {}
        self._widgets: Dict[str, Dict[str, Widget]] = {}

    def _assemble(self, dashboard: Dashboard) -> Dashboard:
        widgets = sorted(
            self._widgets.get(dashboard.id, {}).values(),
            key=lambda w: w.position if w.position is not None else 0,
        )
        return dashboard.model_copy(
            deep=True, update={"widgets": [w.model_copy(deep=True) for w in widgets]}
        )

    async def get(
        self, dashboard_id: str, *, credential: Credential
    ) -> Optional[Dashboard]:
        dashboard = self._dashboards.get(dashboard_id)
        if dashboard is None:
            return None
        return self._assemble(dashboard)

    async def save(self, dashboard: Dashboard, *, credential: Credential) -> Dashboard:
        now = datetime.now(timezone.utc)
        existing = self._dashboards.get(dashboard.id)
        stored = dashboard.model_copy(
            deep=True,
            update={
                "widgets": [],
                "created_by": existing.created_by if existing else dashboard.created_by,
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            },
        )
        self._dashboards[dashboard.id] = stored
        widgets = self._widgets.setdefault(dashboard.id, {})
        for widget in dashboard.widgets:
            widgets[widget.id] = widget.model_copy(deep=True)
        return self._assemble(stored)
