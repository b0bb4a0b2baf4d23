"""Dashboard store backed by PostgREST tables."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from kpiboard.capabilities.dashboards import Dashboard, DashboardStore
from kpiboard.core.auth import Credential
from kpiboard.core.errors import UpstreamError, describe_validation_error

from .client import PostgrestClient


class PostgrestDashboardStore(DashboardStore):
    """Dashboards in ``user_dashboards``, widgets in ``dashboard_widgets``."""

    def __init__(
        self,
        client: PostgrestClient,
        *,
        dashboards_table: str = "user_dashboards",
        widgets_table: str = "dashboard_widgets",
    ) -> None:
        self.client = client
        self.dashboards_table = dashboards_table
        self.widgets_table = widgets_table

    @staticmethod
    def _assemble(row: Dict[str, Any], widget_rows: List[Dict[str, Any]]) -> Dashboard:
        try:
            return Dashboard.model_validate({**row, "widgets": widget_rows})
        except PydanticValidationError as e:
            raise UpstreamError(
                f"Stored dashboard is malformed: {describe_validation_error(e)}"
            ) from e

    async def get(
        self, dashboard_id: str, *, credential: Credential
    ) -> Optional[Dashboard]:
        row = await self.client.select_one(
            self.dashboards_table, credential=credential, filters={"id": dashboard_id}
        )
        if row is None:
            return None
        widget_rows = await self.client.select(
            self.widgets_table,
            credential=credential,
            filters={"dashboard_id": dashboard_id},
            order="position.asc",
        )
        return self._assemble(row, widget_rows)

    async def save(self, dashboard: Dashboard, *, credential: Credential) -> Dashboard:
        row = await self.client.upsert(
            self.dashboards_table,
            dashboard.to_row(),
            credential=credential,
            on_conflict="id",
        )
        for widget in dashboard.widgets:
            await self.client.upsert(
                self.widgets_table,
                widget.to_row(),
                credential=credential,
                on_conflict="id",
            )
        saved = await self.get(dashboard.id, credential=credential)
        if saved is not None:
            return saved
        # Not readable back under the caller's policies; report what was written.
        return self._assemble(
            row or dashboard.to_row(), [w.to_row() for w in dashboard.widgets]
        )
