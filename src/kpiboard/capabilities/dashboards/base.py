"""Dashboard storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from kpiboard.core.auth import Credential

from .models import Dashboard


class DashboardStore(ABC):
    """Persistent store for dashboards and their widgets."""

    @abstractmethod
    async def get(
        self, dashboard_id: str, *, credential: Credential
    ) -> Optional[Dashboard]:
        ...

    @abstractmethod
    async def save(self, dashboard: Dashboard, *, credential: Credential) -> Dashboard:
        """Upsert the dashboard row, then each of its widgets."""
        ...
