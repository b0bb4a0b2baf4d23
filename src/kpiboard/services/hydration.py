"""
Concurrent widget hydration for one dashboard view.

Every widget query runs as its own task inside a :class:`HydrationScope`.
Leaving the scope cancels whatever is still in flight, so a view that goes
away never leaves orphaned requests behind.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable

from kpiboard.capabilities.dashboards import Widget, WidgetResult
from kpiboard.core.auth import Credential
from kpiboard.core.errors import KpiboardError, ValidationError

from .aggregate import AggregateQueryExecutor

logger = logging.getLogger(__name__)


class HydrationScope:
    """Owns the in-flight widget calls of one dashboard view."""

    def __init__(self, executor: AggregateQueryExecutor, credential: Credential) -> None:
        self._executor = executor
        self._credential = credential
        self._tasks: Dict[str, "asyncio.Task[WidgetResult]"] = {}
        self._closed = False

    async def __aenter__(self) -> "HydrationScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def start(self, widget: Widget) -> "asyncio.Task[WidgetResult]":
        """Start loading one widget and return its task."""
        if self._closed:
            raise RuntimeError("hydration scope is closed")
        if widget.id in self._tasks:
            raise ValidationError(f"duplicate widget id '{widget.id}'")
        task = asyncio.create_task(self._load(widget), name=f"widget:{widget.id}")
        self._tasks[widget.id] = task
        return task

    async def _load(self, widget: Widget) -> WidgetResult:
        try:
            result = await self._executor.execute(widget.query, credential=self._credential)
        except KpiboardError as e:
            logger.warning("Widget %s failed: %s", widget.id, e.message)
            return WidgetResult(widget_id=widget.id, status="error", error=e.message)
        except Exception as e:
            logger.error("Widget %s failed unexpectedly", widget.id, exc_info=True)
            return WidgetResult(widget_id=widget.id, status="error", error=str(e))

        return WidgetResult(
            widget_id=widget.id,
            status="empty" if result.is_empty else "ok",
            rows=result.rows,
            sql=result.sql,
        )

    @staticmethod
    def _collect(widget_id: str, task: "asyncio.Task[WidgetResult]") -> WidgetResult:
        if task.cancelled():
            return WidgetResult(widget_id=widget_id, status="cancelled")
        return task.result()

    async def hydrate(self, widgets: Iterable[Widget]) -> Dict[str, WidgetResult]:
        """Load every widget concurrently; results are keyed by widget id."""
        tasks = {widget.id: self.start(widget) for widget in widgets}
        if tasks:
            await asyncio.wait(tasks.values())
        return {widget_id: self._collect(widget_id, task) for widget_id, task in tasks.items()}

    def cancel(self) -> int:
        """Request cancellation of unfinished widget calls; returns how many."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)

    async def aclose(self) -> None:
        self._closed = True
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Cancelled %d in-flight widget call(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)


class DashboardHydrator:
    """Creates one :class:`HydrationScope` per dashboard view."""

    def __init__(self, executor: AggregateQueryExecutor) -> None:
        self._executor = executor

    def scope(self, credential: Credential) -> HydrationScope:
        return HydrationScope(self._executor, credential)

    async def hydrate(
        self, widgets: Iterable[Widget], *, credential: Credential
    ) -> Dict[str, WidgetResult]:
        async with self.scope(credential) as scope:
            return await scope.hydrate(widgets)
