"""Binding for the remote ``aggregate_items`` procedure."""

from __future__ import annotations

from typing import Any

from kpiboard.capabilities.semantic import (
    AggregateProcedure,
    AggregateRequest,
    AggregateResult,
)
from kpiboard.core.auth import Credential
from kpiboard.core.errors import UpstreamError

from .client import PostgrestClient


class PostgrestAggregateProcedure(AggregateProcedure):
    """Calls the datastore's aggregation procedure and relays ``{rows, sql}``.

    Metric keys are resolved and compiled inside the datastore; nothing here
    looks at metric expressions.
    """

    def __init__(self, client: PostgrestClient, *, function: str = "aggregate_items") -> None:
        self.client = client
        self.function = function

    async def aggregate(
        self, request: AggregateRequest, *, credential: Credential
    ) -> AggregateResult:
        data: Any = await self.client.rpc(
            self.function, request.to_procedure_params(), credential=credential
        )
        if isinstance(data, list):
            if len(data) > 1:
                raise UpstreamError(
                    f"{self.function} returned {len(data)} records, expected at most one"
                )
            data = data[0] if data else None
        if not isinstance(data, dict):
            return AggregateResult()
        return AggregateResult(rows=data.get("rows") or [], sql=data.get("sql"))
