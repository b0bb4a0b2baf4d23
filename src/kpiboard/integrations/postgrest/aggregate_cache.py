"""Aggregate result cache backed by a PostgREST table."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from kpiboard.capabilities.semantic import AggregateCache, AggregateResult
from kpiboard.core.auth import Credential

from .client import PostgrestClient


class PostgrestAggregateCache(AggregateCache):
    """Reads and appends ``aggregate_cache`` rows (``signature, rows, sql, ttl_at``).

    Rows are only ever inserted; the freshest unexpired row for a signature
    wins. Pruning expired rows is left to the datastore.
    """

    def __init__(self, client: PostgrestClient, *, table: str = "aggregate_cache") -> None:
        self.client = client
        self.table = table

    async def get(
        self, signature: str, *, now: datetime, credential: Credential
    ) -> Optional[AggregateResult]:
        rows = await self.client.select(
            self.table,
            credential=credential,
            filters={"signature": signature},
            conditions={"ttl_at": f"gt.{now.isoformat()}"},
            columns="rows,sql,ttl_at",
            order="ttl_at.desc",
            limit=1,
        )
        if not rows:
            return None
        row = rows[0]
        return AggregateResult(rows=row.get("rows") or [], sql=row.get("sql"))

    async def put(
        self,
        signature: str,
        result: AggregateResult,
        *,
        expires_at: datetime,
        credential: Credential,
    ) -> None:
        await self.client.insert(
            self.table,
            {
                "signature": signature,
                "rows": result.rows,
                "sql": result.sql,
                "ttl_at": expires_at.isoformat(),
            },
            credential=credential,
        )
