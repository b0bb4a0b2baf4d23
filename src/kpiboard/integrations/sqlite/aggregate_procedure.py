"""SQLite implementation of the aggregation procedure.

Board items are stored as JSON documents in one table::

    items(board_id INTEGER, row TEXT)

A request is compiled against the board's semantic model. Only closed metrics
(``agg`` over a column reference) are accepted, identifiers are checked and
quoted, and every value is a bound parameter.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import pandas as pd
import sqlparse

from kpiboard.capabilities.semantic import (
    AggregateFilter,
    AggregateProcedure,
    AggregateRequest,
    AggregateResult,
    SemanticModel,
    SemanticModelStore,
)
from kpiboard.capabilities.semantic.models import IDENTIFIER_PATTERN
from kpiboard.core.auth import Credential

logger = logging.getLogger(__name__)


def _quote(name: str) -> str:
    """Quote an SQL identifier; embedded double quotes are doubled."""
    return '"' + name.replace('"', '""') + '"'


class SqliteAggregateProcedure(AggregateProcedure):
    """Reference procedure compiling semantic requests to parameterized SQL."""

    def __init__(
        self,
        model_store: SemanticModelStore,
        database_path: str = ":memory:",
        *,
        table: str = "items",
    ) -> None:
        if not IDENTIFIER_PATTERN.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.model_store = model_store
        self.table = table
        self._conn = sqlite3.connect(database_path, check_same_thread=False)
        self._conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{table}" '
            '("board_id" INTEGER NOT NULL, "row" TEXT NOT NULL)'
        )
        self._conn.execute(
            f'CREATE INDEX IF NOT EXISTS "{table}_board_id" ON "{table}" ("board_id")'
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def load_rows(self, board_id: int, rows: Iterable[Mapping[str, Any]]) -> int:
        """Append item rows for a board. Returns the number of rows written."""
        payload = [(board_id, json.dumps(dict(row), default=str)) for row in rows]
        self._conn.executemany(
            f'INSERT INTO "{self.table}" ("board_id", "row") VALUES (?, ?)', payload
        )
        self._conn.commit()
        return len(payload)

    async def aggregate(
        self, request: AggregateRequest, *, credential: Credential
    ) -> AggregateResult:
        model = await self.model_store.get(request.board_id, credential=credential)
        if model is None:
            raise LookupError(f"semantic model not found for board {request.board_id}")

        sql, params = self.compile(model, request)
        logger.debug("aggregate board=%s sql=%s params=%s", request.board_id, sql, params)

        df = pd.read_sql_query(sql, self._conn, params=params)
        if df.empty:
            rows: List[Dict[str, Any]] = []
        else:
            df = df.astype(object).where(df.notna(), None)
            rows = df.to_dict(orient="records")

        return AggregateResult(
            rows=rows,
            sql=sqlparse.format(sql, reindent=True, keyword_case="upper"),
        )

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    @staticmethod
    def _column(name: str) -> str:
        if not IDENTIFIER_PATTERN.match(name):
            raise ValueError(f"invalid column reference '{name}'")
        return f"json_extract(\"row\", '$.{name}')"

    def _aggregate(self, agg: str, column: str) -> str:
        if agg == "count":
            return "COUNT(*)" if column == "*" else f"COUNT({self._column(column)})"
        if agg == "count_distinct":
            return f"COUNT(DISTINCT {self._column(column)})"
        return f"{agg.upper()}({self._column(column)})"

    @staticmethod
    def _known_columns(model: SemanticModel) -> set:
        columns = set(model.dimensions)
        if model.date_column:
            columns.add(model.date_column)
        for metric in model.metrics:
            aggregation = metric.aggregation()
            if aggregation is not None and aggregation[1] != "*":
                columns.add(aggregation[1])
        return columns

    def _predicate(self, flt: AggregateFilter, params: List[Any]) -> str:
        expr = self._column(flt.field)
        value = flt.value
        if flt.op == "in":
            if not isinstance(value, (list, tuple)):
                raise ValueError(f"filter on '{flt.field}': 'in' expects a list")
            if not value:
                return "0 = 1"
            params.extend(value)
            return f"{expr} IN ({', '.join('?' for _ in value)})"
        if flt.op == "between":
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise ValueError(f"filter on '{flt.field}': 'between' expects [low, high]")
            params.extend(value)
            return f"{expr} BETWEEN ? AND ?"
        if isinstance(value, (list, tuple, dict)):
            raise ValueError(f"filter on '{flt.field}': '{flt.op}' expects a scalar")
        params.append(value)
        operator = "LIKE" if flt.op == "like" else flt.op
        return f"{expr} {operator} ?"

    def compile(
        self, model: SemanticModel, request: AggregateRequest
    ) -> Tuple[str, List[Any]]:
        """Build the SQL text and its bound parameters."""
        select_parts: List[str] = []
        group_parts: List[str] = []
        for dimension in request.dimensions:
            if dimension not in model.dimensions:
                raise ValueError(
                    f"unknown dimension '{dimension}' for board {model.board_id}"
                )
            expr = self._column(dimension)
            select_parts.append(f"{expr} AS {_quote(dimension)}")
            group_parts.append(expr)

        for key in request.metrics:
            metric = model.get_metric(key)
            if metric is None:
                raise ValueError(f"unknown metric '{key}' for board {model.board_id}")
            aggregation = metric.aggregation()
            if aggregation is None:
                raise ValueError(
                    f"metric '{key}' is not a closed aggregation and cannot be compiled"
                )
            select_parts.append(f"{self._aggregate(*aggregation)} AS {_quote(key)}")

        params: List[Any] = [model.board_id]
        where_parts = ['"board_id" = ?']

        known = self._known_columns(model)
        for flt in request.filters:
            if flt.field not in known:
                raise ValueError(f"unknown filter field '{flt.field}' for board {model.board_id}")
            where_parts.append(self._predicate(flt, params))

        date_range = request.date_range
        if date_range is not None and (date_range.date_from or date_range.date_to):
            field = date_range.field or model.date_column
            if not field:
                raise ValueError("dateRange needs a field when the model has no dateColumn")
            expr = self._column(field)
            if date_range.date_from:
                where_parts.append(f"{expr} >= ?")
                params.append(date_range.date_from)
            if date_range.date_to:
                where_parts.append(f"{expr} <= ?")
                params.append(date_range.date_to)

        sql = f'SELECT {", ".join(select_parts)} FROM "{self.table}" WHERE {" AND ".join(where_parts)}'
        if group_parts:
            sql += f' GROUP BY {", ".join(group_parts)} ORDER BY {", ".join(group_parts)}'
        sql += " LIMIT ?"
        params.append(request.limit)
        return sql, params
