"""Tests for the SQLite reference aggregation procedure."""

import pytest

from kpiboard.capabilities.semantic import AggregateRequest, SemanticModel


@pytest.fixture
def loaded(semantic_store, sqlite_procedure, credential, sales_model, sales_rows):
    """Sales model for board 1 with five item rows, plus noise on board 2."""
    model = SemanticModel.model_validate(sales_model)
    semantic_store._models[model.board_id] = model
    sqlite_procedure.load_rows(1, sales_rows)
    sqlite_procedure.load_rows(2, [{"region": "EU", "amount": 1000.0}])
    return model


def _request(**kwargs):
    payload = {"boardId": 1, "metrics": ["revenue"]}
    payload.update(kwargs)
    return AggregateRequest.model_validate(payload)


class TestAggregate:
    @pytest.mark.asyncio
    async def test_total_ignores_other_boards(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(_request(), credential=credential)
        assert result.rows == [{"revenue": 450.0}]
        assert result.sql.startswith("SELECT")

    @pytest.mark.asyncio
    async def test_group_by_dimension(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(
            _request(metrics=["revenue", "orders", "avg_amount"], dimensions=["region"]),
            credential=credential,
        )
        assert result.rows == [
            {"region": "APAC", "revenue": 75.0, "orders": 1, "avg_amount": 75.0},
            {"region": "EU", "revenue": 150.0, "orders": 2, "avg_amount": 75.0},
            {"region": "US", "revenue": 225.0, "orders": 2, "avg_amount": 112.5},
        ]
        assert "GROUP BY" in result.sql

    @pytest.mark.asyncio
    async def test_limit(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(
            _request(dimensions=["region"], limit=2), credential=credential
        )
        assert [r["region"] for r in result.rows] == ["APAC", "EU"]

    @pytest.mark.asyncio
    async def test_in_filter_with_two_dimensions(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(
            _request(
                dimensions=["region", "product"],
                filters=[{"field": "region", "op": "in", "value": ["EU", "US"]}],
            ),
            credential=credential,
        )
        assert result.rows == [
            {"region": "EU", "product": "A", "revenue": 100.0},
            {"region": "EU", "product": "B", "revenue": 50.0},
            {"region": "US", "product": "A", "revenue": 225.0},
        ]

    @pytest.mark.asyncio
    async def test_empty_in_filter_matches_nothing(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(
            _request(dimensions=["region"], filters=[{"field": "region", "op": "in", "value": []}]),
            credential=credential,
        )
        assert result.rows == []
        assert result.is_empty

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "flt,expected",
        [
            ({"field": "product", "op": "=", "value": "B"}, 125.0),
            ({"field": "region", "op": "!=", "value": "EU"}, 300.0),
            ({"field": "amount", "op": "between", "value": [50, 100]}, 225.0),
            ({"field": "region", "op": "like", "value": "U%"}, 225.0),
        ],
    )
    async def test_filter_operators(self, loaded, sqlite_procedure, credential, flt, expected):
        result = await sqlite_procedure.aggregate(_request(filters=[flt]), credential=credential)
        assert result.rows == [{"revenue": expected}]

    @pytest.mark.asyncio
    async def test_date_range_defaults_to_model_date_column(
        self, loaded, sqlite_procedure, credential
    ):
        result = await sqlite_procedure.aggregate(
            _request(dateRange={"from": "2024-02-01", "to": "2024-02-28"}),
            credential=credential,
        )
        assert result.rows == [{"revenue": 225.0}]

    @pytest.mark.asyncio
    async def test_open_ended_date_range(self, loaded, sqlite_procedure, credential):
        result = await sqlite_procedure.aggregate(
            _request(dateRange={"field": "date", "from": "2024-02-01"}), credential=credential
        )
        assert result.rows == [{"revenue": 300.0}]

    @pytest.mark.asyncio
    async def test_missing_model(self, sqlite_procedure, credential):
        with pytest.raises(LookupError, match="board 1"):
            await sqlite_procedure.aggregate(_request(), credential=credential)


class TestCompile:
    def test_values_are_bound_parameters(self, loaded, sqlite_procedure):
        hostile = "EU'; DROP TABLE items; --"
        sql, params = sqlite_procedure.compile(
            loaded, _request(filters=[{"field": "region", "op": "=", "value": hostile}], limit=5)
        )
        assert hostile not in sql
        assert params == [1, hostile, 5]
        assert sql.endswith("LIMIT ?")

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"dimensions": ["country"]}, "unknown dimension 'country'"),
            ({"metrics": ["profit"]}, "unknown metric 'profit'"),
            ({"filters": [{"field": "secret", "op": "=", "value": 1}]}, "unknown filter field"),
            ({"filters": [{"field": "region", "op": "in", "value": "EU"}]}, "expects a list"),
            ({"filters": [{"field": "amount", "op": "between", "value": [1]}]}, r"expects \[low, high\]"),
            ({"filters": [{"field": "region", "op": "=", "value": ["EU"]}]}, "expects a scalar"),
        ],
    )
    def test_rejects_invalid_requests(self, loaded, sqlite_procedure, kwargs, message):
        with pytest.raises(ValueError, match=message):
            sqlite_procedure.compile(loaded, _request(**kwargs))

    def test_opaque_metric_cannot_be_compiled(self, sqlite_procedure):
        model = SemanticModel(
            boardId=1, name="x", metrics=[{"key": "margin", "sql": "sum(amount) - sum(cost)"}]
        )
        with pytest.raises(ValueError, match="not a closed aggregation"):
            sqlite_procedure.compile(model, _request(metrics=["margin"]))

    def test_date_range_needs_a_field(self, sqlite_procedure):
        model = SemanticModel(boardId=1, name="x", metrics=[{"key": "revenue", "sql": "sum(amount)"}])
        with pytest.raises(ValueError, match="dateRange needs a field"):
            sqlite_procedure.compile(model, _request(dateRange={"from": "2024-01-01"}))

    def test_metric_columns_are_filterable(self, loaded, sqlite_procedure):
        sql, params = sqlite_procedure.compile(
            loaded, _request(filters=[{"field": "amount", "op": "!=", "value": 0}])
        )
        assert "json_extract(\"row\", '$.amount') != ?" in sql
        assert params == [1, 0, 1000]


class TestMetricKeyAliases:
    """Metric keys are free text and must stay inside their quoted alias."""

    INJECTING_KEY = 'n", (SELECT group_concat("row") FROM "items") AS "leak'

    def _model(self, key):
        return SemanticModel(
            boardId=1, name="x", metrics=[{"key": key, "agg": "count", "column": "*"}]
        )

    def test_quotes_in_key_are_doubled(self, sqlite_procedure):
        sql, _ = sqlite_procedure.compile(self._model('say "hi"'), _request(metrics=['say "hi"']))
        assert 'COUNT(*) AS "say ""hi"""' in sql

    @pytest.mark.asyncio
    async def test_key_with_quotes_round_trips(
        self, semantic_store, sqlite_procedure, credential, sales_rows
    ):
        semantic_store._models[1] = self._model('say "hi"')
        sqlite_procedure.load_rows(1, sales_rows)
        result = await sqlite_procedure.aggregate(
            _request(metrics=['say "hi"']), credential=credential
        )
        assert result.rows == [{'say "hi"': 5}]

    @pytest.mark.asyncio
    async def test_key_cannot_read_other_boards(
        self, semantic_store, sqlite_procedure, credential, sales_rows
    ):
        semantic_store._models[1] = self._model(self.INJECTING_KEY)
        sqlite_procedure.load_rows(1, sales_rows)
        sqlite_procedure.load_rows(2, [{"secret": "other-board-data"}])

        result = await sqlite_procedure.aggregate(
            _request(metrics=[self.INJECTING_KEY]), credential=credential
        )

        assert result.rows == [{self.INJECTING_KEY: 5}]
        assert "other-board-data" not in repr(result.rows)


def test_invalid_table_name(semantic_store):
    from kpiboard.integrations.sqlite import SqliteAggregateProcedure

    with pytest.raises(ValueError, match="Invalid table name"):
        SqliteAggregateProcedure(semantic_store, table="items; drop")
