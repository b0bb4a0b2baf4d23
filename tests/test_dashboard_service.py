"""Tests for DashboardService over the in-memory store and SQLite procedure."""

import pytest
import pytest_asyncio
from pydantic import ValidationError as ModelValidationError

from kpiboard.capabilities.dashboards import Dashboard
from kpiboard.core.errors import AuthError, UpstreamError, ValidationError


def _query(**kwargs):
    query = {"boardId": 1, "metrics": ["revenue"]}
    query.update(kwargs)
    return query


@pytest_asyncio.fixture
async def sales_board(model_service, sqlite_procedure, credential, sales_model, sales_rows):
    await model_service.save(sales_model, credential=credential)
    sqlite_procedure.load_rows(1, sales_rows)


class TestDashboardModels:
    def test_widgets_get_dashboard_id_and_position(self):
        dashboard = Dashboard.model_validate(
            {
                "name": "Sales",
                "widgets": [
                    {"vizType": "kpi", "query": _query()},
                    {"vizType": "bar", "query": _query(), "position": 7},
                ],
            }
        )
        assert dashboard.id
        assert [w.dashboard_id for w in dashboard.widgets] == [dashboard.id] * 2
        assert [w.position for w in dashboard.widgets] == [0, 7]
        assert dashboard.widgets[0].id != dashboard.widgets[1].id

    @pytest.mark.parametrize(
        "viz,options",
        [
            ("kpi", {"metric": "revenue", "comparison": "goal", "goal": 1000}),
            ("line", {"x": "date", "y": ["revenue"], "smooth": True}),
            ("pie", {"category": "region", "value": "revenue", "donut": True}),
            ("table", {"columns": ["region", "revenue"], "pageSize": 25}),
        ],
    )
    def test_valid_options(self, viz, options):
        Dashboard.model_validate(
            {"name": "x", "widgets": [{"vizType": viz, "query": _query(), "options": options}]}
        )

    @pytest.mark.parametrize(
        "viz,options",
        [
            ("kpi", {"comparison": "yesterday"}),
            ("bar", {"y": "revenue"}),
            ("table", {"pageSize": 0}),
            ("pie", {"slices": 3}),
        ],
    )
    def test_invalid_options(self, viz, options):
        with pytest.raises(ModelValidationError, match=f"Invalid {viz} widget options"):
            Dashboard.model_validate(
                {"name": "x", "widgets": [{"vizType": viz, "query": _query(), "options": options}]}
            )

    def test_duplicate_widget_ids_rejected(self):
        with pytest.raises(ModelValidationError, match="duplicate widget ids: w1"):
            Dashboard.model_validate(
                {
                    "name": "x",
                    "widgets": [
                        {"id": "w1", "vizType": "kpi", "query": _query()},
                        {"id": "w1", "vizType": "bar", "query": _query()},
                    ],
                }
            )

    def test_row_leaves_unset_owner_to_the_datastore(self):
        assert "created_by" not in Dashboard(name="x").to_row()
        assert Dashboard(name="x", createdBy="u1").to_row()["created_by"] == "u1"


class TestDashboardService:
    @pytest.mark.asyncio
    async def test_save_and_get(self, dashboard_service, credential):
        saved = await dashboard_service.save(
            {"name": "Sales", "description": "Quarterly"},
            [
                {"id": "w-total", "vizType": "kpi", "query": _query()},
                {"id": "w-region", "vizType": "bar", "query": _query(dimensions=["region"])},
            ],
            credential=credential,
        )
        assert saved.created_at is not None
        assert [w.id for w in saved.widgets] == ["w-total", "w-region"]

        fetched = await dashboard_service.get(saved.id, credential=credential)
        assert fetched.name == "Sales"
        assert fetched.description == "Quarterly"
        assert [w.position for w in fetched.widgets] == [0, 1]
        assert fetched.widgets[1].query.dimensions == ["region"]

    @pytest.mark.asyncio
    async def test_widgets_embedded_in_dashboard(self, dashboard_service, credential):
        saved = await dashboard_service.save(
            {"id": "d1", "name": "Ops", "widgets": [{"vizType": "table", "query": _query()}]},
            credential=credential,
        )
        assert saved.id == "d1"
        assert len(saved.widgets) == 1

    @pytest.mark.asyncio
    async def test_resave_keeps_created_at_and_upserts_widgets(self, dashboard_service, credential):
        first = await dashboard_service.save(
            {"id": "d1", "name": "Ops"},
            [{"id": "w1", "vizType": "kpi", "query": _query()}],
            credential=credential,
        )
        second = await dashboard_service.save(
            {"id": "d1", "name": "Ops (renamed)"},
            [{"id": "w1", "vizType": "kpi", "title": "Revenue", "query": _query()}],
            credential=credential,
        )
        assert second.name == "Ops (renamed)"
        assert second.created_at == first.created_at
        assert [(w.id, w.title) for w in second.widgets] == [("w1", "Revenue")]

    @pytest.mark.asyncio
    async def test_save_ignores_client_owner(self, dashboard_service, dashboard_store, credential):
        saved = await dashboard_service.save(
            {"id": "d1", "name": "Ops", "createdBy": "attacker"}, credential=credential
        )
        assert saved.created_by is None
        stored = await dashboard_store.get("d1", credential=credential)
        assert stored.created_by is None

    @pytest.mark.asyncio
    async def test_resave_keeps_stored_owner(self, dashboard_service, dashboard_store, credential):
        await dashboard_store.save(
            Dashboard(id="d1", name="Ops", createdBy="owner-1"), credential=credential
        )
        saved = await dashboard_service.save(
            {"id": "d1", "name": "Ops v2", "createdBy": "attacker"}, credential=credential
        )
        assert saved.name == "Ops v2"
        assert saved.created_by == "owner-1"

    @pytest.mark.asyncio
    async def test_save_requires_name(self, dashboard_service, credential):
        with pytest.raises(ValidationError, match="name"):
            await dashboard_service.save({"name": ""}, credential=credential)

    @pytest.mark.asyncio
    async def test_save_rejects_non_list_widgets(self, dashboard_service, credential):
        with pytest.raises(ValidationError, match="widgets must be a list"):
            await dashboard_service.save({"name": "x"}, {"vizType": "kpi"}, credential=credential)

    @pytest.mark.asyncio
    async def test_save_rejects_bad_widget(self, dashboard_service, credential):
        with pytest.raises(ValidationError, match="metrics"):
            await dashboard_service.save(
                {"name": "x"}, [{"vizType": "kpi", "query": {"boardId": 1, "metrics": []}}],
                credential=credential,
            )

    @pytest.mark.asyncio
    async def test_get(self, dashboard_service, credential):
        assert await dashboard_service.get("missing", credential=credential) is None
        with pytest.raises(ValidationError, match="id is required"):
            await dashboard_service.get(" ", credential=credential)

    @pytest.mark.asyncio
    async def test_requires_credential(self, dashboard_service):
        with pytest.raises(AuthError):
            await dashboard_service.save({"name": "x"}, credential=None)
        with pytest.raises(AuthError):
            await dashboard_service.get("d1", credential=None)
        with pytest.raises(AuthError):
            await dashboard_service.run(_query(), credential=None)

    @pytest.mark.asyncio
    async def test_run(self, dashboard_service, sales_board, credential):
        result = await dashboard_service.run(_query(dimensions=["region"]), credential=credential)
        assert [r["region"] for r in result.rows] == ["APAC", "EU", "US"]
        with pytest.raises(ValidationError, match="query is required"):
            await dashboard_service.run(None, credential=credential)

    @pytest.mark.asyncio
    async def test_run_unknown_metric(self, dashboard_service, sales_board, credential):
        with pytest.raises(UpstreamError, match="unknown metric 'profit'"):
            await dashboard_service.run(_query(metrics=["profit"]), credential=credential)

    @pytest.mark.asyncio
    async def test_hydrate(self, dashboard_service, sales_board, credential):
        saved = await dashboard_service.save(
            {"name": "Sales"},
            [
                {"id": "total", "vizType": "kpi", "query": _query()},
                {
                    "id": "nothing",
                    "vizType": "bar",
                    "query": _query(
                        dimensions=["region"],
                        filters=[{"field": "region", "op": "in", "value": []}],
                    ),
                },
                {"id": "broken", "vizType": "table", "query": _query(metrics=["profit"])},
            ],
            credential=credential,
        )

        dashboard, results = await dashboard_service.hydrate(saved.id, credential=credential)
        assert dashboard.id == saved.id
        assert results["total"].status == "ok"
        assert results["total"].rows == [{"revenue": 450.0}]
        assert results["nothing"].status == "empty"
        assert results["broken"].status == "error"
        assert "profit" in results["broken"].error

    @pytest.mark.asyncio
    async def test_hydrate_unknown_dashboard(self, dashboard_service, credential):
        assert await dashboard_service.hydrate("missing", credential=credential) == (None, {})
