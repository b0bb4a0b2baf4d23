"""Golden path: infer a semantic model, aggregate, then hydrate a dashboard locally."""

import asyncio

from kpiboard.core.auth import Credential
from kpiboard.integrations.local import InMemoryDashboardStore, InMemorySemanticModelStore
from kpiboard.integrations.sqlite import SqliteAggregateProcedure
from kpiboard.services import (
    AggregateQueryExecutor,
    DashboardService,
    ModelInferenceService,
    SemanticModelService,
)

SAMPLE_ROWS = [
    {"date": "2024-01-05", "region": "EU", "channel": "web", "amount": 120.0},
    {"date": "2024-01-18", "region": "US", "channel": "store", "amount": 80.0},
    {"date": "2024-02-02", "region": "US", "channel": "web", "amount": 310.5},
    {"date": "2024-02-20", "region": "APAC", "channel": "web", "amount": 42.0},
]


async def main() -> None:
    credential = Credential(token="demo-token")
    models = InMemorySemanticModelStore()
    procedure = SqliteAggregateProcedure(models)
    procedure.load_rows(1, SAMPLE_ROWS)

    model_service = SemanticModelService(models)
    executor = AggregateQueryExecutor(procedure)
    dashboards = DashboardService(InMemoryDashboardStore(), executor)

    model = await ModelInferenceService(model_service).infer_and_save(
        1, SAMPLE_ROWS, name="Sales", credential=credential
    )
    print("Inferred metrics:", [m.key for m in model.metrics])

    result = await executor.execute(
        {"boardId": 1, "metrics": ["sum_amount"], "dimensions": ["region"]},
        credential=credential,
    )
    print(result.sql)
    print(result.rows)

    dashboard = await dashboards.save(
        {"name": "Sales overview"},
        [
            {"vizType": "kpi", "title": "Revenue", "query": {"boardId": 1, "metrics": ["sum_amount"]}},
            {
                "vizType": "bar",
                "title": "Revenue by channel",
                "query": {"boardId": 1, "metrics": ["sum_amount"], "dimensions": ["channel"]},
                "options": {"x": "channel", "y": ["sum_amount"]},
            },
        ],
        credential=credential,
    )
    _, results = await dashboards.hydrate(dashboard.id, credential=credential)
    for widget in dashboard.widgets:
        print(widget.title, "->", results[widget.id].status, results[widget.id].rows)

    procedure.close()


if __name__ == "__main__":
    asyncio.run(main())
