"""
Pytest configuration and shared fixtures for the kpiboard test suite.
"""

import os

import pytest

from kpiboard.core.auth import Credential
from kpiboard.integrations.local import InMemoryDashboardStore, InMemorySemanticModelStore
from kpiboard.integrations.sqlite import SqliteAggregateProcedure
from kpiboard.services import (
    AggregateQueryExecutor,
    DashboardService,
    ModelInferenceService,
    SemanticModelService,
)

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "datastore: marks tests requiring a live PostgREST datastore"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live datastore tests unless a datastore is configured."""
    for item in items:
        if "datastore" in item.keywords:
            if not (
                os.getenv("KPIBOARD_TEST_DATASTORE_URL")
                and os.getenv("KPIBOARD_TEST_DATASTORE_TOKEN")
            ):
                item.add_marker(
                    pytest.mark.skip(
                        reason="KPIBOARD_TEST_DATASTORE_URL / KPIBOARD_TEST_DATASTORE_TOKEN not set"
                    )
                )


SALES_MODEL = {
    "boardId": 1,
    "name": "Sales",
    "dateColumn": "date",
    "dimensions": ["region", "product"],
    "metrics": [
        {"key": "revenue", "label": "Revenue", "sql": "sum(amount)", "format": "currency"},
        {"key": "orders", "label": "Orders", "agg": "count", "column": "*"},
        {"key": "avg_amount", "agg": "avg", "column": "amount"},
    ],
    "glossary": {"revenue": "Gross sales before refunds"},
}

SALES_ROWS = [
    {"date": "2024-01-05", "region": "EU", "product": "A", "amount": 100.0},
    {"date": "2024-01-20", "region": "EU", "product": "B", "amount": 50.0},
    {"date": "2024-02-02", "region": "US", "product": "A", "amount": 200.0},
    {"date": "2024-02-15", "region": "US", "product": "A", "amount": 25.0},
    {"date": "2024-03-01", "region": "APAC", "product": "B", "amount": 75.0},
]


@pytest.fixture
def credential():
    return Credential(token="user-jwt")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep datastore settings from the host environment out of tests."""
    for name in list(os.environ):
        if name.startswith("KPIBOARD_") and not name.startswith("KPIBOARD_TEST_"):
            monkeypatch.delenv(name, raising=False)
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "DATASTORE_URL", "DATASTORE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def semantic_store():
    return InMemorySemanticModelStore()


@pytest.fixture
def model_service(semantic_store):
    return SemanticModelService(semantic_store)


@pytest.fixture
def sqlite_procedure(semantic_store):
    procedure = SqliteAggregateProcedure(semantic_store)
    yield procedure
    procedure.close()


@pytest.fixture
def executor(sqlite_procedure):
    return AggregateQueryExecutor(sqlite_procedure)


@pytest.fixture
def dashboard_store():
    return InMemoryDashboardStore()


@pytest.fixture
def dashboard_service(dashboard_store, executor):
    return DashboardService(dashboard_store, executor)


@pytest.fixture
def inference_service(model_service):
    return ModelInferenceService(model_service)


@pytest.fixture
def sales_model():
    return dict(SALES_MODEL)


@pytest.fixture
def sales_rows():
    return [dict(r) for r in SALES_ROWS]
