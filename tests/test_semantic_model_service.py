"""Tests for SemanticModelService over the in-memory store."""

import asyncio

import pytest

from kpiboard.core.auth import Credential
from kpiboard.core.errors import AuthError, UpstreamError, ValidationError
from kpiboard.services import SemanticModelService, parse_board_id


class FailingStore:
    async def get(self, board_id, *, credential):
        raise ConnectionError("connection reset by peer")

    async def upsert(self, model, *, credential):
        raise UpstreamError("permission denied for table semantic_models")


class TestParseBoardId:
    def test_valid(self):
        assert parse_board_id("5") == 5

    def test_missing_is_validation_error(self):
        with pytest.raises(ValidationError, match="boardId is required"):
            parse_board_id(None)


class TestSemanticModelService:
    @pytest.mark.asyncio
    async def test_save_then_get_returns_model_verbatim(self, model_service, credential):
        payload = {
            "boardId": 1,
            "name": "Sales",
            "metrics": [{"key": "revenue", "label": "Revenue", "sql": "sum(amount)"}],
        }
        saved = await model_service.save(payload, credential=credential)
        assert saved.created_at is not None

        fetched = await model_service.get(1, credential=credential)
        assert fetched is not None
        got = fetched.to_payload()
        for field in ("createdAt", "updatedAt"):
            got.pop(field)
        assert got == {
            "boardId": 1,
            "name": "Sales",
            "dateColumn": None,
            "dimensions": [],
            "metrics": [
                {
                    "key": "revenue",
                    "label": "Revenue",
                    "sql": "sum(amount)",
                    "format": "number",
                }
            ],
            "glossary": {},
        }

    @pytest.mark.asyncio
    async def test_second_save_replaces_first(self, model_service, semantic_store, credential):
        await model_service.save(
            {"boardId": 4, "name": "Ops", "metrics": [{"key": "a", "sql": "count(*)"}]},
            credential=credential,
        )
        first = await model_service.get(4, credential=credential)
        await model_service.save(
            {
                "boardId": 4,
                "name": "Ops v2",
                "dimensions": ["team"],
                "metrics": [{"key": "b", "sql": "sum(hours)"}],
            },
            credential=credential,
        )

        assert len(semantic_store) == 1
        model = await model_service.get(4, credential=credential)
        assert model.name == "Ops v2"
        assert [m.key for m in model.metrics] == ["b"]
        assert model.dimensions == ["team"]
        assert model.created_at == first.created_at

    @pytest.mark.asyncio
    async def test_get_unknown_board_returns_none(self, model_service, credential):
        assert await model_service.get(999, credential=credential) is None

    @pytest.mark.asyncio
    async def test_get_requires_board_id(self, model_service, credential):
        with pytest.raises(ValidationError):
            await model_service.get("", credential=credential)

    @pytest.mark.asyncio
    async def test_save_requires_name(self, model_service, credential):
        with pytest.raises(ValidationError, match="name"):
            await model_service.save({"boardId": 1}, credential=credential)

    @pytest.mark.asyncio
    async def test_save_rejects_non_object(self, model_service, credential):
        with pytest.raises(ValidationError, match="JSON object"):
            await model_service.save(["not", "a", "model"], credential=credential)

    @pytest.mark.asyncio
    async def test_calls_without_credential_are_rejected(self, model_service):
        with pytest.raises(AuthError):
            await model_service.save({"boardId": 1, "name": "x"}, credential=None)
        with pytest.raises(AuthError):
            await model_service.get(1, credential=None)

    @pytest.mark.asyncio
    async def test_auth_is_checked_before_validation(self, model_service):
        with pytest.raises(AuthError):
            await model_service.save({}, credential=None)

    @pytest.mark.asyncio
    async def test_store_failures_become_upstream_errors(self, credential):
        service = SemanticModelService(FailingStore())
        with pytest.raises(UpstreamError, match="connection reset by peer"):
            await service.get(1, credential=credential)
        with pytest.raises(UpstreamError, match="permission denied"):
            await service.save({"boardId": 1, "name": "x"}, credential=credential)

    def test_concurrent_saves_for_different_boards(self, model_service):
        async def run():
            credential = Credential(token="t")
            await asyncio.gather(
                *(
                    model_service.save(
                        {
                            "boardId": board,
                            "name": f"Board {board}",
                            "metrics": [{"key": f"m{board}", "sql": "count(*)"}],
                        },
                        credential=credential,
                    )
                    for board in range(1, 21)
                )
            )
            for board in range(1, 21):
                model = await model_service.get(board, credential=credential)
                assert model.name == f"Board {board}"
                assert [m.key for m in model.metrics] == [f"m{board}"]

        asyncio.run(run())
