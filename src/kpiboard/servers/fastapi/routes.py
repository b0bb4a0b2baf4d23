"""
FastAPI routes for the semantic aggregation layer.

Every endpoint answers ``{ok: true, ...}`` on success and
``{ok: false, error}`` on failure, with the status code of the
:class:`~kpiboard.core.errors.KpiboardError` that was raised.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

try:
    from fastapi import APIRouter, Depends, Request
    from fastapi.responses import JSONResponse
    from starlette.exceptions import HTTPException as StarletteHTTPException
except ImportError:
    raise ImportError(
        "FastAPI is required for the kpiboard routes. "
        "Install with: pip install 'kpiboard[server]'"
    )

from kpiboard.core.auth import Credential, TokenValidator
from kpiboard.core.errors import KpiboardError, NotFoundError, ValidationError
from kpiboard.services import (
    AggregateQueryExecutor,
    CachedAggregateRunner,
    DashboardService,
    FilterPresetService,
    ModelInferenceService,
    SemanticModelService,
)

logger = logging.getLogger(__name__)

DASHBOARD_ACTIONS = {
    "save": ("POST",),
    "get": ("GET", "POST"),
    "run": ("POST",),
    "hydrate": ("GET", "POST"),
}


async def read_json_body(request: Request, *, required: bool = True) -> Dict[str, Any]:
    """Parse the request body as a JSON object.

    With ``required=False`` an empty or unparseable body reads as ``{}``.
    """
    raw = await request.body()
    if not raw.strip():
        if required:
            raise ValidationError("request body is required")
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        if required:
            raise ValidationError("request body must be valid JSON")
        return {}
    if not isinstance(body, dict):
        if required:
            raise ValidationError("request body must be a JSON object")
        return {}
    return body


def install_error_handlers(app: Any) -> None:
    """Translate errors into the ``{ok: false, error}`` envelope."""

    @app.exception_handler(KpiboardError)
    async def kpiboard_error_handler(request: Request, exc: KpiboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code, content={"ok": False, "error": exc.message}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        error = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": error})


def register_kpiboard_routes(
    app: Any,
    model_service: SemanticModelService,
    executor: AggregateQueryExecutor,
    dashboard_service: DashboardService,
    inference_service: ModelInferenceService,
    *,
    prefix: str = "/functions/v1",
    token_validator: Optional[TokenValidator] = None,
    aggregate_runner: Optional[CachedAggregateRunner] = None,
    preset_service: Optional[FilterPresetService] = None,
) -> None:
    """Register the model, aggregate and dashboard endpoints on a FastAPI app.

    Args:
        app: FastAPI application
        model_service: Semantic model save/get
        executor: Aggregate query executor
        dashboard_service: Dashboard save/get/run/hydrate
        inference_service: Semantic model inference from sample rows
        prefix: Mount point of the function endpoints
        token_validator: Optional check applied to bearer tokens
        aggregate_runner: Cached aggregates; enables ``aggregate-run``
        preset_service: Filter presets; enables ``filters-get`` and ``filters-save``
    """
    router = APIRouter(prefix=prefix.rstrip("/"), tags=["kpiboard"])

    def bearer(request: Request) -> Credential:
        return Credential.from_authorization_header(
            request.headers.get("Authorization"), token_validator=token_validator
        )

    # --- Semantic models ---

    @router.post("/model-save")
    async def model_save(
        request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        body = await read_json_body(request)
        model = await model_service.save(body, credential=credential)
        return {"ok": True, "model": model.to_payload()}

    @router.api_route("/model-get", methods=["GET", "POST"])
    async def model_get(
        request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        board_id: Any = request.query_params.get("boardId")
        if not board_id and request.method == "POST":
            body = await read_json_body(request, required=False)
            board_id = body.get("boardId")
        model = await model_service.get(board_id, credential=credential)
        return {"ok": True, "model": model.to_payload() if model else None}

    @router.post("/model-auto")
    async def model_auto(
        request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        body = await read_json_body(request)
        model = await inference_service.infer_and_save(
            body.get("boardId"),
            body.get("rows"),
            name=body.get("name"),
            credential=credential,
        )
        return {"ok": True, "model": model.to_payload()}

    # --- Aggregates ---

    @router.post("/query-aggregate")
    async def query_aggregate(
        request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        body = await read_json_body(request)
        result = await executor.execute(body, credential=credential)
        return {"ok": True, "rows": result.rows, "sql": result.sql}

    if aggregate_runner is not None:

        @router.post("/aggregate-run")
        async def aggregate_run(
            request: Request, credential: Credential = Depends(bearer)
        ) -> Dict[str, Any]:
            body = await read_json_body(request)
            preset = body.pop("preset", None)
            result = await aggregate_runner.run(body, credential=credential, preset=preset)
            return {
                "ok": True,
                "rows": result.rows,
                "sql": result.sql,
                "cached": result.cached,
            }

    # --- Filter presets ---

    if preset_service is not None:

        @router.api_route("/filters-get", methods=["GET", "POST"])
        async def filters_get(
            request: Request, credential: Credential = Depends(bearer)
        ) -> Dict[str, Any]:
            key: Any = request.query_params.get("key")
            if key is None and request.method == "POST":
                body = await read_json_body(request, required=False)
                key = body.get("key")
            value = await preset_service.get(key, credential=credential)
            return {"ok": True, "value": value}

        @router.post("/filters-save")
        async def filters_save(
            request: Request, credential: Credential = Depends(bearer)
        ) -> Dict[str, Any]:
            body = await read_json_body(request, required=False)
            pref = await preset_service.save(
                body.get("key"), body.get("value"), credential=credential
            )
            saved = pref.model_dump(mode="json")
            return {"ok": True, "id": saved["id"], "updated_at": saved["updated_at"]}

    # --- Dashboards ---

    async def _dispatch_dashboard(
        action: Optional[str], request: Request, credential: Credential
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if request.method == "POST":
            body = await read_json_body(request, required=action is not None)
        action = action or body.get("action")
        if action not in DASHBOARD_ACTIONS or request.method not in DASHBOARD_ACTIONS[action]:
            raise NotFoundError("Not found")

        if action == "save":
            if not isinstance(body.get("dashboard"), dict):
                raise ValidationError("dashboard is required")
            dashboard = await dashboard_service.save(
                body["dashboard"], body.get("widgets"), credential=credential
            )
            return {"ok": True, "dashboard": dashboard.to_payload()}

        if action == "run":
            result = await dashboard_service.run(body.get("query"), credential=credential)
            return {"ok": True, "rows": result.rows, "sql": result.sql}

        dashboard_id = request.query_params.get("id") or body.get("id")
        if action == "get":
            found = await dashboard_service.get(dashboard_id, credential=credential)
            return {"ok": True, "dashboard": found.to_payload() if found else None}

        found, results = await dashboard_service.hydrate(dashboard_id, credential=credential)
        return {
            "ok": True,
            "dashboard": found.to_payload() if found else None,
            "results": {key: r.to_payload() for key, r in results.items()},
        }

    @router.api_route("/dashboard", methods=["GET", "POST"])
    async def dashboard(
        request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        return await _dispatch_dashboard(None, request, credential)

    @router.api_route("/dashboard/{action}", methods=["GET", "POST"])
    async def dashboard_action(
        action: str, request: Request, credential: Credential = Depends(bearer)
    ) -> Dict[str, Any]:
        return await _dispatch_dashboard(action, request, credential)

    app.include_router(router)

    @app.get("/health", tags=["kpiboard"])
    async def health() -> Dict[str, Any]:
        return {"ok": True}
