"""CORS hooks shared by the HTTP servers."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
CORS_ALLOW_METHODS = "GET, POST, OPTIONS"


def cors_headers(allow_origin: str = "*") -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    }


def make_fastapi_cors_middleware(allow_origin: str = "*") -> Callable[[Any], None]:
    """Create a FastAPI middleware hook for permissive CORS.

    Pre-flight ``OPTIONS`` requests are answered directly with an empty body.
    Every other response gets the same CORS headers, including 500s for
    exceptions nothing else handled.
    """

    def middleware_hook(app: Any) -> None:
        from fastapi import Response
        from fastapi.responses import JSONResponse

        @app.middleware("http")
        async def cors_middleware(request: Any, call_next: Any) -> Any:
            headers = cors_headers(allow_origin)
            if request.method == "OPTIONS":
                return Response(status_code=200, headers=headers)

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "Unhandled error on %s %s", request.method, request.url.path, exc_info=True
                )
                return JSONResponse(
                    status_code=500,
                    content={"ok": False, "error": str(e) or e.__class__.__name__},
                    headers=headers,
                )
            response.headers.update(headers)
            return response

    return middleware_hook
