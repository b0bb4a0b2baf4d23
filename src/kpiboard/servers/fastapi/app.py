"""Application factory and server entry point."""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI

from kpiboard import __version__
from kpiboard.config import KpiboardConfig
from kpiboard.core.auth import TokenValidator

from ..base.bundle import ServiceBundle, build_service_bundle
from ..base.security import make_fastapi_cors_middleware
from .routes import install_error_handlers, register_kpiboard_routes

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def create_app(
    config: Optional[KpiboardConfig] = None,
    *,
    bundle: Optional[ServiceBundle] = None,
    token_validator: Optional[TokenValidator] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings; defaults to an in-memory configuration
        bundle: Pre-built services, e.g. with test doubles
        token_validator: Optional check applied to bearer tokens
    """
    config = config or KpiboardConfig()
    services = bundle or build_service_bundle(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting kpiboard v%s, functions under %s", __version__, config.api_prefix)
        yield
        await services.aclose()
        logger.info("kpiboard stopped")

    app = FastAPI(title="kpiboard", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.services = services

    make_fastapi_cors_middleware(config.cors_allow_origin)(app)
    install_error_handlers(app)
    register_kpiboard_routes(
        app,
        services.model_service,
        services.executor,
        services.dashboard_service,
        services.inference_service,
        prefix=config.api_prefix,
        token_validator=token_validator,
        aggregate_runner=services.aggregate_runner,
        preset_service=services.preset_service,
    )
    return app


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    config = KpiboardConfig()
    parser = argparse.ArgumentParser(description="Serve the kpiboard functions")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
