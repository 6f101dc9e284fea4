"""FastAPI application entry point.

`create_app()` builds the service: request context middleware, RFC 9457
error handlers, the burnout router, and the Prometheus /metrics mount.
Config is validated at import time (shared.config); running this module
directly serves the app with uvicorn.
"""

import logging
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from burnout.api import router as burnout_router
from shared.config import settings
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestContextMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(
        json_output=settings.log_json,
        level=logging.getLevelName(settings.log_level.upper()),
    )
    logger.info(
        "app_starting",
        remote_store=settings.remote_base_url or "(not configured)",
        assessments_table=settings.assessments_table,
        local_store_path=settings.local_store_path,
    )
    yield
    logger.info("app_shutting_down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Burnout Trend API",
        description=(
            "Reconciles burnout self-assessments from the remote store, the device "
            "cache, or reflection history into daily, weekly, and monthly trend buckets."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    # Every error leaves as application/problem+json
    app.add_exception_handler(ProblemDetailError, problem_detail_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(burnout_router)
    app.mount("/metrics", create_metrics_app())

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "remote_store": "configured" if settings.remote_base_url else "not_configured",
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port)
