from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dashreport.api.routes import health, report
from dashreport.config import get_settings
from dashreport.core.errors import ReporterError
from dashreport.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else "INFO")
    yield


async def reporter_error_handler(request: Request, exc: ReporterError) -> JSONResponse:
    logger.error(
        "report_request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="dashreport",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(ReporterError, reporter_error_handler)  # type: ignore[arg-type]
    app.include_router(report.router, tags=["report"])
    app.include_router(health.router, tags=["health"])
    return app


app = create_app()
