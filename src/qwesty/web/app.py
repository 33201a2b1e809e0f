"""FastAPI application factory for the collector ingest API."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from qwesty.errors import AuthError, MalformedRequestError, StorageError
from qwesty.pipeline import QuestPipeline
from qwesty.web.routes import health_router, router

logger = logging.getLogger(__name__)


def create_app(
    pipeline: QuestPipeline,
    ingest_token: str,
    *,
    on_fatal: Callable[[], None] | None = None,
    lifespan=None,
) -> FastAPI:
    """Build and return a configured FastAPI application."""
    app = FastAPI(title="Qwesty collector", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.ingest_token = ingest_token
    app.state.on_fatal = on_fatal
    app.include_router(health_router)
    app.include_router(router)

    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.warning("Rejected ingest from %s: %s", request.client.host if request.client else "?", exc)
        return JSONResponse(
            {"detail": str(exc)},
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Malformed ingest body: %s", exc.errors())
        return JSONResponse({"detail": "malformed request body"}, status_code=400)

    @app.exception_handler(MalformedRequestError)
    async def _malformed(request: Request, exc: MalformedRequestError) -> JSONResponse:
        logger.warning("Malformed ingest body: %s", exc)
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.critical("Seen-set storage failed during ingest: %s", exc)
        if request.app.state.on_fatal is not None:
            request.app.state.on_fatal()
        return JSONResponse({"detail": "storage failure"}, status_code=500)

    return app
