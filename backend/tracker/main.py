from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracker.api import auth, jobs
from tracker.backend import Backend
from tracker.config import Settings, settings as default_settings
from tracker.errors import GENERIC_MESSAGE, AuthError, NotFoundError, StoreError, TrackerError
from tracker.logging_config import setup_logging


logger = logging.getLogger(__name__)


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": str(error.get("msg", ""))})
    return details


def create_app(settings: Settings | None = None, backend: Backend | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(settings.log_level)
        settings.ensure_directories()
        app.state.backend = backend or Backend.from_settings(settings)
        app.state.backend.start()
        try:
            yield
        finally:
            app.state.backend.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": "Missing or invalid fields",
                "details": _validation_details(exc),
            },
        )

    @app.exception_handler(TrackerError)
    async def handle_tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        if isinstance(exc, (StoreError, AuthError)) and not isinstance(exc, NotFoundError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        content: dict = {"error": exc.code, "message": exc.public_message}
        if exc.status_code == 400 and exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "internal_error", "message": GENERIC_MESSAGE})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    return app


app = create_app()
