"""
FastAPI application entry point for the distribution backend.
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from appdist.config import Settings, get_settings
from appdist.errors import AppDistError
from appdist.responses import error_response
from appdist.routes import router

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppDistError)
    async def handle_app_error(request: Request, exc: AppDistError):
        details = exc.details if exc.status_code >= 500 and settings.is_development else None
        return error_response(exc.status_code, exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request.")
        return error_response(400, f"Invalid request: {location} {message}".strip())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return error_response(404, f"Route not found - {request.url.path}")
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        details = (
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            if settings.is_development
            else None
        )
        return error_response(500, "An unexpected server error occurred.", details)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="App Distribution Backend", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_exception_handlers(app, settings)
    app.include_router(router, prefix=settings.api_prefix)

    serve_local = settings.local_upload_dir and not settings.s3_bucket
    if serve_local and not settings.use_in_memory_backends:
        upload_dir = Path(settings.local_upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/files", StaticFiles(directory=upload_dir), name="files")
    return app


app = create_app()
