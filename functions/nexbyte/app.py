"""
FastAPI application entry point for the NexByte site backend.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from nexbyte.config import Settings, get_settings
from nexbyte.dependencies import build_queue, build_sender, build_store
from nexbyte.mailer import EmailSender
from nexbyte.notifications import EmailRenderer
from nexbyte.outbox import EmailNotifier, EmailOutbox
from nexbyte.queue import OutboxQueue
from nexbyte.routes import router
from nexbyte.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "message": message}
    )


def validation_message(exc: RequestValidationError) -> str:
    """First validation error as a short human readable sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[-1] if loc else "request body"
    if error.get("type") == "missing" or (
        error.get("type") == "string_too_short" and error.get("input") == ""
    ):
        return f"{field} is required"
    return f"{field}: {error.get('msg', 'is invalid')}"


async def handle_validation_error(request: Request, exc: RequestValidationError):
    return _failure(400, validation_message(exc))


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return _failure(exc.status_code, message)


async def handle_store_error(request: Request, exc: StoreError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return _failure(500, "Server error")


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _failure(500, "Server error")


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    sender: Optional[EmailSender] = None,
    queue: Optional[OutboxQueue] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    store = store if store is not None else build_store(settings)
    sender = sender if sender is not None else build_sender(settings)
    queue = queue if queue is not None else build_queue(settings)
    outbox = EmailOutbox(store, sender)

    app = FastAPI(title="NexByte Backend", version="0.1.0")
    app.state.settings = settings
    app.state.store = store
    app.state.outbox = outbox
    app.state.notifier = EmailNotifier(EmailRenderer(settings.email_brand), outbox, queue)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Backend is running"}

    @app.get(f"{settings.api_prefix}/health")
    def health():
        return {"success": True, "database": store.ping()}

    app.include_router(router, prefix=settings.api_prefix)

    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    return app


app = create_app()
