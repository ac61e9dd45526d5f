"""
Dependency wiring for the FastAPI app.

Backends are built once per app by ``create_app`` and kept on
``app.state``; route handlers receive them through ``Depends`` so tests can
inject fakes without touching module globals.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from nexbyte.config import Settings
from nexbyte.mailer import EmailSender, InMemoryEmailSender, SmtpEmailSender
from nexbyte.outbox import EmailNotifier, EmailOutbox
from nexbyte.queue import InMemoryOutboxQueue, OutboxQueue, RedisOutboxQueue
from nexbyte.store import (
    DocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
    SqlDocumentStore,
)

logger = logging.getLogger(__name__)

MONGO_SCHEMES = ("mongodb://", "mongodb+srv://")


def build_store(settings: Settings) -> DocumentStore:
    url = settings.database_url
    if settings.use_in_memory_backends or not url:
        logger.warning("Using in-memory document store; data will not persist")
        return InMemoryDocumentStore()
    if url.startswith(MONGO_SCHEMES):
        return MongoDocumentStore(
            url,
            settings.database_name,
            use_transactions=settings.mongo_transactions,
            timeout_ms=settings.mongo_timeout_ms,
        )
    return SqlDocumentStore(url)


def build_sender(settings: Settings) -> EmailSender:
    if settings.use_in_memory_backends or not settings.smtp_host:
        logger.warning("SMTP not configured; emails are recorded in memory only")
        return InMemoryEmailSender()
    return SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        from_address=settings.email_from or settings.smtp_username or "",
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_ssl=settings.smtp_use_ssl,
    )


def build_queue(settings: Settings) -> Optional[OutboxQueue]:
    """
    Return the outbox queue when emails are handed to a worker, or None
    when they are sent in-process after the response.
    """
    if settings.email_dispatch != "queue":
        return None
    if settings.redis_url:
        return RedisOutboxQueue(url=settings.redis_url, queue_key=settings.redis_queue_key)
    return InMemoryOutboxQueue()


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_outbox(request: Request) -> EmailOutbox:
    return request.app.state.outbox


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier
