"""
Email outbox: every notification is persisted before it is sent so that
delivery attempts, failures and resends are all visible in one collection.

Delivery is fire-and-forget from the HTTP caller's point of view. A send is
attempted once; failures are recorded and logged, never retried
automatically.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import BackgroundTasks

from nexbyte.mailer import EmailSender
from nexbyte.notifications import EmailFlow, EmailRenderer, RenderedEmail
from nexbyte.queue import OutboxQueue
from nexbyte.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

OUTBOX_COLLECTION = "email_outbox"

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class EmailOutbox:
    def __init__(
        self,
        store: DocumentStore,
        sender: EmailSender,
        collection: str = OUTBOX_COLLECTION,
    ):
        self.store = store
        self.sender = sender
        self.collection = collection

    def record(
        self,
        email: RenderedEmail,
        *,
        source_collection: str,
        source_id: Optional[str],
    ) -> str:
        return self.store.insert(
            self.collection,
            {
                "flow": email.flow.value,
                "to": email.to,
                "subject": email.subject,
                "html": email.html,
                "status": STATUS_PENDING,
                "attempts": 0,
                "error": None,
                "sourceCollection": source_collection,
                "sourceId": source_id,
                "createdAt": datetime.now(timezone.utc),
                "sentAt": None,
            },
        )

    def deliver(self, outbox_id: str) -> bool:
        """
        Send one outbox record. Returns True when the message was accepted
        by the provider. Never raises.
        """
        try:
            return self._deliver(outbox_id)
        except StoreError:
            logger.exception("Could not update outbox record %s", outbox_id)
            return False

    def _deliver(self, outbox_id: str) -> bool:
        record = self.store.get(self.collection, outbox_id)
        if not record:
            logger.warning("Outbox record %s not found", outbox_id)
            return False
        status = record.get("status")
        if status == STATUS_SENT:
            logger.info("Outbox record %s already sent, skipping", outbox_id)
            return True
        if status != STATUS_PENDING:
            # A failed send is final; resending goes through a new record.
            logger.info("Outbox record %s is %s, skipping", outbox_id, status)
            return False

        attempts = (record.get("attempts") or 0) + 1
        try:
            self.sender.send(record["to"], record["subject"], record["html"])
        except Exception as exc:
            logger.error(
                "Email %s (%s) to %s failed: %s",
                outbox_id,
                record.get("flow"),
                record.get("to"),
                exc,
            )
            self.store.update(
                self.collection,
                outbox_id,
                {"status": STATUS_FAILED, "attempts": attempts, "error": str(exc)},
            )
            return False

        self.store.update(
            self.collection,
            outbox_id,
            {
                "status": STATUS_SENT,
                "attempts": attempts,
                "error": None,
                "sentAt": datetime.now(timezone.utc),
            },
        )
        logger.info(
            "Email %s (%s) sent to %s", outbox_id, record.get("flow"), record.get("to")
        )
        return True

    def pending_ids(self) -> list[str]:
        return [
            doc["id"]
            for doc in self.store.find(
                self.collection, {"status": STATUS_PENDING}, sort=[("createdAt", 1)]
            )
        ]

    def list(self, status: Optional[str] = None, limit: int = 200) -> list[dict]:
        where = {"status": status} if status else None
        return self.store.find(
            self.collection, where, sort=[("createdAt", -1)], limit=limit
        )


class EmailNotifier:
    """Renders a flow, records it in the outbox and hands it off for delivery."""

    def __init__(
        self,
        renderer: EmailRenderer,
        outbox: EmailOutbox,
        queue: Optional[OutboxQueue] = None,
    ):
        self.renderer = renderer
        self.outbox = outbox
        self.queue = queue

    def notify(
        self,
        flow: EmailFlow,
        submission: dict,
        *,
        source_collection: str,
        parent: Optional[dict] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Optional[str]:
        try:
            email = self.renderer.render(flow, submission, parent)
            outbox_id = self.outbox.record(
                email,
                source_collection=source_collection,
                source_id=submission.get("id"),
            )
        except Exception:
            logger.exception(
                "Could not prepare %s email for %s %s",
                flow.value,
                source_collection,
                submission.get("id"),
            )
            return None
        self.dispatch(outbox_id, background_tasks)
        return outbox_id

    def dispatch(
        self, outbox_id: str, background_tasks: Optional[BackgroundTasks] = None
    ) -> None:
        if self.queue is not None:
            try:
                self.queue.enqueue(outbox_id)
            except Exception:
                # The record stays pending; the worker's requeue pass picks it up.
                logger.exception("Could not enqueue outbox record %s", outbox_id)
        elif background_tasks is not None:
            background_tasks.add_task(self.outbox.deliver, outbox_id)
        else:
            self.outbox.deliver(outbox_id)
