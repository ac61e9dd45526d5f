"""
Worker loop that delivers queued outbox emails.

Used when ``email_dispatch=queue``: the API records each email in the
outbox and pushes its id to the queue; this process pops ids and sends
them. Run with ``python -m nexbyte.worker``.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from nexbyte.config import get_settings
from nexbyte.dependencies import build_queue, build_sender, build_store
from nexbyte.outbox import EmailOutbox
from nexbyte.queue import InMemoryOutboxQueue, OutboxQueue

logger = logging.getLogger(__name__)


def process_next(
    *,
    outbox: EmailOutbox,
    queue: OutboxQueue,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Deliver one queued email. Returns True if an id was taken off the queue,
    whether or not the send succeeded.
    """
    outbox_id = queue.dequeue(block=block, timeout=timeout)
    if not outbox_id:
        return False
    outbox.deliver(outbox_id)
    return True


def requeue_pending(outbox: EmailOutbox, queue: OutboxQueue) -> int:
    """Push every still-pending outbox record back onto the queue."""
    pending = outbox.pending_ids()
    for outbox_id in pending:
        queue.enqueue(outbox_id)
    if pending:
        logger.info("Requeued %d pending emails", len(pending))
    return len(pending)


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """Block on the queue forever. Intended to be run under systemd/supervisor."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    outbox = EmailOutbox(build_store(settings), build_sender(settings))
    queue = build_queue(settings)
    if queue is None:
        logger.warning("email_dispatch is not \"queue\"; draining pending emails only")
        queue = InMemoryOutboxQueue()

    try:
        requeue_pending(outbox, queue)
    except Exception:
        logger.exception("Failed to requeue pending emails")

    while True:
        processed = process_next(
            outbox=outbox, queue=queue, block=True, timeout=int(poll_interval_seconds)
        )
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()
