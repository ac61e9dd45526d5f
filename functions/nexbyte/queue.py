"""
Hand-off of email outbox ids from the API process to the worker.

The in-memory queue serves tests and single-process runs; Redis is used
when the worker runs as its own process.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions


class OutboxQueue(Protocol):
    def enqueue(self, outbox_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: Optional[int] = None) -> Optional[str]:
        """Pop the oldest id; None when nothing arrived within ``timeout``."""
        ...


class InMemoryOutboxQueue:
    """FIFO queue; a blocking dequeue waits for an enqueue from another thread."""

    def __init__(self):
        self.items: deque[str] = deque()
        self._ready = threading.Condition()

    def __len__(self) -> int:
        return len(self.items)

    def enqueue(self, outbox_id: str) -> None:
        with self._ready:
            self.items.append(outbox_id)
            self._ready.notify()

    def dequeue(self, *, block: bool = True, timeout: Optional[int] = None) -> Optional[str]:
        with self._ready:
            if block and not self.items:
                self._ready.wait_for(lambda: bool(self.items), timeout=timeout)
            if not self.items:
                return None
            return self.items.popleft()


class RedisOutboxQueue:
    """Redis list used as a queue: RPUSH to enqueue, (B)LPOP to dequeue."""

    def __init__(self, url: str, queue_key: str = "nexbyte:email-outbox"):
        self.url = url
        self.queue_key = queue_key
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(self.url, decode_responses=True)
        return self._client

    def __len__(self) -> int:
        return self.client.llen(self.queue_key)

    def enqueue(self, outbox_id: str) -> None:
        self.client.rpush(self.queue_key, outbox_id)

    def dequeue(self, *, block: bool = True, timeout: Optional[int] = None) -> Optional[str]:
        try:
            if not block:
                return self.client.lpop(self.queue_key)
            popped = self.client.blpop([self.queue_key], timeout=timeout or 0)
            return popped[1] if popped else None
        except redis_exceptions.ConnectionError:
            # Drop the client so the next call reconnects; the loop polls again.
            self._client = None
            return None
