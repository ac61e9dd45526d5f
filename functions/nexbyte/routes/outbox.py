"""Admin listing of recorded emails and their delivery status."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from nexbyte.conventions import ok
from nexbyte.dependencies import get_outbox
from nexbyte.outbox import EmailOutbox
from nexbyte.schemas import Envelope

router = APIRouter(prefix="/email-outbox", tags=["email"])


@router.get("", response_model=Envelope)
def list_outbox(
    status: Optional[Literal["pending", "sent", "failed"]] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    outbox: EmailOutbox = Depends(get_outbox),
):
    return ok(data=outbox.list(status=status, limit=limit))
