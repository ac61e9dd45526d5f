"""
Helpers for the conventions shared by the entity routers: response
envelopes, server-owned timestamps, soft-hide visibility flags, manual
ordering and uniqueness checks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from nexbyte.schemas import Envelope, ReorderItem, ReorderPayload
from nexbyte.store import DocumentStore, UpdateOp

logger = logging.getLogger(__name__)

# Never accepted from clients.
SERVER_FIELDS = ("id", "_id", "createdAt", "updatedAt", "submittedAt")

ORDER_SORT = [("order", 1), ("name", 1)]
NEWEST_FIRST = [("createdAt", -1)]

_UNSET: Any = object()


def now() -> datetime:
    return datetime.now(timezone.utc)


def ok(*, data: Any = _UNSET, message: Optional[str] = None, id: Optional[str] = None) -> Envelope:
    fields: dict[str, Any] = {"success": True}
    if data is not _UNSET:
        fields["data"] = data
    if message is not None:
        fields["message"] = message
    if id is not None:
        fields["id"] = id
    return Envelope(**fields)


def client_fields(payload: BaseModel, *, exclude_unset: bool = False) -> dict:
    """Dump a request model, dropping identity and server-owned timestamps."""
    data = payload.model_dump(exclude_unset=exclude_unset)
    return {k: v for k, v in data.items() if k not in SERVER_FIELDS}


def get_or_404(store: DocumentStore, collection: str, doc_id: str, entity: str) -> dict:
    doc = store.get(collection, doc_id)
    if not doc:
        raise HTTPException(status_code=404, detail=f"{entity} not found")
    return doc


def update_or_404(
    store: DocumentStore, collection: str, doc_id: str, fields: dict, entity: str
) -> None:
    if not store.update(collection, doc_id, fields):
        raise HTTPException(status_code=404, detail=f"{entity} not found")


def delete_or_404(store: DocumentStore, collection: str, doc_id: str, entity: str) -> None:
    if not store.delete(collection, doc_id):
        raise HTTPException(status_code=404, detail=f"{entity} not found")


def ensure_unique(
    store: DocumentStore,
    collection: str,
    field: str,
    value: Any,
    *,
    exclude_id: Optional[str] = None,
    label: Optional[str] = None,
) -> None:
    existing = store.find_one(collection, {field: value})
    if existing and existing["id"] != exclude_id:
        raise HTTPException(
            status_code=400, detail=f"{label or field.capitalize()} already exists"
        )


# --- Visibility ---


def visibility_filter(flag: str, include_hidden: bool) -> dict:
    """
    Public-view filter for a soft-hide flag. Documents without the flag
    count as visible for both ``isVisible`` and ``isHidden``.
    """
    if include_hidden:
        return {}
    if flag == "isHidden":
        return {"isHidden": {"$ne": True}}
    return {"isVisible": {"$ne": False}}


def set_flag(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    flag: str,
    value: bool,
    entity: str,
) -> None:
    """Set exactly one boolean field; nothing else on the document changes."""
    update_or_404(store, collection, doc_id, {flag: value}, entity)


# --- Ordering ---


def next_order(store: DocumentStore, collection: str) -> int:
    last = store.find_one(collection, {}, sort=[("order", -1)])
    if not last:
        return 0
    return (last.get("order") or 0) + 1


def reorder_items(payload: ReorderPayload) -> list[ReorderItem]:
    return payload if isinstance(payload, list) else payload.items


def apply_reorder(store: DocumentStore, collection: str, payload: ReorderPayload) -> int:
    items = reorder_items(payload)
    if not items:
        return 0
    results = store.apply(
        [UpdateOp(collection, item.id, {"order": item.order}) for item in items]
    )
    missing = [item.id for item, matched in zip(items, results) if not matched]
    if missing:
        logger.warning(
            "Reorder of %s skipped unknown ids %s",
            collection,
            missing,
            extra={"operation": "reorder", "collection": collection},
        )
    return len(items) - len(missing)


# --- List filters ---


def as_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def search_filter(docs: Iterable[dict], search: Optional[str], field: str = "title") -> list[dict]:
    docs = list(docs)
    if not search:
        return docs
    needle = search.lower()
    return [doc for doc in docs if needle in str(doc.get(field) or "").lower()]


def date_range_filter(
    docs: Iterable[dict],
    field: str,
    start: Optional[datetime],
    end: Optional[datetime],
) -> list[dict]:
    docs = list(docs)
    if start is None and end is None:
        return docs
    start, end = as_datetime(start), as_datetime(end)
    kept = []
    for doc in docs:
        when = as_datetime(doc.get(field))
        if when is None:
            continue
        if start and when < start:
            continue
        if end and when > end:
            continue
        kept.append(doc)
    return kept
