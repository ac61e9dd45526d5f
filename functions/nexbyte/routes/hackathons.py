from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from nexbyte.conventions import (
    client_fields,
    date_range_filter,
    delete_or_404,
    get_or_404,
    now,
    ok,
    search_filter,
    set_flag,
    update_or_404,
    visibility_filter,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import Envelope, HackathonCreate, HackathonUpdate, VisibilityUpdate
from nexbyte.store import DocumentStore

router = APIRouter(prefix="/hackathons", tags=["hackathons"])

HACKATHONS = "hackathons"


@router.get("", response_model=Envelope)
def list_hackathons(
    include_hidden: bool = Query(False, alias="includeHidden"),
    search: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    store: DocumentStore = Depends(get_store),
):
    docs = store.find(
        HACKATHONS,
        visibility_filter("isVisible", include_hidden),
        sort=[("date", -1), ("createdAt", -1)],
    )
    docs = date_range_filter(search_filter(docs, search), "date", start, end)
    return ok(data=docs)


@router.post("", response_model=Envelope, status_code=201)
def create_hackathon(payload: HackathonCreate, store: DocumentStore = Depends(get_store)):
    stamp = now()
    doc = {
        **client_fields(payload),
        "isVisible": True,
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    hackathon_id = store.insert(HACKATHONS, doc)
    return ok(message="Hackathon created", id=hackathon_id)


@router.get("/{hackathon_id}", response_model=Envelope)
def get_hackathon(hackathon_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, HACKATHONS, hackathon_id, "Hackathon"))


@router.put("/{hackathon_id}", response_model=Envelope)
def update_hackathon(
    hackathon_id: str,
    payload: HackathonUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = {**client_fields(payload, exclude_unset=True), "updatedAt": now()}
    update_or_404(store, HACKATHONS, hackathon_id, fields, "Hackathon")
    return ok(message="Hackathon updated")


@router.put("/{hackathon_id}/visibility", response_model=Envelope)
def set_hackathon_visibility(
    hackathon_id: str,
    payload: VisibilityUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(store, HACKATHONS, hackathon_id, "isVisible", payload.isVisible, "Hackathon")
    return ok(message="Hackathon visibility updated")


@router.delete("/{hackathon_id}", response_model=Envelope)
def delete_hackathon(hackathon_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, HACKATHONS, hackathon_id, "Hackathon")
    return ok(message="Hackathon deleted")
