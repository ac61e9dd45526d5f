"""
Trainings and internships. Program documents also carry the content used by
the application emails: WhatsApp group link, schedule and, for trainings, a
custom welcome message.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from nexbyte.conventions import (
    client_fields,
    delete_or_404,
    get_or_404,
    now,
    ok,
    set_flag,
    update_or_404,
    visibility_filter,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import (
    Envelope,
    ProgramCreate,
    ProgramType,
    ProgramUpdate,
    VisibilityUpdate,
)
from nexbyte.store import DocumentStore

router = APIRouter(prefix="/programs", tags=["programs"])

PROGRAMS = "programs"


@router.get("", response_model=Envelope)
def list_programs(
    program_type: Optional[ProgramType] = Query(None, alias="type"),
    include_hidden: bool = Query(False, alias="includeHidden"),
    store: DocumentStore = Depends(get_store),
):
    where = visibility_filter("isVisible", include_hidden)
    if program_type:
        where["type"] = program_type
    docs = store.find(PROGRAMS, where, sort=[("order", 1), ("title", 1)])
    return ok(data=docs)


@router.post("", response_model=Envelope, status_code=201)
def create_program(payload: ProgramCreate, store: DocumentStore = Depends(get_store)):
    stamp = now()
    doc = {
        **client_fields(payload),
        "isVisible": True,
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    program_id = store.insert(PROGRAMS, doc)
    return ok(message="Program created", id=program_id)


@router.get("/{program_id}", response_model=Envelope)
def get_program(program_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, PROGRAMS, program_id, "Program"))


@router.put("/{program_id}", response_model=Envelope)
def update_program(
    program_id: str,
    payload: ProgramUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = {**client_fields(payload, exclude_unset=True), "updatedAt": now()}
    update_or_404(store, PROGRAMS, program_id, fields, "Program")
    return ok(message="Program updated")


@router.put("/{program_id}/visibility", response_model=Envelope)
def set_program_visibility(
    program_id: str,
    payload: VisibilityUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(store, PROGRAMS, program_id, "isVisible", payload.isVisible, "Program")
    return ok(message="Program visibility updated")


@router.delete("/{program_id}", response_model=Envelope)
def delete_program(program_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, PROGRAMS, program_id, "Program")
    return ok(message="Program deleted")
