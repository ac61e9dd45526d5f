"""
Career technologies and their content sections.

New or edited technologies are always hidden; publishing needs an explicit
visibility toggle so every edit is reviewed before it goes live.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

from nexbyte.conventions import (
    ORDER_SORT,
    apply_reorder,
    client_fields,
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
    ReorderPayload,
    SectionUpsert,
    TechnologyCreate,
    TechnologyUpdate,
    VisibilityUpdate,
)
from nexbyte.store import DeleteManyOp, DeleteOp, DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/technologies", tags=["technologies"])

TECHNOLOGIES = "career_technologies"
SECTIONS = "career_sections"


@router.get("", response_model=Envelope)
def list_technologies(
    include_hidden: bool = Query(False, alias="includeHidden"),
    store: DocumentStore = Depends(get_store),
):
    docs = store.find(
        TECHNOLOGIES, visibility_filter("isVisible", include_hidden), sort=ORDER_SORT
    )
    return ok(data=docs)


@router.post("", response_model=Envelope, status_code=201)
def create_technology(
    payload: TechnologyCreate, store: DocumentStore = Depends(get_store)
):
    stamp = now()
    doc = {
        **client_fields(payload),
        "isVisible": False,
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    tech_id = store.insert(TECHNOLOGIES, doc)
    return ok(message="Technology created", id=tech_id)


@router.put("/reorder", response_model=Envelope)
def reorder_technologies(
    payload: ReorderPayload = Body(...), store: DocumentStore = Depends(get_store)
):
    updated = apply_reorder(store, TECHNOLOGIES, payload)
    return ok(message="Technologies reordered", data={"updated": updated})


@router.delete("/sections/{section_id}", response_model=Envelope)
def delete_section(section_id: str, store: DocumentStore = Depends(get_store)):
    if not store.delete(SECTIONS, section_id):
        raise HTTPException(status_code=404, detail="Section not found")
    return ok(message="Section deleted")


@router.get("/{technology_id}", response_model=Envelope)
def get_technology(technology_id: str, store: DocumentStore = Depends(get_store)):
    technology = get_or_404(store, TECHNOLOGIES, technology_id, "Technology")
    technology["sections"] = store.find(
        SECTIONS, {"technologyId": technology_id}, sort=[("order", 1)]
    )
    return ok(data=technology)


@router.put("/{technology_id}", response_model=Envelope)
def update_technology(
    technology_id: str,
    payload: TechnologyUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = {
        **client_fields(payload, exclude_unset=True),
        "isVisible": False,
        "updatedAt": now(),
    }
    update_or_404(store, TECHNOLOGIES, technology_id, fields, "Technology")
    return ok(message="Technology updated and hidden until republished")


@router.put("/{technology_id}/visibility", response_model=Envelope)
def set_technology_visibility(
    technology_id: str,
    payload: VisibilityUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(store, TECHNOLOGIES, technology_id, "isVisible", payload.isVisible, "Technology")
    return ok(message="Technology visibility updated")


@router.delete("/{technology_id}", response_model=Envelope)
def delete_technology(technology_id: str, store: DocumentStore = Depends(get_store)):
    get_or_404(store, TECHNOLOGIES, technology_id, "Technology")
    _, sections_deleted = store.apply(
        [
            DeleteOp(TECHNOLOGIES, technology_id),
            DeleteManyOp(SECTIONS, {"technologyId": technology_id}),
        ]
    )
    logger.info(
        "Deleted technology %s with %d sections", technology_id, sections_deleted
    )
    return ok(message="Technology and associated sections deleted")


@router.get("/{technology_id}/sections", response_model=Envelope)
def list_sections(technology_id: str, store: DocumentStore = Depends(get_store)):
    sections = store.find(SECTIONS, {"technologyId": technology_id}, sort=[("order", 1)])
    return ok(data=sections)


@router.post("/{technology_id}/sections", response_model=Envelope, status_code=201)
def upsert_section(
    technology_id: str,
    payload: SectionUpsert,
    response: Response,
    store: DocumentStore = Depends(get_store),
):
    """
    Create a section, or update one when ``sectionId`` is given. Updates
    answer 200 instead of 201.
    """
    get_or_404(store, TECHNOLOGIES, technology_id, "Technology")
    stamp = now()
    section = {
        "technologyId": technology_id,
        "title": payload.title,
        "type": payload.type,
        "content": payload.content,
        "order": payload.order,
        "updatedAt": stamp,
    }
    if payload.sectionId:
        update_or_404(store, SECTIONS, payload.sectionId, section, "Section")
        response.status_code = 200
        return ok(message="Section updated")
    section["createdAt"] = stamp
    section_id = store.insert(SECTIONS, section)
    return ok(message="Section created", id=section_id)
