from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from nexbyte.conventions import (
    apply_reorder,
    client_fields,
    delete_or_404,
    get_or_404,
    next_order,
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
    TestimonialCreate,
    TestimonialUpdate,
    VisibilityUpdate,
)
from nexbyte.store import DocumentStore

router = APIRouter(prefix="/testimonials", tags=["testimonials"])

TESTIMONIALS = "testimonials"


@router.get("", response_model=Envelope)
def list_testimonials(
    include_hidden: bool = Query(False, alias="includeHidden"),
    store: DocumentStore = Depends(get_store),
):
    docs = store.find(
        TESTIMONIALS,
        visibility_filter("isVisible", include_hidden),
        sort=[("order", 1), ("createdAt", -1)],
    )
    return ok(data=docs)


@router.post("", response_model=Envelope, status_code=201)
def create_testimonial(
    payload: TestimonialCreate, store: DocumentStore = Depends(get_store)
):
    stamp = now()
    doc = {
        **client_fields(payload),
        "isVisible": True,
        "order": next_order(store, TESTIMONIALS),
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    testimonial_id = store.insert(TESTIMONIALS, doc)
    return ok(message="Testimonial created", id=testimonial_id)


@router.put("/reorder", response_model=Envelope)
def reorder_testimonials(
    payload: ReorderPayload = Body(...), store: DocumentStore = Depends(get_store)
):
    updated = apply_reorder(store, TESTIMONIALS, payload)
    return ok(message="Testimonials reordered", data={"updated": updated})


@router.get("/{testimonial_id}", response_model=Envelope)
def get_testimonial(testimonial_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, TESTIMONIALS, testimonial_id, "Testimonial"))


@router.put("/{testimonial_id}", response_model=Envelope)
def update_testimonial(
    testimonial_id: str,
    payload: TestimonialUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = {**client_fields(payload, exclude_unset=True), "updatedAt": now()}
    update_or_404(store, TESTIMONIALS, testimonial_id, fields, "Testimonial")
    return ok(message="Testimonial updated")


@router.put("/{testimonial_id}/visibility", response_model=Envelope)
def set_testimonial_visibility(
    testimonial_id: str,
    payload: VisibilityUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(
        store, TESTIMONIALS, testimonial_id, "isVisible", payload.isVisible, "Testimonial"
    )
    return ok(message="Testimonial visibility updated")


@router.delete("/{testimonial_id}", response_model=Envelope)
def delete_testimonial(testimonial_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, TESTIMONIALS, testimonial_id, "Testimonial")
    return ok(message="Testimonial deleted")
