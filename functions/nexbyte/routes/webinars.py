"""
Webinars and webinar categories.

Webinars use ``isHidden`` rather than ``isVisible``. New webinars start
hidden and every edit hides them again until an admin re-publishes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from nexbyte.conventions import (
    client_fields,
    date_range_filter,
    delete_or_404,
    ensure_unique,
    now,
    ok,
    search_filter,
    set_flag,
    update_or_404,
    visibility_filter,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import (
    CategoryCreate,
    Envelope,
    HiddenUpdate,
    WebinarCreate,
    WebinarUpdate,
)
from nexbyte.store import DocumentStore

router = APIRouter(prefix="/webinars", tags=["webinars"])

WEBINARS = "webinars"
WEBINAR_CATEGORIES = "webinar_categories"


# --- Categories ---


@router.get("/categories", response_model=Envelope)
def list_webinar_categories(
    include_hidden: bool = Query(False, alias="includeHidden"),
    store: DocumentStore = Depends(get_store),
):
    docs = store.find(
        WEBINAR_CATEGORIES,
        visibility_filter("isHidden", include_hidden),
        sort=[("name", 1)],
    )
    return ok(data=docs)


@router.post("/categories", response_model=Envelope, status_code=201)
def create_webinar_category(
    payload: CategoryCreate, store: DocumentStore = Depends(get_store)
):
    ensure_unique(store, WEBINAR_CATEGORIES, "name", payload.name, label="Category")
    doc = {**client_fields(payload), "isHidden": False, "createdAt": now()}
    category_id = store.insert(WEBINAR_CATEGORIES, doc)
    return ok(message="Category created", id=category_id)


@router.put("/categories/{category_id}/visibility", response_model=Envelope)
def set_webinar_category_visibility(
    category_id: str,
    payload: HiddenUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(store, WEBINAR_CATEGORIES, category_id, "isHidden", payload.isHidden, "Category")
    return ok(message="Category visibility updated")


@router.delete("/categories/{category_id}", response_model=Envelope)
def delete_webinar_category(category_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, WEBINAR_CATEGORIES, category_id, "Category")
    return ok(message="Category deleted")


# --- Webinars ---


@router.get("", response_model=Envelope)
def list_webinars(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: Optional[Literal["latest", "oldest"]] = Query(None, alias="sortBy"),
    include_hidden: bool = Query(False, alias="includeHidden"),
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    store: DocumentStore = Depends(get_store),
):
    where = visibility_filter("isHidden", include_hidden)
    if category and category != "All":
        where["category"] = category
    direction = 1 if sort_by == "oldest" else -1
    docs = store.find(WEBINARS, where, sort=[("date", direction)])
    docs = date_range_filter(search_filter(docs, search), "date", start, end)
    return ok(data=docs)


@router.post("", response_model=Envelope, status_code=201)
def create_webinar(payload: WebinarCreate, store: DocumentStore = Depends(get_store)):
    stamp = now()
    doc = {
        **client_fields(payload),
        "isHidden": True,
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    webinar_id = store.insert(WEBINARS, doc)
    return ok(message="Webinar created", id=webinar_id)


@router.put("/{webinar_id}", response_model=Envelope)
def update_webinar(
    webinar_id: str,
    payload: WebinarUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = {
        **client_fields(payload, exclude_unset=True),
        "isHidden": True,
        "updatedAt": now(),
    }
    update_or_404(store, WEBINARS, webinar_id, fields, "Webinar")
    return ok(message="Webinar updated")


@router.put("/{webinar_id}/visibility", response_model=Envelope)
def set_webinar_visibility(
    webinar_id: str,
    payload: HiddenUpdate,
    store: DocumentStore = Depends(get_store),
):
    set_flag(store, WEBINARS, webinar_id, "isHidden", payload.isHidden, "Webinar")
    return ok(message="Webinar visibility updated")


@router.delete("/{webinar_id}", response_model=Envelope)
def delete_webinar(webinar_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, WEBINARS, webinar_id, "Webinar")
    return ok(message="Webinar deleted")
