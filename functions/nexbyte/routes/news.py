"""
News section: ads and their manually ordered categories.

Ads reference their category by name, so deleting or renaming a category
leaves existing ads untouched.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from nexbyte.conventions import (
    ORDER_SORT,
    apply_reorder,
    client_fields,
    delete_or_404,
    ensure_unique,
    next_order,
    now,
    ok,
    search_filter,
    set_flag,
    update_or_404,
    visibility_filter,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import (
    AdCreate,
    AdUpdate,
    CategoryCreate,
    CategoryUpdate,
    Envelope,
    ReorderPayload,
    VisibilityUpdate,
)
from nexbyte.store import DocumentStore

router = APIRouter(prefix="/news", tags=["news"])

ADS = "ads"
AD_CATEGORIES = "ad_categories"


# --- Categories ---


@router.get("/categories", response_model=Envelope)
def list_categories(store: DocumentStore = Depends(get_store)):
    return ok(data=store.find(AD_CATEGORIES, sort=ORDER_SORT))


@router.post("/categories", response_model=Envelope, status_code=201)
def create_category(payload: CategoryCreate, store: DocumentStore = Depends(get_store)):
    ensure_unique(store, AD_CATEGORIES, "name", payload.name, label="Category")
    doc = {
        **client_fields(payload),
        "order": next_order(store, AD_CATEGORIES),
        "createdAt": now(),
    }
    category_id = store.insert(AD_CATEGORIES, doc)
    return ok(message="Category created", id=category_id)


@router.put("/categories/reorder", response_model=Envelope)
def reorder_categories(
    payload: ReorderPayload = Body(...), store: DocumentStore = Depends(get_store)
):
    updated = apply_reorder(store, AD_CATEGORIES, payload)
    return ok(message="Categories reordered", data={"updated": updated})


@router.put("/categories/{category_id}", response_model=Envelope)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = client_fields(payload, exclude_unset=True)
    if "name" in fields:
        ensure_unique(
            store, AD_CATEGORIES, "name", fields["name"], exclude_id=category_id, label="Category"
        )
    update_or_404(store, AD_CATEGORIES, category_id, {**fields, "updatedAt": now()}, "Category")
    return ok(message="Category updated")


@router.delete("/categories/{category_id}", response_model=Envelope)
def delete_category(category_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, AD_CATEGORIES, category_id, "Category")
    return ok(message="Category deleted")


# --- Ads ---


@router.get("/ads", response_model=Envelope)
def list_ads(
    category: Optional[str] = Query(None),
    featured: bool = Query(False),
    public_view: bool = Query(False, alias="publicView"),
    search: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
):
    where = visibility_filter("isVisible", include_hidden=not public_view)
    if category and category != "All":
        where["category"] = category
    if featured:
        where["homepageVisible"] = True
    ads = store.find(ADS, where, sort=[("postedDate", -1)])
    return ok(data=search_filter(ads, search))


@router.get("/ads/{slug}", response_model=Envelope)
def get_ad(slug: str, store: DocumentStore = Depends(get_store)):
    ad = store.find_one(ADS, {"slug": slug})
    if not ad:
        raise HTTPException(status_code=404, detail="Ad not found")
    return ok(data=ad)


@router.post("/ads", response_model=Envelope, status_code=201)
def create_ad(payload: AdCreate, store: DocumentStore = Depends(get_store)):
    ensure_unique(store, ADS, "slug", payload.slug)
    stamp = now()
    doc = {
        **client_fields(payload),
        "postedDate": stamp,
        "isVisible": True,
        "createdAt": stamp,
    }
    ad_id = store.insert(ADS, doc)
    return ok(message="Ad created", id=ad_id)


@router.put("/ads/{ad_id}", response_model=Envelope)
def update_ad(ad_id: str, payload: AdUpdate, store: DocumentStore = Depends(get_store)):
    fields = client_fields(payload, exclude_unset=True)
    if "slug" in fields:
        ensure_unique(store, ADS, "slug", fields["slug"], exclude_id=ad_id)
    update_or_404(store, ADS, ad_id, {**fields, "updatedAt": now()}, "Ad")
    return ok(message="Ad updated")


@router.put("/ads/{ad_id}/visibility", response_model=Envelope)
def set_ad_visibility(
    ad_id: str, payload: VisibilityUpdate, store: DocumentStore = Depends(get_store)
):
    set_flag(store, ADS, ad_id, "isVisible", payload.isVisible, "Ad")
    return ok(message="Ad visibility updated")


@router.delete("/ads/{ad_id}", response_model=Envelope)
def delete_ad(ad_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, ADS, ad_id, "Ad")
    return ok(message="Ad deleted")
