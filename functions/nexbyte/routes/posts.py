"""
Tech, social and AI posts.

The three feeds behave identically, so one router factory builds each of
them over its own collections. Likes, shares and comments are applied as
atomic store operations; concurrent clicks never lose a count.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from nexbyte.conventions import (
    NEWEST_FIRST,
    client_fields,
    delete_or_404,
    ensure_unique,
    get_or_404,
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
    CategoryUpdate,
    CommentCommand,
    CommentsToggleCommand,
    EditPostCommand,
    Envelope,
    LikeCommand,
    PostCreate,
    PostUpdate,
    PostVisibilityCommand,
    ShareCommand,
    SubcategoryCreate,
)
from nexbyte.store import DocumentStore, new_id

# Counters and the comment thread only change through their own commands.
ENGAGEMENT_FIELDS = ("likes", "shares", "comments")


def _bump(store: DocumentStore, collection: str, post_id: str, field: str) -> int:
    if not store.increment(collection, post_id, field):
        raise HTTPException(status_code=404, detail="Post not found")
    post = store.get(collection, post_id) or {}
    return post.get(field, 0)


def run_post_command(store: DocumentStore, collection: str, post_id: str, command) -> dict:
    """Apply one tagged update to a post; returns envelope fields."""
    if isinstance(command, LikeCommand):
        likes = _bump(store, collection, post_id, "likes")
        return {"message": "Post liked", "data": {"likes": likes}}

    if isinstance(command, ShareCommand):
        shares = _bump(store, collection, post_id, "shares")
        return {"message": "Post shared", "data": {"shares": shares}}

    if isinstance(command, CommentCommand):
        post = get_or_404(store, collection, post_id, "Post")
        if post.get("commentsEnabled") is False:
            raise HTTPException(status_code=400, detail="Comments are disabled for this post")
        comment = {
            "id": new_id(),
            "author": command.payload.author or "Anonymous",
            "text": command.payload.text,
            "createdAt": now(),
        }
        if not store.append(collection, post_id, "comments", comment):
            raise HTTPException(status_code=404, detail="Post not found")
        return {"message": "Comment added", "data": comment}

    if isinstance(command, EditPostCommand):
        fields = {
            k: v
            for k, v in client_fields(command.payload, exclude_unset=True).items()
            if k not in ENGAGEMENT_FIELDS
        }
        update_or_404(store, collection, post_id, {**fields, "updatedAt": now()}, "Post")
        return {"message": "Post updated"}

    if isinstance(command, PostVisibilityCommand):
        set_flag(store, collection, post_id, "isVisible", command.payload.isVisible, "Post")
        return {"message": "Post visibility updated"}

    if isinstance(command, CommentsToggleCommand):
        set_flag(
            store,
            collection,
            post_id,
            "commentsEnabled",
            command.payload.commentsEnabled,
            "Post",
        )
        return {"message": "Comments setting updated"}

    raise HTTPException(status_code=400, detail="Unknown update type")


def build_posts_router(
    collection: str,
    category_collection: str,
    subcategory_collection: Optional[str] = None,
    *,
    prefix: str,
    tag: str,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    def _list(store, category, search, include_hidden):
        where = visibility_filter("isVisible", include_hidden)
        if category and category != "All":
            where["category"] = category
        return search_filter(store.find(collection, where, sort=NEWEST_FIRST), search)

    @router.get("", response_model=Envelope)
    def list_posts(
        category: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        store: DocumentStore = Depends(get_store),
    ):
        return ok(data=_list(store, category, search, include_hidden=False))

    @router.get("/admin", response_model=Envelope)
    def list_all_posts(
        category: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        store: DocumentStore = Depends(get_store),
    ):
        return ok(data=_list(store, category, search, include_hidden=True))

    # --- Categories ---

    @router.get("/categories", response_model=Envelope)
    def list_categories(store: DocumentStore = Depends(get_store)):
        return ok(data=store.find(category_collection, sort=[("name", 1)]))

    @router.post("/categories", response_model=Envelope, status_code=201)
    def create_category(payload: CategoryCreate, store: DocumentStore = Depends(get_store)):
        ensure_unique(store, category_collection, "name", payload.name, label="Category")
        category_id = store.insert(
            category_collection, {**client_fields(payload), "createdAt": now()}
        )
        return ok(message="Category created", id=category_id)

    @router.put("/categories/{category_id}", response_model=Envelope)
    def update_category(
        category_id: str,
        payload: CategoryUpdate,
        store: DocumentStore = Depends(get_store),
    ):
        fields = client_fields(payload, exclude_unset=True)
        if "name" in fields:
            ensure_unique(
                store,
                category_collection,
                "name",
                fields["name"],
                exclude_id=category_id,
                label="Category",
            )
        update_or_404(
            store,
            category_collection,
            category_id,
            {**fields, "updatedAt": now()},
            "Category",
        )
        return ok(message="Category updated")

    @router.delete("/categories/{category_id}", response_model=Envelope)
    def delete_category(category_id: str, store: DocumentStore = Depends(get_store)):
        delete_or_404(store, category_collection, category_id, "Category")
        return ok(message="Category deleted")

    if subcategory_collection:

        @router.get("/subcategories", response_model=Envelope)
        def list_subcategories(
            category_id: Optional[str] = Query(None, alias="categoryId"),
            store: DocumentStore = Depends(get_store),
        ):
            where = {"categoryId": category_id} if category_id else None
            return ok(data=store.find(subcategory_collection, where, sort=[("name", 1)]))

        @router.post("/subcategories", response_model=Envelope, status_code=201)
        def create_subcategory(
            payload: SubcategoryCreate, store: DocumentStore = Depends(get_store)
        ):
            get_or_404(store, category_collection, payload.categoryId, "Category")
            subcategory_id = store.insert(
                subcategory_collection, {**client_fields(payload), "createdAt": now()}
            )
            return ok(message="Subcategory created", id=subcategory_id)

        @router.delete("/subcategories/{subcategory_id}", response_model=Envelope)
        def delete_subcategory(
            subcategory_id: str, store: DocumentStore = Depends(get_store)
        ):
            delete_or_404(store, subcategory_collection, subcategory_id, "Subcategory")
            return ok(message="Subcategory deleted")

    # --- Single post ---

    @router.post("", response_model=Envelope, status_code=201)
    def create_post(payload: PostCreate, store: DocumentStore = Depends(get_store)):
        stamp = now()
        doc = {
            **client_fields(payload),
            "likes": 0,
            "shares": 0,
            "comments": [],
            "commentsEnabled": True,
            "isVisible": True,
            "createdAt": stamp,
            "updatedAt": stamp,
        }
        post_id = store.insert(collection, doc)
        return ok(message="Post created", id=post_id)

    @router.get("/{post_id}", response_model=Envelope)
    def get_post(post_id: str, store: DocumentStore = Depends(get_store)):
        return ok(data=get_or_404(store, collection, post_id, "Post"))

    @router.put("/{post_id}", response_model=Envelope)
    def update_post(
        post_id: str,
        payload: PostUpdate,
        store: DocumentStore = Depends(get_store),
    ):
        return ok(**run_post_command(store, collection, post_id, payload.root))

    @router.delete("/{post_id}", response_model=Envelope)
    def delete_post(post_id: str, store: DocumentStore = Depends(get_store)):
        delete_or_404(store, collection, post_id, "Post")
        return ok(message="Post deleted")

    return router


tech_posts_router = build_posts_router(
    "tech_posts",
    "tech_post_categories",
    "tech_post_subcategories",
    prefix="/tech-posts",
    tag="tech-posts",
)
social_posts_router = build_posts_router(
    "social_posts", "social_post_categories", prefix="/social-posts", tag="social-posts"
)
ai_posts_router = build_posts_router(
    "ai_posts", "ai_post_categories", prefix="/ai-posts", tag="ai-posts"
)
