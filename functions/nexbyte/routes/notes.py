"""
Admin notes and todos. Plain CRUD with a fixed list order: pinned notes
first, open todos first.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from nexbyte.conventions import (
    NEWEST_FIRST,
    client_fields,
    delete_or_404,
    get_or_404,
    now,
    ok,
    update_or_404,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import Envelope, NoteCreate, NoteUpdate, TodoCreate, TodoUpdate
from nexbyte.store import DocumentStore

notes_router = APIRouter(prefix="/notes", tags=["notes"])
todos_router = APIRouter(prefix="/todos", tags=["todos"])

NOTES = "notes"
TODOS = "todos"


@notes_router.get("", response_model=Envelope)
def list_notes(store: DocumentStore = Depends(get_store)):
    return ok(data=store.find(NOTES, sort=[("pinned", -1), ("updatedAt", -1)]))


@notes_router.post("", response_model=Envelope, status_code=201)
def create_note(payload: NoteCreate, store: DocumentStore = Depends(get_store)):
    stamp = now()
    note_id = store.insert(
        NOTES, {**client_fields(payload), "createdAt": stamp, "updatedAt": stamp}
    )
    return ok(message="Note created", id=note_id)


@notes_router.get("/{note_id}", response_model=Envelope)
def get_note(note_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, NOTES, note_id, "Note"))


@notes_router.put("/{note_id}", response_model=Envelope)
def update_note(note_id: str, payload: NoteUpdate, store: DocumentStore = Depends(get_store)):
    fields = {**client_fields(payload, exclude_unset=True), "updatedAt": now()}
    update_or_404(store, NOTES, note_id, fields, "Note")
    return ok(message="Note updated")


@notes_router.delete("/{note_id}", response_model=Envelope)
def delete_note(note_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, NOTES, note_id, "Note")
    return ok(message="Note deleted")


@todos_router.get("", response_model=Envelope)
def list_todos(store: DocumentStore = Depends(get_store)):
    return ok(data=store.find(TODOS, sort=[("completed", 1), *NEWEST_FIRST]))


@todos_router.post("", response_model=Envelope, status_code=201)
def create_todo(payload: TodoCreate, store: DocumentStore = Depends(get_store)):
    stamp = now()
    todo_id = store.insert(
        TODOS, {**client_fields(payload), "createdAt": stamp, "updatedAt": stamp}
    )
    return ok(message="Todo created", id=todo_id)


@todos_router.get("/{todo_id}", response_model=Envelope)
def get_todo(todo_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, TODOS, todo_id, "Todo"))


@todos_router.put("/{todo_id}", response_model=Envelope)
def update_todo(todo_id: str, payload: TodoUpdate, store: DocumentStore = Depends(get_store)):
    fields = {**client_fields(payload, exclude_unset=True), "updatedAt": now()}
    update_or_404(store, TODOS, todo_id, fields, "Todo")
    return ok(message="Todo updated")


@todos_router.delete("/{todo_id}", response_model=Envelope)
def delete_todo(todo_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, TODOS, todo_id, "Todo")
    return ok(message="Todo deleted")
