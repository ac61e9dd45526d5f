"""
Document store abstraction: MongoDB, SQLAlchemy and an in-memory test implementation.

Documents are plain dicts. Every implementation exposes the generated
identifier as a string under ``id`` and never lets a caller overwrite it.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
import time
import uuid
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Optional, Protocol, Sequence, Union

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo import errors as mongo_errors
from sqlalchemy import JSON, Column, Float, String, create_engine, event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Where = dict[str, Any]
Sort = Sequence[tuple[str, int]]

IDENTITY_FIELDS = ("id", "_id")


class StoreError(RuntimeError):
    """The backing store is unreachable or rejected an operation."""


@dataclass
class InsertOp:
    collection: str
    document: dict


@dataclass
class UpdateOp:
    collection: str
    id: str
    fields: dict


@dataclass
class UpdateManyOp:
    collection: str
    where: Where
    fields: dict


@dataclass
class DeleteOp:
    collection: str
    id: str


@dataclass
class DeleteManyOp:
    collection: str
    where: Where


WriteOp = Union[InsertOp, UpdateOp, UpdateManyOp, DeleteOp, DeleteManyOp]


class DocumentStore(Protocol):
    """Interface the routers need from the document database."""

    def connect(self) -> Any:
        ...

    def ping(self) -> bool:
        ...

    def insert(self, collection: str, document: dict) -> str:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def find_one(
        self, collection: str, where: Where, sort: Optional[Sort] = None
    ) -> Optional[dict]:
        ...

    def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    def count(self, collection: str, where: Optional[Where] = None) -> int:
        ...

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        ...

    def update_many(self, collection: str, where: Where, fields: dict) -> int:
        ...

    def increment(
        self, collection: str, doc_id: str, field: str, amount: int = 1
    ) -> bool:
        ...

    def append(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        ...

    def delete(self, collection: str, doc_id: str) -> bool:
        ...

    def delete_many(self, collection: str, where: Where) -> int:
        ...

    def apply(self, ops: Sequence[WriteOp]) -> list:
        ...


def new_id() -> str:
    return uuid.uuid4().hex


def strip_identity(document: dict) -> dict:
    return {k: v for k, v in document.items() if k not in IDENTITY_FIELDS}


def matches(document: dict, where: Optional[Where]) -> bool:
    """Evaluate the supported filter subset: equality, ``$ne`` and ``$in``."""
    if not where:
        return True
    for key, expected in where.items():
        actual = document.get(key)
        if isinstance(expected, dict):
            if "$ne" in expected and actual == expected["$ne"]:
                return False
            if "$in" in expected and actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(value: Any) -> tuple:
    # Missing values first, then numbers, then text; datetimes compare as
    # ISO strings so stored strings and live datetimes interleave.
    if value is None:
        return (0, 0)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value.isoformat())
    return (2, str(value))


def sort_documents(documents: list[dict], sort: Optional[Sort]) -> list[dict]:
    if not sort:
        return documents
    ordered = list(documents)
    for key, direction in reversed(list(sort)):
        ordered.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=direction < 0)
    return ordered


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_ready(value: Any) -> Any:
    return json.loads(json.dumps(value, default=_json_default))


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.RLock()

    def connect(self) -> "InMemoryDocumentStore":
        return self

    def ping(self) -> bool:
        return True

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()

    def _collection(self, name: str) -> dict[str, dict]:
        return self.collections.setdefault(name, {})

    def insert(self, collection: str, document: dict) -> str:
        with self._lock:
            return self._insert(collection, document)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_one(
        self, collection: str, where: Where, sort: Optional[Sort] = None
    ) -> Optional[dict]:
        docs = self.find(collection, where, sort=sort, limit=1)
        return docs[0] if docs else None

    def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        with self._lock:
            docs = [
                copy.deepcopy(doc)
                for doc in self._collection(collection).values()
                if matches(doc, where)
            ]
        docs = sort_documents(docs, sort)
        return docs[:limit] if limit else docs

    def count(self, collection: str, where: Optional[Where] = None) -> int:
        with self._lock:
            return sum(
                1 for doc in self._collection(collection).values() if matches(doc, where)
            )

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        with self._lock:
            return self._update(collection, doc_id, fields)

    def update_many(self, collection: str, where: Where, fields: dict) -> int:
        with self._lock:
            return self._update_many(collection, where, fields)

    def increment(
        self, collection: str, doc_id: str, field: str, amount: int = 1
    ) -> bool:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                return False
            doc[field] = (doc.get(field) or 0) + amount
            return True

    def append(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                return False
            doc[field] = list(doc.get(field) or []) + [copy.deepcopy(value)]
            return True

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._delete(collection, doc_id)

    def delete_many(self, collection: str, where: Where) -> int:
        with self._lock:
            return self._delete_many(collection, where)

    def apply(self, ops: Sequence[WriteOp]) -> list:
        with self._lock:
            snapshot = copy.deepcopy(self.collections)
            try:
                return [self._apply_one(op) for op in ops]
            except Exception:
                self.collections = snapshot
                raise

    def _apply_one(self, op: WriteOp) -> Any:
        if isinstance(op, InsertOp):
            return self._insert(op.collection, op.document)
        if isinstance(op, UpdateOp):
            return self._update(op.collection, op.id, op.fields)
        if isinstance(op, UpdateManyOp):
            return self._update_many(op.collection, op.where, op.fields)
        if isinstance(op, DeleteOp):
            return self._delete(op.collection, op.id)
        if isinstance(op, DeleteManyOp):
            return self._delete_many(op.collection, op.where)
        raise TypeError(f"Unsupported write op: {op!r}")

    def _insert(self, collection: str, document: dict) -> str:
        doc_id = new_id()
        stored = copy.deepcopy(strip_identity(document))
        stored["id"] = doc_id
        self._collection(collection)[doc_id] = stored
        return doc_id

    def _update(self, collection: str, doc_id: str, fields: dict) -> bool:
        doc = self._collection(collection).get(doc_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(strip_identity(fields)))
        return True

    def _update_many(self, collection: str, where: Where, fields: dict) -> int:
        changed = 0
        for doc in self._collection(collection).values():
            if matches(doc, where):
                doc.update(copy.deepcopy(strip_identity(fields)))
                changed += 1
        return changed

    def _delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    def _delete_many(self, collection: str, where: Where) -> int:
        docs = self._collection(collection)
        doomed = [doc_id for doc_id, doc in docs.items() if matches(doc, where)]
        for doc_id in doomed:
            del docs[doc_id]
        return len(doomed)


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    collection = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


def _lock_sqlite_on_begin(engine) -> None:
    """
    SQLite ignores SELECT ... FOR UPDATE and pysqlite defers BEGIN until the
    first write, so two read-modify-write transactions can interleave. Take
    over transaction control and start every transaction with BEGIN IMMEDIATE
    so the write lock is held from the first read.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation keeping each document as a JSON row.
    Accepts any SQLAlchemy URL (e.g., Postgres, or SQLite for tests).
    Filtering and sorting run in Python, which is fine at this traffic.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("database_url is required for SqlDocumentStore")
        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")
        self.is_memory = self.is_sqlite and ":memory:" in database_url
        self._engine = None
        self.Session = None
        self._connect_lock = threading.Lock()
        # An in-memory SQLite database is one shared connection; sessions take turns.
        self._session_lock = threading.RLock() if self.is_memory else nullcontext()

    def connect(self):
        if self._engine is not None:
            return self._engine
        with self._connect_lock:
            if self._engine is None:
                kwargs: dict[str, Any] = {"future": True}
                if self.is_memory:
                    kwargs.update(
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                    )
                elif self.is_sqlite:
                    kwargs.update(connect_args={"timeout": 30})
                else:
                    kwargs.update(pool_pre_ping=True, pool_recycle=1800)
                try:
                    engine = create_engine(self.database_url, **kwargs)
                    if self.is_sqlite:
                        _lock_sqlite_on_begin(engine)
                    Base.metadata.create_all(engine)
                except SQLAlchemyError as exc:
                    raise StoreError(f"Could not connect to database: {exc}") from exc
                self.Session = sessionmaker(
                    bind=engine, class_=Session, expire_on_commit=False, future=True
                )
                self._engine = engine
                logger.info("Connected to SQL document store")
        return self._engine

    def ping(self) -> bool:
        self.connect()
        return True

    @contextmanager
    def _session(self) -> Iterator[Session]:
        self.connect()
        try:
            with self._session_lock, self.Session() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _to_document(row: DocumentRow) -> dict:
        doc = dict(row.data or {})
        doc["id"] = row.id
        return doc

    def _rows(self, session: Session, collection: str, for_update: bool = False):
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .order_by(DocumentRow.created_at.asc())
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalars().all()

    def _row(self, session: Session, collection: str, doc_id: str, for_update: bool = False):
        stmt = select(DocumentRow).where(
            DocumentRow.collection == collection, DocumentRow.id == doc_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    def insert(self, collection: str, document: dict) -> str:
        with self._session() as session:
            return self._insert(session, collection, document)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._session() as session:
            row = self._row(session, collection, doc_id)
            return self._to_document(row) if row else None

    def find_one(
        self, collection: str, where: Where, sort: Optional[Sort] = None
    ) -> Optional[dict]:
        docs = self.find(collection, where, sort=sort, limit=1)
        return docs[0] if docs else None

    def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        with self._session() as session:
            docs = [self._to_document(row) for row in self._rows(session, collection)]
        docs = sort_documents([doc for doc in docs if matches(doc, where)], sort)
        return docs[:limit] if limit else docs

    def count(self, collection: str, where: Optional[Where] = None) -> int:
        return len(self.find(collection, where))

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        with self._session() as session:
            return self._update(session, collection, doc_id, fields)

    def update_many(self, collection: str, where: Where, fields: dict) -> int:
        with self._session() as session:
            return self._update_many(session, collection, where, fields)

    def increment(
        self, collection: str, doc_id: str, field: str, amount: int = 1
    ) -> bool:
        with self._session() as session:
            row = self._row(session, collection, doc_id, for_update=True)
            if not row:
                return False
            data = dict(row.data)
            data[field] = (data.get(field) or 0) + amount
            row.data = data
            return True

    def append(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        with self._session() as session:
            row = self._row(session, collection, doc_id, for_update=True)
            if not row:
                return False
            data = dict(row.data)
            data[field] = list(data.get(field) or []) + [json_ready(value)]
            row.data = data
            return True

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._session() as session:
            return self._delete(session, collection, doc_id)

    def delete_many(self, collection: str, where: Where) -> int:
        with self._session() as session:
            return self._delete_many(session, collection, where)

    def apply(self, ops: Sequence[WriteOp]) -> list:
        # One session, one transaction: either every op lands or none do.
        with self._session() as session:
            return [self._apply_one(session, op) for op in ops]

    def _apply_one(self, session: Session, op: WriteOp) -> Any:
        if isinstance(op, InsertOp):
            return self._insert(session, op.collection, op.document)
        if isinstance(op, UpdateOp):
            return self._update(session, op.collection, op.id, op.fields)
        if isinstance(op, UpdateManyOp):
            return self._update_many(session, op.collection, op.where, op.fields)
        if isinstance(op, DeleteOp):
            return self._delete(session, op.collection, op.id)
        if isinstance(op, DeleteManyOp):
            return self._delete_many(session, op.collection, op.where)
        raise TypeError(f"Unsupported write op: {op!r}")

    def _insert(self, session: Session, collection: str, document: dict) -> str:
        doc_id = new_id()
        session.add(
            DocumentRow(
                id=doc_id,
                collection=collection,
                data=json_ready(strip_identity(document)),
                created_at=time.time(),
            )
        )
        session.flush()
        return doc_id

    def _update(self, session: Session, collection: str, doc_id: str, fields: dict) -> bool:
        row = self._row(session, collection, doc_id, for_update=True)
        if not row:
            return False
        row.data = {**row.data, **json_ready(strip_identity(fields))}
        return True

    def _update_many(self, session: Session, collection: str, where: Where, fields: dict) -> int:
        changed = 0
        patch = json_ready(strip_identity(fields))
        for row in self._rows(session, collection, for_update=True):
            if matches(self._to_document(row), where):
                row.data = {**row.data, **patch}
                changed += 1
        return changed

    def _delete(self, session: Session, collection: str, doc_id: str) -> bool:
        row = self._row(session, collection, doc_id, for_update=True)
        if not row:
            return False
        session.delete(row)
        return True

    def _delete_many(self, session: Session, collection: str, where: Where) -> int:
        deleted = 0
        for row in self._rows(session, collection, for_update=True):
            if matches(self._to_document(row), where):
                session.delete(row)
                deleted += 1
        return deleted


def _object_id(doc_id: str) -> Any:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return doc_id


def _id_filter(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            op: [_object_id(v) for v in operand] if isinstance(operand, list) else _object_id(operand)
            for op, operand in value.items()
        }
    return _object_id(value)


class MongoDocumentStore:
    """
    pymongo-backed implementation. The client is created on first use and
    reused for the life of the process.
    """

    def __init__(
        self,
        url: str,
        database_name: str,
        *,
        use_transactions: bool = False,
        timeout_ms: int = 5000,
    ):
        if not url:
            raise ValueError("url is required for MongoDocumentStore")
        self.url = url
        self.database_name = database_name
        self.use_transactions = use_transactions
        self.timeout_ms = timeout_ms
        self._client: Optional[MongoClient] = None
        self._db = None
        self._connect_lock = threading.Lock()

    def connect(self):
        if self._db is not None:
            return self._db
        with self._connect_lock:
            if self._db is None:
                try:
                    client = MongoClient(
                        self.url,
                        serverSelectionTimeoutMS=self.timeout_ms,
                        tz_aware=True,
                    )
                    client.admin.command("ping")
                except mongo_errors.PyMongoError as exc:
                    raise StoreError(f"Could not connect to MongoDB: {exc}") from exc
                self._client = client
                self._db = client[self.database_name]
                logger.info("Connected to MongoDB: %s", self.database_name)
        return self._db

    def ping(self) -> bool:
        with self._guard():
            self.connect().command("ping")
        return True

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except mongo_errors.PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _query(where: Optional[Where]) -> dict:
        query: dict = {}
        for key, value in (where or {}).items():
            if key in IDENTITY_FIELDS:
                query["_id"] = _id_filter(value)
            else:
                query[key] = value
        return query

    @staticmethod
    def _to_document(raw: dict) -> dict:
        doc = {}
        for key, value in raw.items():
            if key == "_id":
                doc["id"] = str(value)
            elif isinstance(value, ObjectId):
                doc[key] = str(value)
            else:
                doc[key] = value
        return doc

    def insert(self, collection: str, document: dict) -> str:
        db = self.connect()
        with self._guard():
            return self._insert(db, collection, document, None)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return self.find_one(collection, {"id": doc_id})

    def find_one(
        self, collection: str, where: Where, sort: Optional[Sort] = None
    ) -> Optional[dict]:
        docs = self.find(collection, where, sort=sort, limit=1)
        return docs[0] if docs else None

    def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        db = self.connect()
        with self._guard():
            cursor = db[collection].find(self._query(where))
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return [self._to_document(raw) for raw in cursor]

    def count(self, collection: str, where: Optional[Where] = None) -> int:
        db = self.connect()
        with self._guard():
            return db[collection].count_documents(self._query(where))

    def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        db = self.connect()
        with self._guard():
            return self._update(db, collection, doc_id, fields, None)

    def update_many(self, collection: str, where: Where, fields: dict) -> int:
        db = self.connect()
        with self._guard():
            return self._update_many(db, collection, where, fields, None)

    def increment(
        self, collection: str, doc_id: str, field: str, amount: int = 1
    ) -> bool:
        db = self.connect()
        with self._guard():
            result = db[collection].update_one(
                {"_id": _object_id(doc_id)}, {"$inc": {field: amount}}
            )
            return result.matched_count > 0

    def append(self, collection: str, doc_id: str, field: str, value: Any) -> bool:
        db = self.connect()
        with self._guard():
            result = db[collection].update_one(
                {"_id": _object_id(doc_id)}, {"$push": {field: value}}
            )
            return result.matched_count > 0

    def delete(self, collection: str, doc_id: str) -> bool:
        db = self.connect()
        with self._guard():
            return self._delete(db, collection, doc_id, None)

    def delete_many(self, collection: str, where: Where) -> int:
        db = self.connect()
        with self._guard():
            return self._delete_many(db, collection, where, None)

    def apply(self, ops: Sequence[WriteOp]) -> list:
        db = self.connect()
        with self._guard():
            if self.use_transactions:
                with self._client.start_session() as session:
                    return session.with_transaction(
                        lambda s: [self._apply_one(db, op, s) for op in ops]
                    )
            logger.warning(
                "Applying %d writes without a transaction; a failure part way leaves them partially applied",
                len(ops),
                extra={
                    "operation": "batch",
                    "collections": sorted({op.collection for op in ops}),
                },
            )
            return [self._apply_one(db, op, None) for op in ops]

    def _apply_one(self, db, op: WriteOp, session) -> Any:
        if isinstance(op, InsertOp):
            return self._insert(db, op.collection, op.document, session)
        if isinstance(op, UpdateOp):
            return self._update(db, op.collection, op.id, op.fields, session)
        if isinstance(op, UpdateManyOp):
            return self._update_many(db, op.collection, op.where, op.fields, session)
        if isinstance(op, DeleteOp):
            return self._delete(db, op.collection, op.id, session)
        if isinstance(op, DeleteManyOp):
            return self._delete_many(db, op.collection, op.where, session)
        raise TypeError(f"Unsupported write op: {op!r}")

    def _insert(self, db, collection: str, document: dict, session) -> str:
        doc = strip_identity(document)
        doc["_id"] = ObjectId()
        db[collection].insert_one(doc, session=session)
        return str(doc["_id"])

    def _update(self, db, collection: str, doc_id: str, fields: dict, session) -> bool:
        patch = strip_identity(fields)
        if not patch:
            return db[collection].count_documents(
                {"_id": _object_id(doc_id)}, session=session
            ) > 0
        result = db[collection].update_one(
            {"_id": _object_id(doc_id)}, {"$set": patch}, session=session
        )
        return result.matched_count > 0

    def _update_many(self, db, collection: str, where: Where, fields: dict, session) -> int:
        result = db[collection].update_many(
            self._query(where), {"$set": strip_identity(fields)}, session=session
        )
        return result.matched_count

    def _delete(self, db, collection: str, doc_id: str, session) -> bool:
        result = db[collection].delete_one({"_id": _object_id(doc_id)}, session=session)
        return result.deleted_count > 0

    def _delete_many(self, db, collection: str, where: Where, session) -> int:
        result = db[collection].delete_many(self._query(where), session=session)
        return result.deleted_count
