"""Document store backed by SQLAlchemy.

Documents live in named collections and carry a free-form JSON payload. Besides
the usual insert/get/query/update/delete calls the store supports standing
watches: a watch re-runs its query after every committed change that touches
its filter and hands the consumer the full matching set.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.database import Base, make_session_factory
from tracker.errors import NotFoundError, StoreError
from tracker.models.document import Document


logger = logging.getLogger(__name__)
T = TypeVar("T")


@dataclass(frozen=True)
class StoredDocument:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)


def _matches(fields: dict[str, Any] | None, filters: dict[str, Any]) -> bool:
    if fields is None:
        return False
    return all(fields.get(key) == value for key, value in filters.items())


def _field_predicate(key: str, value: Any):
    column = Document.fields[key]
    if isinstance(value, bool):
        return column.as_boolean() == value
    if isinstance(value, int):
        return column.as_integer() == value
    if isinstance(value, float):
        return column.as_float() == value
    return column.as_string() == str(value)


def _to_stored(row: Document) -> StoredDocument:
    return StoredDocument(id=row.id, fields=dict(row.fields or {}))


class Watch:
    """Standing query over one collection.

    Snapshots are delivered latest-wins: a consumer that falls behind only
    ever sees the newest matching set. ``next()`` raises ``StoreError`` once if
    the watch broke and ``StopAsyncIteration`` after ``cancel()``.
    """

    def __init__(self, store: "DocumentStore", collection: str, filters: dict[str, Any]) -> None:
        self._store = store
        self.collection = collection
        self.filters = dict(filters)
        self._pending: list[StoredDocument] | None = None
        self._error: StoreError | None = None
        self._wakeup = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, fields: dict[str, Any] | None) -> bool:
        return _matches(fields, self.filters)

    def push(self, snapshot: list[StoredDocument]) -> None:
        if self._closed or self._error is not None:
            return
        self._pending = snapshot
        self._wakeup.set()

    def fail(self, error: StoreError) -> None:
        if self._closed or self._error is not None:
            return
        self._error = error
        self._pending = None
        self._wakeup.set()

    def cancel(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending = None
        self._store._release(self)
        self._wakeup.set()
        logger.debug("Watch on %s %s cancelled", self.collection, self.filters)

    async def next(self) -> list[StoredDocument]:
        while True:
            if self._closed:
                raise StopAsyncIteration
            if self._error is not None:
                error = self._error
                self.cancel()
                raise error
            if self._pending is not None:
                snapshot, self._pending = self._pending, None
                return snapshot
            self._wakeup.clear()
            await self._wakeup.wait()

    def __aiter__(self) -> "Watch":
        return self

    async def __anext__(self) -> list[StoredDocument]:
        return await self.next()


class DocumentStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = make_session_factory(engine)
        self._watches: set[Watch] = set()
        self._notify_lock = asyncio.Lock()
        # SQLite connections are shared across worker threads
        self._db_lock = threading.Lock() if engine.dialect.name == "sqlite" else contextlib.nullcontext()

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        for watch in list(self._watches):
            watch.cancel()
        self.engine.dispose()

    @property
    def open_watches(self) -> int:
        return len(self._watches)

    async def insert(self, collection: str, fields: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex

        def _insert(db: Session) -> None:
            db.add(Document(id=doc_id, collection=collection, fields=dict(fields)))
            db.commit()

        await self._call(_insert)
        await self._notify(collection, None, fields)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> StoredDocument | None:
        def _get(db: Session) -> StoredDocument | None:
            row = db.get(Document, doc_id)
            if row is None or row.collection != collection:
                return None
            return _to_stored(row)

        return await self._call(_get)

    async def query(self, collection: str, filters: dict[str, Any] | None = None) -> list[StoredDocument]:
        return await self._call(self._query, collection, filters or {})

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        def _update(db: Session) -> tuple[dict[str, Any], dict[str, Any]]:
            row = db.get(Document, doc_id)
            if row is None or row.collection != collection:
                raise NotFoundError(f"Document {doc_id} not found in {collection}")
            before = dict(row.fields or {})
            after = {**before, **fields}
            row.fields = after
            db.add(row)
            db.commit()
            return before, after

        before, after = await self._call(_update)
        await self._notify(collection, before, after)

    async def delete(self, collection: str, doc_id: str) -> None:
        def _delete(db: Session) -> dict[str, Any]:
            row = db.get(Document, doc_id)
            if row is None or row.collection != collection:
                raise NotFoundError(f"Document {doc_id} not found in {collection}")
            before = dict(row.fields or {})
            db.delete(row)
            db.commit()
            return before

        before = await self._call(_delete)
        await self._notify(collection, before, None)

    async def watch(self, collection: str, filters: dict[str, Any] | None = None) -> Watch:
        watch = Watch(self, collection, filters or {})
        self._watches.add(watch)
        try:
            async with self._notify_lock:
                watch.push(await self._call(self._query, collection, watch.filters))
        except (StoreError, asyncio.CancelledError):
            self._release(watch)
            raise
        logger.debug("Watch opened on %s %s", collection, watch.filters)
        return watch

    def _release(self, watch: Watch) -> None:
        self._watches.discard(watch)

    def _query(self, db: Session, collection: str, filters: dict[str, Any]) -> list[StoredDocument]:
        stmt = db.query(Document).filter(Document.collection == collection)
        for key, value in filters.items():
            stmt = stmt.filter(_field_predicate(key, value))
        rows = stmt.order_by(Document.created_at.asc(), Document.id.asc()).all()
        return [_to_stored(row) for row in rows]

    async def _notify(
        self,
        collection: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
    ) -> None:
        # Refreshes run one at a time so snapshots reach each watch in commit order.
        async with self._notify_lock:
            for watch in list(self._watches):
                if watch.collection != collection or watch.closed:
                    continue
                if not (watch.matches(before) or watch.matches(after)):
                    continue
                try:
                    snapshot = await self._call(self._query, collection, watch.filters)
                except StoreError as exc:
                    logger.error("Watch refresh on %s failed: %s", collection, exc)
                    watch.fail(StoreError(f"Watch on {collection} failed: {exc}"))
                    self._release(watch)
                    continue
                watch.push(snapshot)

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._run, fn, *args)

    def _run(self, fn: Callable[..., T], *args: Any) -> T:
        with self._db_lock:
            db = self._session_factory()
            try:
                return fn(db, *args)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Document store operation failed")
                raise StoreError(str(exc)) from exc
            finally:
                db.close()
