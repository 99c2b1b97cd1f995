"""Live views over one user's job records.

A feed owns one store watch. Every snapshot it yields is the complete, current
list for the user (or the statistics derived from it); consumers replace their
copy wholesale instead of patching it. Feeds are independent of each other: a
list feed and a stats feed for the same user may see a write at different
times.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, TypeVar

from tracker.errors import StoreError
from tracker.models.job import JobRecord
from tracker.schemas.job import JobStats
from tracker.services.stats import compute_stats
from tracker.store import DocumentStore, StoredDocument, Watch


logger = logging.getLogger(__name__)
T = TypeVar("T")
Cancel = Callable[[], None]


def _to_records(snapshot: list[StoredDocument]) -> list[JobRecord]:
    return [JobRecord.from_document(doc.id, doc.fields) for doc in snapshot]


class _Feed(ABC, Generic[T]):
    def __init__(self, watch: Watch, user_id: str) -> None:
        self._watch = watch
        self.user_id = user_id

    @property
    def cancelled(self) -> bool:
        return self._watch.closed

    def cancel(self) -> None:
        self._watch.cancel()

    @abstractmethod
    def _convert(self, snapshot: list[StoredDocument]) -> T:
        ...

    async def next(self) -> T:
        return self._convert(await self._watch.next())

    def __aiter__(self) -> "_Feed[T]":
        return self

    async def __anext__(self) -> T:
        return await self.next()

    async def __aenter__(self) -> "_Feed[T]":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.cancel()


class JobFeed(_Feed[list[JobRecord]]):
    def _convert(self, snapshot: list[StoredDocument]) -> list[JobRecord]:
        return _to_records(snapshot)


class StatsFeed(_Feed[JobStats]):
    def _convert(self, snapshot: list[StoredDocument]) -> JobStats:
        return compute_stats(_to_records(snapshot))


async def open_job_feed(store: DocumentStore, user_id: str, collection: str = "jobs") -> JobFeed:
    return JobFeed(await store.watch(collection, {"userId": user_id}), user_id)


async def open_stats_feed(store: DocumentStore, user_id: str, collection: str = "jobs") -> StatsFeed:
    return StatsFeed(await store.watch(collection, {"userId": user_id}), user_id)


class _CallbackSubscription(Generic[T]):
    def __init__(
        self,
        opener: Callable[[], Awaitable[_Feed[T]]],
        on_update: Callable[[T], None],
        on_error: Callable[[Exception], None] | None,
    ) -> None:
        self._opener = opener
        self._on_update = on_update
        self._on_error = on_error
        self._feed: _Feed[T] | None = None
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._feed is not None:
            self._feed.cancel()
        self._task.cancel()

    async def _run(self) -> None:
        try:
            self._feed = await self._opener()
            if self._cancelled:
                self._feed.cancel()
                return
            async for value in self._feed:
                if self._cancelled:
                    break
                self._on_update(value)
        except StoreError as exc:
            logger.error("Live subscription failed: %s", exc)
            self._report(exc)
        except Exception as exc:
            logger.exception("Live subscription callback failed")
            self._report(exc)
        finally:
            if self._feed is not None:
                self._feed.cancel()

    def _report(self, exc: Exception) -> None:
        if self._on_error is not None and not self._cancelled:
            self._on_error(exc)


def subscribe(
    store: DocumentStore,
    user_id: str,
    on_update: Callable[[list[JobRecord]], None],
    on_error: Callable[[Exception], None] | None = None,
    collection: str = "jobs",
) -> Cancel:
    """Push every job-list snapshot for ``user_id`` to ``on_update``.

    Must be called from a running event loop. The returned callable stops
    delivery and releases the watch; calling it again is a no-op. A watch
    failure, or an exception raised by ``on_update``, reaches ``on_error``
    once and ends the subscription.
    """
    subscription = _CallbackSubscription(
        lambda: open_job_feed(store, user_id, collection), on_update, on_error
    )
    return subscription.cancel


def subscribe_stats(
    store: DocumentStore,
    user_id: str,
    on_update: Callable[[JobStats], None],
    on_error: Callable[[Exception], None] | None = None,
    collection: str = "jobs",
) -> Cancel:
    subscription = _CallbackSubscription(
        lambda: open_stats_feed(store, user_id, collection), on_update, on_error
    )
    return subscription.cancel
