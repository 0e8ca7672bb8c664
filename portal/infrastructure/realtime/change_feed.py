"""Row-level change feed over the SQLAlchemy session.

Changes are collected when a session flushes and delivered to subscribers
only once the surrounding transaction commits; rolled back writes never
produce events. Delivery is scheduled on the event loop that registered the
subscription, whichever thread performs the commit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Protocol

from anyio import from_thread
from sqlalchemy import event, inspect, select
from sqlalchemy.orm import Session, sessionmaker

from portal.domain.entities import ChangeEvent, ChangeEventType

from .serialization import to_jsonable

logger = logging.getLogger(__name__)

FEED_SUBSCRIBED = "SUBSCRIBED"
FEED_CHANNEL_ERROR = "CHANNEL_ERROR"
FEED_TIMED_OUT = "TIMED_OUT"
FEED_CLOSED = "CLOSED"

ChangeCallback = Callable[[ChangeEvent], Awaitable[Any]]
StatusCallback = Callable[[str, "BaseException | None"], None]

_PENDING_KEY = "portal.pending_changes"
_STORED_KEY = "portal.stored_rows"


class ChangeFeed(Protocol):
    """Source of row-level change events for named tables."""

    def subscribe(
        self,
        table: str,
        events: Iterable[ChangeEventType] | None,
        callback: ChangeCallback,
        on_status: StatusCallback | None = None,
    ) -> object: ...

    def unsubscribe(self, handle: object) -> None: ...

    async def drain(self, timeout: float | None = None) -> None: ...


@dataclass(eq=False)
class FeedSubscription:
    table: str
    events: frozenset[ChangeEventType]
    callback: ChangeCallback
    on_status: StatusCallback | None = None


class SqlAlchemyChangeFeed:
    """:class:`ChangeFeed` fed by ORM flushes of the watched models."""

    def __init__(self, session_factory: sessionmaker, models: Iterable[type]) -> None:
        self._session_factory = session_factory
        self._models = {model.__tablename__: model for model in models}
        self._subscriptions: list[FeedSubscription] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listening = False
        self._tasks: dict[asyncio.Task[Any], FeedSubscription] = {}

    def subscribe(
        self,
        table: str,
        events: Iterable[ChangeEventType] | None,
        callback: ChangeCallback,
        on_status: StatusCallback | None = None,
    ) -> FeedSubscription:
        if table not in self._models:
            raise ValueError(f"Table {table!r} is not watched by this change feed")
        self._loop = asyncio.get_running_loop()
        subscription = FeedSubscription(
            table=table,
            events=frozenset(events or ChangeEventType),
            callback=callback,
            on_status=on_status,
        )
        self._subscriptions.append(subscription)
        self._listen()
        if on_status is not None:
            on_status(FEED_SUBSCRIBED, None)
        return subscription

    def unsubscribe(self, handle: object) -> None:
        if handle not in self._subscriptions:
            return
        self._subscriptions.remove(handle)  # type: ignore[arg-type]
        if handle.on_status is not None:  # type: ignore[attr-defined]
            handle.on_status(FEED_CLOSED, None)  # type: ignore[attr-defined]
        if not self._subscriptions:
            self._unlisten()

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every scheduled delivery to finish.

        With a ``timeout``, deliveries still running afterwards are cancelled
        and their subscribers receive ``TIMED_OUT``.
        """

        if timeout is None:
            while self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            return
        pending = list(self._tasks)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if not still_running:
            return
        timed_out = [self._tasks.get(task) for task in still_running]
        for task in still_running:
            task.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)
        logger.warning("Cancelled %d change feed deliveries", len(still_running))
        for subscription in timed_out:
            if subscription is not None and subscription.on_status is not None:
                subscription.on_status(FEED_TIMED_OUT, None)

    def _listen(self) -> None:
        if self._listening:
            return
        event.listen(self._session_factory, "before_flush", self._snapshot)
        event.listen(self._session_factory, "after_flush", self._collect)
        event.listen(self._session_factory, "after_commit", self._publish)
        event.listen(self._session_factory, "after_rollback", self._discard)
        self._listening = True

    def _unlisten(self) -> None:
        if not self._listening:
            return
        event.remove(self._session_factory, "before_flush", self._snapshot)
        event.remove(self._session_factory, "after_flush", self._collect)
        event.remove(self._session_factory, "after_commit", self._publish)
        event.remove(self._session_factory, "after_rollback", self._discard)
        self._listening = False

    def _snapshot(self, session: Session, flush_context: Any, instances: Any) -> None:
        # Attributes of expired objects carry no history, so the persisted row
        # is read before the flush overwrites it.
        stored: dict[Any, dict[str, Any]] = session.info.setdefault(_STORED_KEY, {})
        for instance in [*session.dirty, *session.deleted]:
            if self._table_of(instance) is None:
                continue
            state = inspect(instance)
            if state.key is None or state in stored:
                continue
            row = _stored_row(session, state)
            if row is not None:
                stored[state] = row

    def _collect(self, session: Session, flush_context: Any) -> None:
        pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
        stored: dict[Any, dict[str, Any]] = session.info.pop(_STORED_KEY, {})
        for instance in session.new:
            table = self._table_of(instance)
            if table is not None:
                pending.append(ChangeEvent(table, ChangeEventType.INSERT, new=_current_row(instance)))
        for instance in session.dirty:
            table = self._table_of(instance)
            if table is None or not session.is_modified(instance, include_collections=False):
                continue
            old = stored.get(inspect(instance))
            if old is None:
                old = _previous_row(instance)
            pending.append(
                ChangeEvent(
                    table,
                    ChangeEventType.UPDATE,
                    new={**old, **_current_row(instance)},
                    old=old,
                )
            )
        for instance in session.deleted:
            table = self._table_of(instance)
            if table is not None:
                old = stored.get(inspect(instance)) or _current_row(instance)
                pending.append(ChangeEvent(table, ChangeEventType.DELETE, old=old))

    def _publish(self, session: Session) -> None:
        for change in session.info.pop(_PENDING_KEY, []):
            for subscription in list(self._subscriptions):
                if subscription.table == change.table and change.event_type in subscription.events:
                    self._schedule(subscription, change)

    @staticmethod
    def _discard(session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)
        session.info.pop(_STORED_KEY, None)

    def _table_of(self, instance: object) -> str | None:
        table = getattr(instance, "__tablename__", None)
        return table if table in self._models else None

    def _schedule(self, subscription: FeedSubscription, change: ChangeEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning(
                "Change feed loop unavailable; dropping %s on %s",
                change.event_type.value,
                change.table,
            )
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._start_delivery(subscription, change)
            return
        try:
            from_thread.run_sync(self._start_delivery, subscription, change)
        except RuntimeError:
            # Not an anyio worker thread.
            loop.call_soon_threadsafe(self._start_delivery, subscription, change)

    def _start_delivery(self, subscription: FeedSubscription, change: ChangeEvent) -> None:
        task = asyncio.ensure_future(self._deliver(subscription, change))
        self._tasks[task] = subscription
        task.add_done_callback(lambda done: self._tasks.pop(done, None))

    @staticmethod
    async def _deliver(subscription: FeedSubscription, change: ChangeEvent) -> None:
        try:
            await subscription.callback(change)
        except Exception as exc:
            logger.exception("Change feed callback failed for %s", change.table)
            if subscription.on_status is not None:
                subscription.on_status(FEED_CHANNEL_ERROR, exc)


def _current_row(instance: object) -> dict[str, Any]:
    state = inspect(instance)
    return {
        attr.key: to_jsonable(state.dict[attr.key])
        for attr in state.mapper.column_attrs
        if attr.key in state.dict
    }


def _previous_row(instance: object) -> dict[str, Any]:
    state = inspect(instance)
    row: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            row[attr.key] = to_jsonable(history.deleted[0])
        elif history.added:
            # Changed without a recorded previous value; left out as unknown.
            continue
        elif attr.key in state.dict:
            row[attr.key] = to_jsonable(state.dict[attr.key])
    return row


def _stored_row(session: Session, state: Any) -> dict[str, Any] | None:
    mapper = state.mapper
    query = select(mapper.local_table).where(
        *(column == value for column, value in zip(mapper.primary_key, state.identity))
    )
    stored = session.connection().execute(query).mappings().first()
    if stored is None:
        return None
    return {attr.key: to_jsonable(stored[attr.columns[0].key]) for attr in mapper.column_attrs}


__all__ = [
    "ChangeCallback",
    "ChangeFeed",
    "FEED_CHANNEL_ERROR",
    "FEED_CLOSED",
    "FEED_SUBSCRIBED",
    "FEED_TIMED_OUT",
    "FeedSubscription",
    "SqlAlchemyChangeFeed",
    "StatusCallback",
]
