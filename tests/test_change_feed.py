"""Tests for the SQLAlchemy backed change feed and member repository."""

from __future__ import annotations

import asyncio

import pytest
from anyio import to_thread
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker

from portal.domain.entities import BRANCH_EZCC, BRANCH_NEZCC, ChangeEvent, ChangeEventType
from portal.infrastructure.database import Base, build_engine
from portal.infrastructure.models import AdministratorModel, MemberModel
from portal.infrastructure.realtime import (
    FEED_CLOSED,
    FEED_SUBSCRIBED,
    FEED_TIMED_OUT,
    SqlAlchemyChangeFeed,
)
from portal.infrastructure.repositories import MemberRepository

pytestmark = pytest.mark.anyio


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'feed.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def change_feed(session_factory):
    return SqlAlchemyChangeFeed(session_factory, [MemberModel, AdministratorModel])


class Recorder:
    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []
        self.statuses: list[str] = []

    async def __call__(self, change: ChangeEvent) -> None:
        self.events.append(change)

    def on_status(self, status: str, error: BaseException | None = None) -> None:
        self.statuses.append(status)


def _member(**overrides):
    values = {"name": "Grace Kim", "email": "grace@example.com", "branch": BRANCH_EZCC}
    values.update(overrides)
    return values


async def test_insert_update_delete_are_published_after_commit(change_feed, session_factory) -> None:
    recorder = Recorder()
    change_feed.subscribe("users", None, recorder, on_status=recorder.on_status)

    with session_factory() as session:
        repository = MemberRepository(session)
        member = repository.create(**_member())
        member_id = member.id
        repository.update(member_id, approval_status="approved", approved_by="p-1")
        repository.delete(member_id)
    await change_feed.drain()

    kinds = [change.event_type for change in recorder.events]
    assert kinds == [ChangeEventType.INSERT, ChangeEventType.UPDATE, ChangeEventType.DELETE]
    inserted, updated, deleted = recorder.events
    assert inserted.new["id"] == member_id
    assert inserted.new["approval_status"] == "pending"
    assert isinstance(inserted.new["created_at"], str)
    assert updated.old["approval_status"] == "pending"
    assert updated.new["approval_status"] == "approved"
    assert updated.new["approved_by"] == "p-1"
    assert deleted.old["email"] == "grace@example.com"
    assert recorder.statuses == [FEED_SUBSCRIBED]


async def test_changes_to_expired_instances_report_the_stored_row(
    change_feed, session_factory
) -> None:
    recorder = Recorder()
    change_feed.subscribe("users", [ChangeEventType.UPDATE, ChangeEventType.DELETE], recorder)

    with session_factory() as session:
        member = MemberModel(**_member())
        session.add(member)
        session.commit()
        member.approval_status = "approved"
        member.bio = "Usher"
        session.commit()
        session.delete(member)
        session.commit()
    await change_feed.drain()

    updated, deleted = recorder.events
    assert updated.old["approval_status"] == "pending"
    assert updated.old["bio"] is None
    assert updated.new["approval_status"] == "approved"
    assert updated.new["bio"] == "Usher"
    assert updated.new["id"] == updated.old["id"]
    assert updated.new["name"] == "Grace Kim"
    assert updated.new["email"] == "grace@example.com"
    assert deleted.event_type is ChangeEventType.DELETE
    assert deleted.old["email"] == "grace@example.com"
    assert deleted.old["approval_status"] == "approved"


async def test_rolled_back_writes_are_not_published(change_feed, session_factory) -> None:
    recorder = Recorder()
    change_feed.subscribe("users", None, recorder)

    with session_factory() as session:
        session.add(MemberModel(**_member()))
        session.flush()
        session.rollback()
    await change_feed.drain()

    assert recorder.events == []


async def test_event_filter_and_table_routing(change_feed, session_factory) -> None:
    members = Recorder()
    administrators = Recorder()
    change_feed.subscribe("users", [ChangeEventType.UPDATE], members)
    change_feed.subscribe("pastors", None, administrators)

    with session_factory() as session:
        member = MemberRepository(session).create(**_member())
        session.add(AdministratorModel(name="Pastor Lee", email="lee@example.com"))
        member.branch = BRANCH_NEZCC
        session.commit()
    await change_feed.drain()

    assert [change.event_type for change in members.events] == [ChangeEventType.UPDATE]
    assert members.events[0].old["branch"] == BRANCH_EZCC
    assert members.events[0].new["branch"] == BRANCH_NEZCC
    assert [change.new["name"] for change in administrators.events] == ["Pastor Lee"]


async def test_commits_from_worker_threads_are_delivered_on_the_loop(
    change_feed, session_factory
) -> None:
    recorder = Recorder()
    loop = asyncio.get_running_loop()
    threads: list[bool] = []

    async def callback(change: ChangeEvent) -> None:
        threads.append(asyncio.get_running_loop() is loop)
        await recorder(change)

    change_feed.subscribe("users", None, callback)

    def write() -> None:
        with session_factory() as session:
            MemberRepository(session).create(**_member())

    await to_thread.run_sync(write)
    await asyncio.sleep(0)
    await change_feed.drain()

    assert [change.event_type for change in recorder.events] == [ChangeEventType.INSERT]
    assert threads == [True]


async def test_drain_timeout_cancels_hung_deliveries(change_feed, session_factory) -> None:
    recorder = Recorder()
    started = asyncio.Event()

    async def hang(change: ChangeEvent) -> None:
        started.set()
        await asyncio.Event().wait()

    change_feed.subscribe("users", None, hang, on_status=recorder.on_status)
    with session_factory() as session:
        MemberRepository(session).create(**_member())
    await started.wait()

    await change_feed.drain(timeout=0.01)

    assert recorder.statuses == [FEED_SUBSCRIBED, FEED_TIMED_OUT]
    assert not change_feed._tasks


async def test_unsubscribe_reports_closed_and_stops_listening(change_feed, session_factory) -> None:
    recorder = Recorder()
    handle = change_feed.subscribe("users", None, recorder, on_status=recorder.on_status)

    change_feed.unsubscribe(handle)
    change_feed.unsubscribe(handle)

    assert recorder.statuses == [FEED_SUBSCRIBED, FEED_CLOSED]
    assert not event.contains(session_factory, "after_commit", change_feed._publish)
    with pytest.raises(ValueError):
        change_feed.subscribe("sermons", None, recorder)


def test_repository_lists_active_members_for_statistics(session_factory) -> None:
    with session_factory() as session:
        repository = MemberRepository(session)
        repository.create(id="b", **_member(email="b@example.com", approval_status="approved"))
        repository.create(id="a", **_member(email="a@example.com", branch=BRANCH_NEZCC))
        repository.create(id="c", **_member(email="c@example.com", is_active=False))

        rows = repository.list_active_stats_rows()

        assert [(row.approval_status, row.branch) for row in rows] == [
            ("pending", BRANCH_NEZCC),
            ("approved", BRANCH_EZCC),
        ]
        assert all(row.is_active and row.created_at is not None for row in rows)
        with pytest.raises(ValueError):
            repository.update("a", favourite_hymn="Amazing Grace")
        with pytest.raises(ValueError):
            repository.delete("missing")
