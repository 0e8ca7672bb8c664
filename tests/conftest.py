"""Shared fixtures and fakes for the realtime test-suite."""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping

import pytest

TEST_DB_PATH = Path(tempfile.gettempdir()) / "church_portal_realtime_test.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ.pop("ADMIN_CHANNEL_NAME", None)

from portal.application.realtime import RealtimeService  # noqa: E402
from portal.config import Settings  # noqa: E402
from portal.domain.entities import (  # noqa: E402
    BRANCH_EZCC,
    BRANCH_NEZCC,
    ChangeEvent,
    MemberStatsRow,
)
from portal.infrastructure.realtime import TransportError  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeHandle:
    """Channel handle recording every push on its transport."""

    def __init__(self, transport: "FakeTransport", name: str) -> None:
        self._transport = transport
        self.name = name
        self.closed = False

    async def send(self, event: str, payload: Mapping[str, Any]) -> None:
        gate = self._transport.send_gates.get(self.name)
        if gate is not None:
            await gate.wait()
        if self.name in self._transport.failing_sends:
            raise TransportError(f"push refused on {self.name}")
        self._transport.sent.append((self.name, event, dict(payload)))

    async def close(self) -> None:
        self.closed = True
        self._transport.closed.append(self.name)


class FakeTransport:
    """In-memory transport with switches for slow, failing and hung channels."""

    def __init__(self) -> None:
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.open_failures: dict[str, int] = defaultdict(int)
        self.open_gate: asyncio.Event | None = None
        self.send_gates: dict[str, asyncio.Event] = {}
        self.failing_sends: set[str] = set()

    async def open(self, name: str) -> FakeHandle:
        self.opened.append(name)
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_failures[name] > 0:
            self.open_failures[name] -= 1
            raise TransportError(f"could not open {name}")
        return FakeHandle(self, name)

    def events(self, channel: str | None = None, event: str | None = None) -> list[dict[str, Any]]:
        """Return the payloads pushed, optionally filtered by channel and event."""

        return [
            payload
            for name, kind, payload in self.sent
            if (channel is None or name == channel) and (event is None or kind == event)
        ]


class FakeFeed:
    """Change feed whose events are emitted by the test."""

    def __init__(self) -> None:
        self.callbacks: dict[str, Any] = {}
        self.statuses: list[tuple[str, str]] = []
        self.fail_tables: set[str] = set()

    def subscribe(self, table, events, callback, on_status=None):
        if table in self.fail_tables:
            raise ValueError(f"cannot watch {table}")
        self.callbacks[table] = callback
        if on_status is not None:
            on_status("SUBSCRIBED", None)
        self.statuses.append((table, "SUBSCRIBED"))
        return table

    def unsubscribe(self, handle) -> None:
        self.callbacks.pop(handle, None)
        self.statuses.append((handle, "CLOSED"))

    async def drain(self, timeout=None) -> None:
        self.statuses.append(("*", "DRAINED"))

    async def emit(self, event: ChangeEvent):
        return await self.callbacks[event.table](event)


class StaticStatsSource:
    """Stats source returning a mutable list of rows."""

    def __init__(self, rows: list[MemberStatsRow] | None = None) -> None:
        self.rows = list(rows or [])
        self.error: Exception | None = None
        self.calls = 0

    async def __call__(self) -> list[MemberStatsRow]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.rows)


def stats_row(
    status: str = "pending",
    branch: str | None = BRANCH_EZCC,
    *,
    is_active: bool = True,
    age: timedelta = timedelta(days=30),
) -> MemberStatsRow:
    return MemberStatsRow(
        approval_status=status,
        branch=branch,
        is_active=is_active,
        created_at=(FIXED_NOW - age).replace(tzinfo=None),
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(heartbeat_interval_seconds=3600, recent_registration_days=7)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def stats_source() -> StaticStatsSource:
    return StaticStatsSource(
        [
            stats_row("approved", BRANCH_EZCC),
            stats_row("pending", BRANCH_NEZCC, age=timedelta(days=1)),
        ]
    )


@pytest.fixture
def service(transport, feed, stats_source, settings, clock) -> RealtimeService:
    return RealtimeService(
        transport=transport,
        feed=feed,
        stats_source=stats_source,
        settings=settings,
        clock=clock,
    )
