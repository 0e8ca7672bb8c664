"""Tests for the channel registry."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeTransport
from portal.domain.entities import ChannelState
from portal.infrastructure.realtime import ChannelRegistry

pytestmark = pytest.mark.anyio


async def test_concurrent_requests_share_a_single_open() -> None:
    transport = FakeTransport()
    transport.open_gate = asyncio.Event()
    registry = ChannelRegistry(transport)

    pending = [
        asyncio.ensure_future(registry.get_or_create_user_channel("42")) for _ in range(5)
    ]
    await asyncio.sleep(0)
    assert registry.get("user-42").state is ChannelState.CONNECTING

    transport.open_gate.set()
    channels = await asyncio.gather(*pending)

    assert transport.opened == ["user-42"]
    assert all(channel is channels[0] for channel in channels)
    assert channels[0].state is ChannelState.JOINED
    assert registry.names() == ["user-42"]


async def test_joined_channel_is_reused() -> None:
    transport = FakeTransport()
    registry = ChannelRegistry(transport)

    first = await registry.get_or_create_broadcast_channel()
    second = await registry.get_or_create_broadcast_channel()

    assert first is second
    assert first.name == "admin-broadcast"
    assert transport.opened == ["admin-broadcast"]


async def test_failed_open_is_forgotten_and_retried() -> None:
    transport = FakeTransport()
    transport.open_failures["user-7"] = 1
    registry = ChannelRegistry(transport)

    assert await registry.get_or_create_user_channel(7) is None
    assert registry.get("user-7") is None

    channel = await registry.get_or_create_user_channel(7)
    assert channel is not None and channel.is_joined
    assert transport.opened == ["user-7", "user-7"]


async def test_close_releases_handle_and_ignores_unknown_names() -> None:
    transport = FakeTransport()
    registry = ChannelRegistry(transport)
    channel = await registry.get_or_create_user_channel("1")

    await registry.close("user-1")
    await registry.close("user-1")
    await registry.close("never-opened")

    assert channel.state is ChannelState.CLOSED
    assert channel.handle.closed
    assert transport.closed == ["user-1"]
    assert registry.names() == []


async def test_close_while_connecting_discards_late_handle() -> None:
    transport = FakeTransport()
    transport.open_gate = asyncio.Event()
    registry = ChannelRegistry(transport)

    opening = asyncio.ensure_future(registry.get_or_create_user_channel("9"))
    await asyncio.sleep(0)
    await registry.close("user-9")
    transport.open_gate.set()

    assert await opening is None
    assert registry.get("user-9") is None
    assert transport.closed == ["user-9"]


async def test_close_all_empties_registry() -> None:
    transport = FakeTransport()
    registry = ChannelRegistry(transport, admin_channel_name="pastors-room")
    await registry.get_or_create_user_channel("1")
    await registry.get_or_create_broadcast_channel()

    await registry.close_all()

    assert registry.snapshot() == []
    assert sorted(transport.closed) == ["pastors-room", "user-1"]
