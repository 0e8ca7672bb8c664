"""Tests for the websocket group transport."""

from __future__ import annotations

import pytest

from portal.infrastructure.realtime import ChannelClosedError, WebSocketChannelTransport

pytestmark = pytest.mark.anyio


class FakeSocket:
    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.messages: list[dict] = []

    async def send_json(self, message: dict) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.messages.append(message)


async def test_channel_send_reaches_joined_sockets_and_drops_dead_ones() -> None:
    transport = WebSocketChannelTransport()
    alive, dead, elsewhere = FakeSocket(), FakeSocket(broken=True), FakeSocket()
    transport.join("user-1", alive)
    transport.join("user-1", dead)
    transport.join("user-2", elsewhere)

    channel = await transport.open("user-1")
    await channel.send("notification", {"type": "INFO"})

    assert alive.messages == [
        {"channel": "user-1", "event": "notification", "payload": {"type": "INFO"}}
    ]
    assert elsewhere.messages == []
    assert transport.member_count("user-1") == 1


async def test_closed_channel_refuses_to_send() -> None:
    transport = WebSocketChannelTransport()
    channel = await transport.open("admin-broadcast")
    await channel.close()

    with pytest.raises(ChannelClosedError):
        await channel.send("heartbeat", {})


async def test_leave_removes_socket_from_every_group() -> None:
    transport = WebSocketChannelTransport()
    socket = FakeSocket()
    transport.join("user-1", socket)
    transport.join("admin-broadcast", socket)

    transport.leave(socket)

    assert transport.member_count("user-1") == 0
    assert await transport.deliver("admin-broadcast", {"event": "heartbeat"}) == 0
    assert socket.messages == []
