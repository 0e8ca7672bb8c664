"""Transport channels backed by groups of accepted websockets."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, DefaultDict, Mapping, Protocol, Set

from .errors import ChannelClosedError

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ChannelHandle(Protocol):
    """An open transport channel."""

    name: str

    async def send(self, event: str, payload: Mapping[str, Any]) -> None: ...

    async def close(self) -> None: ...


class ChannelTransport(Protocol):
    """Factory of transport channels."""

    async def open(self, name: str) -> ChannelHandle: ...


class WebSocketChannel:
    """Handle returned by :meth:`WebSocketChannelTransport.open`."""

    def __init__(self, transport: "WebSocketChannelTransport", name: str) -> None:
        self._transport = transport
        self.name = name
        self.closed = False

    async def send(self, event: str, payload: Mapping[str, Any]) -> None:
        if self.closed:
            raise ChannelClosedError(self.name)
        message = {"channel": self.name, "event": event, "payload": payload}
        await self._transport.deliver(self.name, message)

    async def close(self) -> None:
        self.closed = True


class WebSocketChannelTransport:
    """Fan messages out to every websocket that joined a channel name.

    Sockets join channel names independently of whether a handle for that name
    is currently open; messages are only produced through open handles.
    """

    def __init__(self) -> None:
        self._members: DefaultDict[str, Set["WebSocket"]] = defaultdict(set)

    async def open(self, name: str) -> WebSocketChannel:
        logger.debug("Opening websocket channel %s", name)
        return WebSocketChannel(self, name)

    def join(self, name: str, websocket: "WebSocket") -> None:
        """Add ``websocket`` to the group for ``name``."""

        self._members[name].add(websocket)

    def leave(self, websocket: "WebSocket") -> None:
        """Remove ``websocket`` from every group."""

        for name in list(self._members):
            self._members[name].discard(websocket)
            if not self._members[name]:
                self._members.pop(name, None)

    def member_count(self, name: str) -> int:
        return len(self._members.get(name, ()))

    async def deliver(self, name: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every socket in ``name``; returns the delivered count."""

        delivered = 0
        for websocket in list(self._members.get(name, ())):
            try:
                await websocket.send_json(message)
            except Exception as exc:
                logger.warning("Dropping dead websocket from channel %s: %s", name, exc)
                self._discard(name, websocket)
            else:
                delivered += 1
        return delivered

    def _discard(self, name: str, websocket: "WebSocket") -> None:
        members = self._members.get(name)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            self._members.pop(name, None)


__all__ = [
    "ChannelHandle",
    "ChannelTransport",
    "WebSocketChannel",
    "WebSocketChannelTransport",
]
