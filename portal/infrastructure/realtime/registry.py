"""Registry of named transport channels."""

from __future__ import annotations

import asyncio
import logging

from portal.domain.entities import Channel, ChannelState, user_channel_name

from .transport import ChannelHandle, ChannelTransport

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Own the channels of the process and their transport handles.

    Every mutation of the name -> channel map happens synchronously, so no
    lock is needed on the single event loop. Concurrent requests for the same
    name share one in-flight open.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        *,
        admin_channel_name: str = "admin-broadcast",
    ) -> None:
        self._transport = transport
        self.admin_channel_name = admin_channel_name
        self._channels: dict[str, Channel] = {}
        self._opening: dict[str, asyncio.Future[Channel | None]] = {}

    async def get_or_create_user_channel(self, subscriber_id: object) -> Channel | None:
        """Return the joined personal channel for ``subscriber_id``.

        ``None`` means the transport failed to open it; the next call retries.
        """

        return await self._get_or_create(user_channel_name(subscriber_id))

    async def get_or_create_broadcast_channel(self) -> Channel | None:
        """Return the process-wide admin broadcast channel."""

        return await self._get_or_create(self.admin_channel_name)

    def get(self, name: str) -> Channel | None:
        return self._channels.get(name)

    def snapshot(self) -> list[Channel]:
        return list(self._channels.values())

    def names(self) -> list[str]:
        return list(self._channels)

    async def close(self, name: str) -> None:
        """Close ``name`` and forget it. Unknown or closed names are ignored."""

        channel = self._channels.pop(name, None)
        if channel is None or channel.state is ChannelState.CLOSED:
            return
        channel.state = ChannelState.CLOSED
        if channel.handle is not None:
            await self._close_handle(name, channel.handle)
        logger.info("Closed channel %s", name)

    async def close_all(self) -> None:
        for name in list(self._channels):
            await self.close(name)

    async def _get_or_create(self, name: str) -> Channel | None:
        channel = self._channels.get(name)
        if channel is not None:
            if channel.state is ChannelState.JOINED:
                return channel
            opening = self._opening.get(name)
            if opening is not None:
                return await asyncio.shield(opening)

        channel = Channel(name=name)
        self._channels[name] = channel
        opening = asyncio.get_running_loop().create_future()
        self._opening[name] = opening

        result: Channel | None = None
        try:
            handle = await self._transport.open(name)
        except Exception as exc:
            logger.error("Failed to open channel %s: %s", name, exc)
        else:
            result = await self._register(channel, handle)
        finally:
            if result is None:
                channel.state = ChannelState.CLOSED
                if self._channels.get(name) is channel:
                    del self._channels[name]
            if self._opening.get(name) is opening:
                del self._opening[name]
            if not opening.done():
                opening.set_result(result)
        return result

    async def _register(self, channel: Channel, handle: ChannelHandle) -> Channel | None:
        if self._channels.get(channel.name) is not channel:
            # Closed while the transport was still connecting.
            await self._close_handle(channel.name, handle)
            return None
        channel.handle = handle
        channel.state = ChannelState.JOINED
        logger.info("Created channel %s", channel.name)
        return channel

    @staticmethod
    async def _close_handle(name: str, handle: ChannelHandle) -> None:
        try:
            await handle.close()
        except Exception as exc:
            logger.warning("Error while closing channel %s: %s", name, exc)


__all__ = ["ChannelRegistry"]
