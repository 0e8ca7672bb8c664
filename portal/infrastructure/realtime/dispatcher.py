"""Fan notifications out to local subscribers and transport channels."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping

from portal.domain.entities import (
    Channel,
    Notification,
    TargetKind,
    user_channel_name,
)
from portal.utils import now_in_app_timezone

from .registry import ChannelRegistry
from .serialization import serialize_notification
from .subscribers import SubscriberTable

logger = logging.getLogger(__name__)

USER_EVENT = "notification"
ADMIN_EVENT = "admin-notification"
HEARTBEAT_EVENT = "heartbeat"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one transport push."""

    channel: str
    event: str
    ok: bool
    error: str | None = None


@dataclass
class DeliveryReport:
    """What happened to a notification handed to the dispatcher.

    ``transport`` is the background push task, if one was started. Awaiting it
    never raises; failures are reported through :class:`SendResult`.
    """

    notification: Notification
    local_deliveries: int = 0
    local_failures: int = 0
    transport: asyncio.Task[SendResult] | None = field(default=None, repr=False)
    error: str | None = None

    async def transport_result(self) -> SendResult | None:
        if self.transport is None:
            return None
        return await self.transport


class NotificationDispatcher:
    """Deliver notifications to users and to the admin broadcast channel."""

    def __init__(
        self,
        registry: ChannelRegistry,
        subscribers: SubscriberTable,
        *,
        heartbeat_interval: float = 30.0,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._registry = registry
        self._subscribers = subscribers
        self._heartbeat_interval = heartbeat_interval
        self._clock = clock
        self._tasks: set[asyncio.Task[Any]] = set()
        self._heartbeat_task: asyncio.Task[None] | None = None
        self.last_heartbeat_at: datetime | None = None

    async def notify_user(self, subscriber_id: object, notification: Notification) -> DeliveryReport:
        """Deliver to the local callbacks of ``subscriber_id`` and push on its channel."""

        key = str(subscriber_id)
        report = DeliveryReport(notification)

        channel = self._registry.get(user_channel_name(key))
        if channel is not None and channel.is_joined:
            payload = serialize_notification(notification)
            report.transport = self._spawn(self._push(channel, USER_EVENT, payload))

        for callback in self._subscribers.snapshot(key):
            try:
                result = callback(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                report.local_failures += 1
                logger.exception("Error notifying subscriber %s", key)
            else:
                report.local_deliveries += 1
        return report

    async def broadcast_to_admins(self, notification: Notification) -> DeliveryReport:
        """Push ``notification`` on the admin broadcast channel."""

        payload = serialize_notification(notification)
        report = DeliveryReport(notification)
        report.transport = self._spawn(self._push_to_admins(payload))
        return report

    async def send_notification(
        self,
        target_kind: TargetKind | str,
        target_id: object | None,
        notification: Notification,
    ) -> DeliveryReport:
        """Route ``notification`` to a single user or to every administrator."""

        try:
            kind = TargetKind(target_kind)
        except ValueError:
            logger.error("Unknown notification target kind %r", target_kind)
            return DeliveryReport(notification, error=f"unknown target kind {target_kind!r}")

        if kind is TargetKind.ADMIN:
            return await self.broadcast_to_admins(notification)
        if target_id is None or target_id == "":
            logger.error("User notification %s has no target id", notification.type.value)
            return DeliveryReport(notification, error="target id is required for user notifications")
        return await self.notify_user(target_id, notification)

    def start_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat_loop())

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop the heartbeat and wait up to ``timeout`` seconds for pushes."""

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

        pending = list(self._tasks)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Cancelled %d undelivered transport pushes", len(still_running))

    async def drain(self) -> None:
        """Wait until every in-flight push has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def heartbeat_once(self) -> list[asyncio.Task[SendResult]]:
        """Send one heartbeat on every joined channel.

        Channels still connecting are skipped, not queued.
        """

        now = self._clock()
        payload = {"timestamp": now.isoformat()}
        tasks = [
            self._spawn(self._push(channel, HEARTBEAT_EVENT, payload))
            for channel in self._registry.snapshot()
            if channel.is_joined
        ]
        self.last_heartbeat_at = now
        return tasks

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            self.heartbeat_once()

    async def _push_to_admins(self, payload: Mapping[str, Any]) -> SendResult:
        channel = await self._registry.get_or_create_broadcast_channel()
        if channel is None:
            return SendResult(
                self._registry.admin_channel_name, ADMIN_EVENT, False, "channel unavailable"
            )
        result = await self._push(channel, ADMIN_EVENT, payload)
        if result.ok:
            logger.info("Broadcasted to admins: %s", payload.get("type"))
        return result

    @staticmethod
    async def _push(channel: Channel, event: str, payload: Mapping[str, Any]) -> SendResult:
        try:
            await channel.handle.send(event, payload)
        except Exception as exc:
            logger.error("Failed to send %s on channel %s: %s", event, channel.name, exc)
            return SendResult(channel.name, event, False, str(exc) or exc.__class__.__name__)
        return SendResult(channel.name, event, True)

    def _spawn(self, coro: Awaitable[SendResult]) -> asyncio.Task[SendResult]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


__all__ = [
    "ADMIN_EVENT",
    "DeliveryReport",
    "HEARTBEAT_EVENT",
    "NotificationDispatcher",
    "SendResult",
    "USER_EVENT",
]
