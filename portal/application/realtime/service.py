"""Composition root of the realtime fan-out layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from portal.config import Settings, get_settings
from portal.domain.entities import DashboardStats, Notification, TargetKind
from portal.infrastructure.realtime import (
    ChangeFeed,
    ChannelRegistry,
    ChannelTransport,
    DeliveryReport,
    NotificationCallback,
    NotificationDispatcher,
    SubscriberTable,
    Subscription,
)
from portal.utils import now_in_app_timezone

from .observer import ChangeObserver
from .stats import StatsAggregator, StatsSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionStatus:
    """Diagnostic view of the open channels and local subscribers."""

    channels: list[str]
    subscribers: dict[str, int] = field(default_factory=dict)
    last_heartbeat_at: datetime | None = None

    def subscriptions_for(self, subscriber_id: object) -> int:
        return self.subscribers.get(str(subscriber_id), 0)


class RealtimeService:
    """Wire the registry, subscriber table, dispatcher, observer and stats.

    Built once per application and handed to the request handlers that need
    it. ``start`` and ``stop`` bracket its lifetime.
    """

    def __init__(
        self,
        *,
        transport: ChannelTransport,
        feed: ChangeFeed,
        stats_source: StatsSource,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        settings = settings or get_settings()
        self.registry = ChannelRegistry(transport, admin_channel_name=settings.admin_channel_name)
        self.subscribers = SubscriberTable(self.registry)
        self.dispatcher = NotificationDispatcher(
            self.registry,
            self.subscribers,
            heartbeat_interval=settings.heartbeat_interval_seconds,
            clock=clock,
        )
        self.stats = StatsAggregator(
            stats_source,
            self.dispatcher,
            recent_window=timedelta(days=settings.recent_registration_days),
            clock=clock,
        )
        self.observer = ChangeObserver(
            feed,
            self.dispatcher,
            self.stats,
            member_table=settings.member_table,
            administrator_table=settings.administrator_table,
            clock=clock,
        )
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        logger.info("Initializing realtime service")
        await self.observer.start()
        self.dispatcher.start_heartbeat()
        self._running = True

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Cleaning up realtime service")
        await self.observer.stop()
        await self.dispatcher.stop()
        await self.registry.close_all()
        self.subscribers.clear()
        self._running = False

    async def subscribe(self, subscriber_id: object, callback: NotificationCallback) -> Subscription:
        return await self.subscribers.subscribe(subscriber_id, callback)

    async def unsubscribe(self, subscriber_id: object, callback: NotificationCallback) -> None:
        await self.subscribers.unsubscribe(subscriber_id, callback)

    async def notify_user(self, subscriber_id: object, notification: Notification) -> DeliveryReport:
        return await self.dispatcher.notify_user(subscriber_id, notification)

    async def broadcast_to_admins(self, notification: Notification) -> DeliveryReport:
        return await self.dispatcher.broadcast_to_admins(notification)

    async def send_notification(
        self,
        target_kind: TargetKind | str,
        target_id: object | None,
        notification: Notification,
    ) -> DeliveryReport:
        return await self.dispatcher.send_notification(target_kind, target_id, notification)

    async def refresh_stats(self) -> DashboardStats | None:
        return await self.stats.refresh()

    def connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            channels=self.registry.names(),
            subscribers=self.subscribers.counts(),
            last_heartbeat_at=self.dispatcher.last_heartbeat_at,
        )


__all__ = ["ConnectionStatus", "RealtimeService"]
