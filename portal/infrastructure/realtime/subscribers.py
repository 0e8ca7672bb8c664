"""In-process subscriber callbacks grouped by subscriber identity."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Union

from portal.domain.entities import Notification, user_channel_name

from .registry import ChannelRegistry

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Union[Awaitable[None], None]]


class Subscription:
    """Handle undoing a single :meth:`SubscriberTable.subscribe` call."""

    def __init__(
        self, table: "SubscriberTable", subscriber_id: str, callback: NotificationCallback
    ) -> None:
        self._table = table
        self.subscriber_id = subscriber_id
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def cancel(self) -> None:
        """Remove the registration. Only the first call has an effect."""

        if not self._active:
            return
        self._active = False
        await self._table.unsubscribe(self.subscriber_id, self.callback)

    async def __call__(self) -> None:
        await self.cancel()


class SubscriberTable:
    """Map subscriber ids to the callbacks interested in their notifications.

    Callbacks are kept in insertion order. The personal channel of a
    subscriber is opened by its first subscription and closed when its last
    callback leaves.
    """

    def __init__(self, registry: ChannelRegistry) -> None:
        self._registry = registry
        self._subscribers: dict[str, dict[NotificationCallback, None]] = {}

    async def subscribe(self, subscriber_id: object, callback: NotificationCallback) -> Subscription:
        key = str(subscriber_id)
        self._subscribers.setdefault(key, {})[callback] = None
        logger.info("Subscriber registered for notifications: %s", key)
        await self._registry.get_or_create_user_channel(key)
        return Subscription(self, key, callback)

    async def unsubscribe(self, subscriber_id: object, callback: NotificationCallback) -> None:
        key = str(subscriber_id)
        callbacks = self._subscribers.get(key)
        if callbacks is None or callback not in callbacks:
            return
        del callbacks[callback]
        logger.info("Subscriber callback removed: %s", key)
        if callbacks:
            return
        del self._subscribers[key]
        await self._registry.close(user_channel_name(key))

    def snapshot(self, subscriber_id: object) -> tuple[NotificationCallback, ...]:
        """Return the callbacks of ``subscriber_id`` as an immutable copy."""

        return tuple(self._subscribers.get(str(subscriber_id), ()))

    def count(self, subscriber_id: object) -> int:
        return len(self._subscribers.get(str(subscriber_id), ()))

    def counts(self) -> dict[str, int]:
        return {key: len(callbacks) for key, callbacks in self._subscribers.items()}

    def clear(self) -> None:
        self._subscribers.clear()


__all__ = ["NotificationCallback", "Subscription", "SubscriberTable"]
