"""Turn database change events into routed domain notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Callable, Mapping

from portal.domain.entities import (
    PROFILE_FIELDS,
    ChangeEvent,
    ChangeEventType,
    Notification,
    NotificationType,
    TargetKind,
)
from portal.infrastructure.realtime import (
    FEED_CLOSED,
    FEED_SUBSCRIBED,
    ChangeFeed,
    NotificationDispatcher,
)
from portal.utils import now_in_app_timezone

from .stats import StatsAggregator

logger = logging.getLogger(__name__)

Target = tuple[TargetKind, "str | None"]
ADMINS: Target = (TargetKind.ADMIN, None)


class ClassificationError(ValueError):
    """A change event lacks the data needed to build a notification."""


@dataclass(frozen=True)
class RoutedNotification:
    """A notification together with the audiences it must reach."""

    notification: Notification
    targets: tuple[Target, ...]


class ChangeObserver:
    """Watch the member and administrator tables and emit notifications."""

    def __init__(
        self,
        feed: ChangeFeed,
        dispatcher: NotificationDispatcher,
        stats: StatsAggregator,
        *,
        member_table: str = "users",
        administrator_table: str = "pastors",
        clock: Callable[[], datetime] = now_in_app_timezone,
        drain_timeout: float = 5.0,
    ) -> None:
        self._feed = feed
        self._dispatcher = dispatcher
        self._stats = stats
        self.member_table = member_table
        self.administrator_table = administrator_table
        self._clock = clock
        self._drain_timeout = drain_timeout
        self._handles: list[object] = []

    async def start(self) -> None:
        """Subscribe once to the change feed of both watched tables."""

        if self._handles:
            return
        for table in (self.member_table, self.administrator_table):
            try:
                handle = self._feed.subscribe(
                    table, None, self.handle, on_status=partial(self._on_status, table)
                )
            except Exception:
                logger.exception("Could not subscribe to changes on %s", table)
                continue
            self._handles.append(handle)

    async def stop(self) -> None:
        handles, self._handles = self._handles, []
        for handle in handles:
            try:
                self._feed.unsubscribe(handle)
            except Exception:
                logger.exception("Error while leaving the change feed")
        # Deliveries already scheduled finish before the channels go away.
        await self._feed.drain(timeout=self._drain_timeout)

    async def handle(self, event: ChangeEvent) -> list[RoutedNotification]:
        """Classify ``event``, dispatch the results and refresh statistics."""

        logger.info("Change detected on %s: %s", event.table, event.event_type.value)
        try:
            routed = self.classify(event)
        except ClassificationError as exc:
            logger.error("Dropping malformed change event on %s: %s", event.table, exc)
            return []

        for item in routed:
            for kind, target_id in item.targets:
                await self._dispatcher.send_notification(kind, target_id, item.notification)

        if event.table == self.member_table:
            await self._stats.refresh()
        return routed

    async def handle_payload(self, table: str, payload: Mapping[str, Any]) -> list[RoutedNotification]:
        """Handle a raw ``{eventType, new, old}`` payload from a feed."""

        try:
            event = ChangeEvent.from_payload(table, payload)
        except (TypeError, ValueError) as exc:
            logger.error("Dropping unreadable change payload on %s: %s", table, exc)
            return []
        return await self.handle(event)

    def classify(self, event: ChangeEvent) -> list[RoutedNotification]:
        """Return the notifications ``event`` produces, in dispatch order."""

        if event.table == self.member_table:
            return self._classify_member(event)
        if event.table == self.administrator_table:
            return [self._admin_change(event)]
        raise ClassificationError(f"unwatched table {event.table!r}")

    def _classify_member(self, event: ChangeEvent) -> list[RoutedNotification]:
        if event.event_type is ChangeEventType.INSERT:
            row = _require_row(event.new, "new")
            return [self._routed(NotificationType.NEW_MEMBER_REGISTRATION, _registration(row), ADMINS)]

        if event.event_type is ChangeEventType.UPDATE:
            new = _require_row(event.new, "new")
            old = event.old
            if not old:
                raise ClassificationError("update without previous row")
            routed: list[RoutedNotification] = []
            if old.get("approval_status") != new.get("approval_status"):
                routed.append(
                    self._routed(
                        NotificationType.APPROVAL_STATUS_CHANGE,
                        _status_change(new, old),
                        (TargetKind.USER, str(new["id"])),
                        ADMINS,
                    )
                )
            changes = _profile_changes(old, new)
            if changes:
                routed.append(
                    self._routed(
                        NotificationType.PROFILE_UPDATE,
                        {"memberId": new["id"], "name": new.get("name"), "changes": changes},
                        ADMINS,
                    )
                )
            return routed

        if event.event_type is ChangeEventType.DELETE:
            row = _require_row(event.old, "old")
            data = {"memberId": row["id"], "name": row.get("name"), "email": row.get("email")}
            return [self._routed(NotificationType.MEMBER_DELETED, data, ADMINS)]

        raise ClassificationError(f"unsupported event type {event.event_type!r}")

    def _admin_change(self, event: ChangeEvent) -> RoutedNotification:
        source = "old" if event.event_type is ChangeEventType.DELETE else "new"
        row = _require_row(event.old if source == "old" else event.new, source)
        data = {
            "event": event.event_type.value,
            "administratorId": row["id"],
            "name": row.get("name"),
            "record": dict(row),
        }
        return self._routed(NotificationType.ADMIN_CHANGE, data, ADMINS)

    def _routed(
        self, kind: NotificationType, data: Mapping[str, Any], *targets: Target
    ) -> RoutedNotification:
        return RoutedNotification(
            notification=Notification(type=kind, data=data, timestamp=self._clock()),
            targets=tuple(targets),
        )

    @staticmethod
    def _on_status(table: str, status: str, error: BaseException | None = None) -> None:
        if status == FEED_SUBSCRIBED:
            logger.info("Realtime database listener active on %s", table)
        elif status == FEED_CLOSED:
            logger.info("Realtime database listener closed on %s", table)
        else:
            logger.error("Realtime database listener on %s reported %s: %s", table, status, error)


def _require_row(row: Mapping[str, Any], label: str) -> Mapping[str, Any]:
    if not row:
        raise ClassificationError(f"missing {label} row")
    if row.get("id") in (None, ""):
        raise ClassificationError(f"{label} row has no id")
    return row


def _registration(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "memberId": row["id"],
        "name": row.get("name"),
        "email": row.get("email"),
        "branch": row.get("branch"),
        "createdAt": row.get("created_at"),
    }


def _status_change(new: Mapping[str, Any], old: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "memberId": new["id"],
        "name": new.get("name"),
        "email": new.get("email"),
        "oldStatus": old.get("approval_status"),
        "newStatus": new.get("approval_status"),
        "approvedBy": new.get("approved_by"),
        "approvedAt": new.get("approved_at"),
        "rejectionReason": new.get("rejection_reason"),
    }


def _profile_changes(old: Mapping[str, Any], new: Mapping[str, Any]) -> list[dict[str, Any]]:
    return [
        {"field": name, "from": old.get(name), "to": new.get(name)}
        for name in PROFILE_FIELDS
        if old.get(name) != new.get(name)
    ]


__all__ = ["ChangeObserver", "ClassificationError", "RoutedNotification"]
