"""Dashboard statistics recomputed from the member table."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from anyio import to_thread
from sqlalchemy.orm import sessionmaker

from portal.domain.entities import (
    KNOWN_BRANCHES,
    ApprovalStatus,
    DashboardStats,
    MemberStatsRow,
    Notification,
    NotificationType,
)
from portal.infrastructure.realtime import NotificationDispatcher
from portal.infrastructure.repositories import MemberRepository
from portal.utils import ensure_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)

StatsSource = Callable[[], Awaitable[Sequence[MemberStatsRow]]]


def compute_dashboard_stats(
    rows: Iterable[MemberStatsRow],
    *,
    now: datetime,
    recent_window: timedelta,
) -> DashboardStats:
    """Build a :class:`DashboardStats` from the active member ``rows``."""

    active = [row for row in rows if row.is_active]
    statuses = Counter(row.approval_status for row in active)
    branches = Counter({branch: 0 for branch in KNOWN_BRANCHES})
    branches.update(row.branch for row in active if row.branch)
    since = now - recent_window
    recent = sum(
        1
        for row in active
        if row.created_at is not None and ensure_app_timezone(row.created_at) >= since
    )
    return DashboardStats(
        total_users=len(active),
        pending_users=statuses[ApprovalStatus.PENDING.value],
        approved_users=statuses[ApprovalStatus.APPROVED.value],
        rejected_users=statuses[ApprovalStatus.REJECTED.value],
        branch_stats=tuple(sorted(branches.items())),
        recent_registrations=recent,
    )


def repository_stats_source(session_factory: sessionmaker) -> StatsSource:
    """Return a :data:`StatsSource` reading members in a worker thread."""

    def _load() -> Sequence[MemberStatsRow]:
        session = session_factory()
        try:
            return MemberRepository(session).list_active_stats_rows()
        finally:
            session.close()

    async def _source() -> Sequence[MemberStatsRow]:
        return await to_thread.run_sync(_load)

    return _source


class StatsAggregator:
    """Recompute dashboard rollups and push them to administrators."""

    def __init__(
        self,
        source: StatsSource,
        dispatcher: NotificationDispatcher,
        *,
        recent_window: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._source = source
        self._dispatcher = dispatcher
        self._recent_window = recent_window
        self._clock = clock

    async def recompute(self) -> DashboardStats:
        """Re-read every active member and rebuild the statistics."""

        rows = await self._source()
        return compute_dashboard_stats(rows, now=self._clock(), recent_window=self._recent_window)

    async def refresh(self) -> DashboardStats | None:
        """Recompute and broadcast the statistics; ``None`` if the read failed."""

        try:
            stats = await self.recompute()
        except Exception:
            logger.exception("Error updating dashboard stats")
            return None
        notification = Notification(
            type=NotificationType.DASHBOARD_STATS_UPDATE,
            data=stats.to_payload(),
            timestamp=self._clock(),
        )
        await self._dispatcher.broadcast_to_admins(notification)
        return stats


__all__ = [
    "StatsAggregator",
    "StatsSource",
    "compute_dashboard_stats",
    "repository_stats_source",
]
