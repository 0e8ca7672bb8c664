"""Domain entity holding the administrative dashboard rollups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class DashboardStats:
    """Snapshot of member counts. Always recomputed as a whole."""

    total_users: int
    pending_users: int
    approved_users: int
    rejected_users: int
    branch_stats: tuple[tuple[str, int], ...]
    recent_registrations: int

    @property
    def branches(self) -> Mapping[str, int]:
        return dict(self.branch_stats)

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase wire representation."""

        return {
            "totalUsers": self.total_users,
            "pendingUsers": self.pending_users,
            "approvedUsers": self.approved_users,
            "rejectedUsers": self.rejected_users,
            "branchStats": dict(self.branch_stats),
            "recentRegistrations": self.recent_registrations,
        }


__all__ = ["DashboardStats"]
