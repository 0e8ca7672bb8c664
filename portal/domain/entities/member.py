"""Domain constants and value objects describing church members."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ApprovalStatus(str, Enum):
    """Approval workflow states of a member account."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


BRANCH_EZCC = "branch1(EZCC)"
BRANCH_NEZCC = "branch2(NEZCC)"
KNOWN_BRANCHES: tuple[str, ...] = (BRANCH_EZCC, BRANCH_NEZCC)

# Member fields whose edits are reported as profile updates, in report order.
PROFILE_FIELDS: tuple[str, ...] = ("name", "bio", "branch", "phone")


@dataclass(frozen=True)
class MemberStatsRow:
    """Projection of a member record used to compute dashboard statistics."""

    approval_status: str | None
    branch: str | None
    is_active: bool
    created_at: datetime | None


__all__ = [
    "ApprovalStatus",
    "BRANCH_EZCC",
    "BRANCH_NEZCC",
    "KNOWN_BRANCHES",
    "MemberStatsRow",
    "PROFILE_FIELDS",
]
