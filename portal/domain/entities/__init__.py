"""Domain entities exposed by the application."""

from .change_event import ChangeEvent, ChangeEventType
from .channel import Channel, ChannelState, USER_CHANNEL_PREFIX, user_channel_name
from .dashboard_stats import DashboardStats
from .member import (
    BRANCH_EZCC,
    BRANCH_NEZCC,
    KNOWN_BRANCHES,
    PROFILE_FIELDS,
    ApprovalStatus,
    MemberStatsRow,
)
from .notification import (
    ADMIN_ORIGINATED_TYPES,
    Notification,
    NotificationType,
    TargetKind,
    describe,
    freeze,
    thaw,
)
from .principal import ADMIN_ROLES, Principal

__all__ = [
    "ADMIN_ORIGINATED_TYPES",
    "ADMIN_ROLES",
    "ApprovalStatus",
    "BRANCH_EZCC",
    "BRANCH_NEZCC",
    "ChangeEvent",
    "ChangeEventType",
    "Channel",
    "ChannelState",
    "DashboardStats",
    "KNOWN_BRANCHES",
    "MemberStatsRow",
    "Notification",
    "NotificationType",
    "PROFILE_FIELDS",
    "Principal",
    "TargetKind",
    "USER_CHANNEL_PREFIX",
    "describe",
    "freeze",
    "thaw",
    "user_channel_name",
]
