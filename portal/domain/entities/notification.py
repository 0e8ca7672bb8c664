"""Domain entity representing a realtime notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping

from portal.utils import now_in_app_timezone


class NotificationType(str, Enum):
    """Closed set of notification tags understood by clients."""

    NEW_MEMBER_REGISTRATION = "NEW_MEMBER_REGISTRATION"
    APPROVAL_STATUS_CHANGE = "APPROVAL_STATUS_CHANGE"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    MEMBER_DELETED = "MEMBER_DELETED"
    ADMIN_CHANGE = "ADMIN_CHANGE"
    DASHBOARD_STATS_UPDATE = "DASHBOARD_STATS_UPDATE"
    INFO = "INFO"
    WARNING = "WARNING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    ANNOUNCEMENT = "ANNOUNCEMENT"


ADMIN_ORIGINATED_TYPES = frozenset(
    {
        NotificationType.INFO,
        NotificationType.WARNING,
        NotificationType.SUCCESS,
        NotificationType.ERROR,
        NotificationType.ANNOUNCEMENT,
    }
)


class TargetKind(str, Enum):
    """Audience of a manually submitted notification."""

    USER = "user"
    ADMIN = "admin"


def freeze(value: Any) -> Any:
    """Return a read-only deep copy of a JSON-like ``value``."""

    if isinstance(value, Mapping):
        return MappingProxyType({str(key): freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`; returns plain dicts and lists."""

    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


def _name(data: Mapping[str, Any]) -> str:
    return str(data.get("name") or "unknown")


def _free_form(kind: "NotificationType") -> Callable[[Mapping[str, Any]], str]:
    def build(data: Mapping[str, Any]) -> str:
        return str(data.get("message") or kind.value.capitalize())

    return build


_MESSAGE_BUILDERS: dict[NotificationType, Callable[[Mapping[str, Any]], str]] = {
    NotificationType.NEW_MEMBER_REGISTRATION: lambda d: f"New member registration: {_name(d)}",
    NotificationType.APPROVAL_STATUS_CHANGE: lambda d: f"Member {d.get('newStatus')}: {_name(d)}",
    NotificationType.PROFILE_UPDATE: lambda d: f"Profile updated: {_name(d)}",
    NotificationType.MEMBER_DELETED: lambda d: f"Member deleted: {_name(d)}",
    NotificationType.ADMIN_CHANGE: (
        lambda d: f"Administrator record {str(d.get('event', 'change')).lower()}: {_name(d)}"
    ),
    NotificationType.DASHBOARD_STATS_UPDATE: lambda d: "Dashboard statistics updated",
    **{kind: _free_form(kind) for kind in ADMIN_ORIGINATED_TYPES},
}

_missing = set(NotificationType) - set(_MESSAGE_BUILDERS)
if _missing:  # pragma: no cover - guards future enum additions
    raise RuntimeError(f"No message builder for notification types: {sorted(_missing)}")


def describe(kind: NotificationType, data: Mapping[str, Any]) -> str:
    """Return the human readable summary for a notification of ``kind``."""

    return _MESSAGE_BUILDERS[kind](data)


@dataclass(frozen=True)
class Notification:
    """Immutable unit of information fanned out to subscribers.

    ``data`` is deep-frozen on construction and ``message`` is derived from
    ``type`` and ``data`` unless given explicitly.
    """

    type: NotificationType
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=now_in_app_timezone)
    message: str | None = None

    def __post_init__(self) -> None:
        kind = NotificationType(self.type)
        object.__setattr__(self, "type", kind)
        object.__setattr__(self, "data", freeze(self.data or {}))
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))
        if self.message is None:
            object.__setattr__(self, "message", describe(kind, self.data))


__all__ = [
    "ADMIN_ORIGINATED_TYPES",
    "Notification",
    "NotificationType",
    "TargetKind",
    "describe",
    "freeze",
    "thaw",
]
