"""Pydantic models describing realtime API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from portal.domain.entities import (
    ADMIN_ORIGINATED_TYPES,
    KNOWN_BRANCHES,
    NotificationType,
    TargetKind,
)

SUBSCRIBABLE_CHANNELS = ("user-notifications", "admin-notifications")
MANUAL_NOTIFICATION_TYPES = ADMIN_ORIGINATED_TYPES | {
    NotificationType.APPROVAL_STATUS_CHANGE,
    NotificationType.NEW_MEMBER_REGISTRATION,
}

Priority = Literal["low", "normal", "high", "urgent"]
TargetAudience = Literal[
    "all_admins", "all_users", "specific_branch", "pending_users", "approved_users"
]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SendNotificationRequest(CamelModel):
    """Admin request to deliver a notification to a member or to all admins."""

    recipient_type: TargetKind = Field(alias="recipientType")
    recipient_id: str | None = Field(default=None, alias="recipientId")
    message: str = Field(min_length=1, max_length=500)
    notification_type: NotificationType = Field(alias="notificationType")
    priority: Priority = "normal"
    data: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _validate_target(self) -> "SendNotificationRequest":
        if self.notification_type not in MANUAL_NOTIFICATION_TYPES:
            raise ValueError("Invalid notification type")
        if self.recipient_type is TargetKind.USER and not self.recipient_id:
            raise ValueError("Recipient ID is required for user notifications")
        return self


class BroadcastRequest(CamelModel):
    """Admin announcement addressed to an audience."""

    message: str = Field(min_length=1, max_length=1000)
    target_audience: TargetAudience = Field(alias="targetAudience")
    priority: Priority = "normal"
    branch: str | None = None

    @model_validator(mode="after")
    def _validate_branch(self) -> "BroadcastRequest":
        if self.target_audience == "specific_branch" and self.branch not in KNOWN_BRANCHES:
            raise ValueError(
                "Branch must be one of: " + ", ".join(KNOWN_BRANCHES)
            )
        return self


class SubscriptionInfo(CamelModel):
    user_id: str = Field(serialization_alias="userId")
    channel: str
    subscribed_at: datetime = Field(serialization_alias="subscribedAt")
    active: bool = True


class ConnectionStatusRead(CamelModel):
    user_id: str = Field(serialization_alias="userId")
    connected: bool
    channels: list[str]
    last_heartbeat: datetime | None = Field(default=None, serialization_alias="lastHeartbeat")
    active_subscriptions: int = Field(serialization_alias="activeSubscriptions")
    subscribers: dict[str, int] | None = None


class DeliveryRead(CamelModel):
    status: str = "success"
    message: str
    delivered: bool = True
    notification: dict[str, Any]


__all__ = [
    "BroadcastRequest",
    "ConnectionStatusRead",
    "DeliveryRead",
    "MANUAL_NOTIFICATION_TYPES",
    "SUBSCRIBABLE_CHANNELS",
    "SendNotificationRequest",
    "SubscriptionInfo",
]
