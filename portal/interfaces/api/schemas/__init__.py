from .realtime import (
    MANUAL_NOTIFICATION_TYPES,
    SUBSCRIBABLE_CHANNELS,
    BroadcastRequest,
    ConnectionStatusRead,
    DeliveryRead,
    SendNotificationRequest,
    SubscriptionInfo,
)

__all__ = [
    "BroadcastRequest",
    "ConnectionStatusRead",
    "DeliveryRead",
    "MANUAL_NOTIFICATION_TYPES",
    "SUBSCRIBABLE_CHANNELS",
    "SendNotificationRequest",
    "SubscriptionInfo",
]
