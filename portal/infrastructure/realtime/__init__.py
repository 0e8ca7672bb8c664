"""Realtime fan-out building blocks for the infrastructure layer."""

from .change_feed import (
    FEED_CHANNEL_ERROR,
    FEED_CLOSED,
    FEED_SUBSCRIBED,
    FEED_TIMED_OUT,
    ChangeFeed,
    SqlAlchemyChangeFeed,
)
from .dispatcher import (
    ADMIN_EVENT,
    HEARTBEAT_EVENT,
    USER_EVENT,
    DeliveryReport,
    NotificationDispatcher,
    SendResult,
)
from .errors import ChannelClosedError, TransportError
from .registry import ChannelRegistry
from .serialization import (
    decode_notification,
    encode_notification,
    serialize_notification,
    to_jsonable,
)
from .subscribers import NotificationCallback, SubscriberTable, Subscription
from .transport import (
    ChannelHandle,
    ChannelTransport,
    WebSocketChannel,
    WebSocketChannelTransport,
)

__all__ = [
    "ADMIN_EVENT",
    "ChangeFeed",
    "ChannelClosedError",
    "ChannelHandle",
    "ChannelRegistry",
    "ChannelTransport",
    "DeliveryReport",
    "FEED_CHANNEL_ERROR",
    "FEED_CLOSED",
    "FEED_SUBSCRIBED",
    "FEED_TIMED_OUT",
    "HEARTBEAT_EVENT",
    "NotificationCallback",
    "NotificationDispatcher",
    "SendResult",
    "SqlAlchemyChangeFeed",
    "SubscriberTable",
    "Subscription",
    "TransportError",
    "USER_EVENT",
    "WebSocketChannel",
    "WebSocketChannelTransport",
    "decode_notification",
    "encode_notification",
    "serialize_notification",
    "to_jsonable",
]
