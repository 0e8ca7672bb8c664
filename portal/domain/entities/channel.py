"""Domain entity describing a transport-level broadcast channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

USER_CHANNEL_PREFIX = "user-"


class ChannelState(str, Enum):
    """Lifecycle states of a channel."""

    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSED = "closed"


def user_channel_name(subscriber_id: object) -> str:
    """Return the personal channel name for ``subscriber_id``."""

    return f"{USER_CHANNEL_PREFIX}{subscriber_id}"


@dataclass(eq=False)
class Channel:
    """A named broadcast surface owned by the channel registry."""

    name: str
    state: ChannelState = ChannelState.CONNECTING
    handle: Any = field(default=None, repr=False)

    @property
    def is_joined(self) -> bool:
        return self.state is ChannelState.JOINED


__all__ = ["Channel", "ChannelState", "USER_CHANNEL_PREFIX", "user_channel_name"]
