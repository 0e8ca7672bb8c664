"""Errors raised by the realtime transport layer."""


class TransportError(RuntimeError):
    """The transport could not open a channel or deliver a message."""


class ChannelClosedError(TransportError):
    """A message was sent on a channel handle that has been closed."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Channel {name!r} is closed")
        self.name = name


__all__ = ["ChannelClosedError", "TransportError"]
