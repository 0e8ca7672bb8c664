"""Wire representation of notifications."""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from portal.domain.entities import Notification, thaw


def to_jsonable(value: Any) -> Any:
    """Return ``value`` with datetimes, enums and UUIDs converted to JSON scalars."""

    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the ``{type, data, timestamp, message}`` payload for ``notification``."""

    return {
        "type": notification.type.value,
        "data": to_jsonable(thaw(notification.data)),
        "timestamp": notification.timestamp.isoformat(),
        "message": notification.message,
    }


def encode_notification(notification: Notification) -> str:
    """Return the compact JSON text sent over the transport."""

    return json.dumps(
        serialize_notification(notification),
        ensure_ascii=False,
        separators=(",", ":"),
    )


def _parse_timestamp(value: str) -> datetime:
    # Offsets are kept as sent so re-encoding yields the same text.
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def decode_notification(raw: str | bytes | Mapping[str, Any]) -> Notification:
    """Rebuild a :class:`Notification` from its wire form.

    Raises ``ValueError`` when the payload does not have the wire shape.
    """

    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if not isinstance(raw, Mapping):
        raise ValueError("Notification payload must be an object")
    try:
        timestamp = _parse_timestamp(raw["timestamp"])
        return Notification(
            type=raw["type"],
            data=raw.get("data") or {},
            timestamp=timestamp,
            message=raw["message"],
        )
    except KeyError as exc:
        raise ValueError(f"Notification payload missing {exc.args[0]!r}") from exc


__all__ = [
    "decode_notification",
    "encode_notification",
    "serialize_notification",
    "to_jsonable",
]
