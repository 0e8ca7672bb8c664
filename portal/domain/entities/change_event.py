"""Domain entity describing a row-level change reported by the database."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ChangeEventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A single insert, update or delete on a watched table.

    ``new`` is empty for deletes and ``old`` is empty for inserts, mirroring
    the payload shape of the managed database change feed.
    """

    table: str
    event_type: ChangeEventType
    new: Mapping[str, Any] = field(default_factory=dict)
    old: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, table: str, payload: Mapping[str, Any]) -> "ChangeEvent":
        """Build an event from a raw ``{eventType, new, old}`` payload.

        Raises ``ValueError`` for an unknown ``eventType``.
        """

        return cls(
            table=table,
            event_type=ChangeEventType(payload.get("eventType")),
            new=dict(payload.get("new") or {}),
            old=dict(payload.get("old") or {}),
        )


__all__ = ["ChangeEvent", "ChangeEventType"]
