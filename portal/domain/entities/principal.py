"""Domain entity representing an authenticated caller."""

from dataclasses import dataclass

ADMIN_ROLES = frozenset({"admin", "pastor", "super_admin"})


@dataclass(frozen=True)
class Principal:
    """Identity extracted from a verified access token."""

    id: str
    name: str
    role: str

    def is_admin(self) -> bool:
        """Return ``True`` when the caller listens on the admin broadcast channel."""

        return self.role.lower() in ADMIN_ROLES


__all__ = ["ADMIN_ROLES", "Principal"]
