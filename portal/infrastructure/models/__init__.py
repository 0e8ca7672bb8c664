"""ORM models used by the application infrastructure."""

from .administrator import AdministratorModel
from .member import MemberModel

__all__ = ["AdministratorModel", "MemberModel"]
