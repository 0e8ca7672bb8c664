"""Repository implementations backed by SQLAlchemy."""

from .member_repository import MemberRepository

__all__ = ["MemberRepository"]
