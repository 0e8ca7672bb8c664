"""SQLAlchemy model for the member table."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Text, func

from portal.config import get_settings
from portal.infrastructure.database import Base


def _new_id() -> str:
    return str(uuid4())


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


class MemberModel(Base):
    """Database representation of a church member."""

    __tablename__ = get_settings().member_table

    id = Column(String(36), primary_key=True, index=True, default=_new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(40), nullable=True)
    bio = Column(Text, nullable=True)
    branch = Column(String(60), nullable=True, index=True)
    role = Column(String(20), nullable=False, default="user")
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    admin_note = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_utc_now, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=_utc_now)
