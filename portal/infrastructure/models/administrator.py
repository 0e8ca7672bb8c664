"""SQLAlchemy model for the administrator table."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, func

from portal.config import get_settings
from portal.infrastructure.database import Base


def _new_id() -> str:
    return str(uuid4())


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


class AdministratorModel(Base):
    """Database representation of a pastor or administrator account."""

    __tablename__ = get_settings().administrator_table

    id = Column(String(36), primary_key=True, index=True, default=_new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default="pastor")
    branch = Column(String(60), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_utc_now, server_default=func.now())
