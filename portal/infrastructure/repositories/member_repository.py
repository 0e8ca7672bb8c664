"""Persistence layer for member records."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.domain.entities import MemberStatsRow
from portal.infrastructure.models import MemberModel


class MemberRepository:
    """Provide the member queries needed by the realtime layer."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, member_id: str) -> MemberModel | None:
        return self.session.get(MemberModel, member_id)

    def create(self, **values: Any) -> MemberModel:
        model = MemberModel(**values)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return model

    def update(self, member_id: str, **values: Any) -> MemberModel:
        model = self.get(member_id)
        if model is None:
            msg = f"Member with id {member_id} not found"
            raise ValueError(msg)
        for key, value in values.items():
            if not hasattr(MemberModel, key):
                msg = f"Unknown member field {key!r}"
                raise ValueError(msg)
            setattr(model, key, value)
        self.session.commit()
        self.session.refresh(model)
        return model

    def delete(self, member_id: str) -> None:
        model = self.get(member_id)
        if model is None:
            msg = f"Member with id {member_id} not found"
            raise ValueError(msg)
        self.session.delete(model)
        self.session.commit()

    def list_active_stats_rows(self) -> Sequence[MemberStatsRow]:
        """Return the stats projection of every active member, ordered by id."""

        query = (
            select(
                MemberModel.approval_status,
                MemberModel.branch,
                MemberModel.is_active,
                MemberModel.created_at,
            )
            .where(MemberModel.is_active.is_(True))
            .order_by(MemberModel.id)
        )
        return [
            MemberStatsRow(
                approval_status=approval_status,
                branch=branch,
                is_active=bool(is_active),
                created_at=created_at,
            )
            for approval_status, branch, is_active, created_at in self.session.execute(query)
        ]
