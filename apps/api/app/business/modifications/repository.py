from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.modifications.models import AppliedModification, ModificationRequest
from app.core.repository import BaseRepository


class ModificationRequestRepository(BaseRepository[ModificationRequest]):
    model = ModificationRequest

    def get_by_token(self, session: Session, token: str) -> ModificationRequest | None:
        return session.scalar(select(ModificationRequest).where(ModificationRequest.token == token))

    def token_exists(self, session: Session, token: str) -> bool:
        return session.scalar(select(ModificationRequest.id).where(ModificationRequest.token == token)) is not None


class AppliedModificationRepository(BaseRepository[AppliedModification]):
    model = AppliedModification

    def distinct_months(self, session: Session) -> list[str]:
        rows = session.scalars(
            select(AppliedModification.applied_month).distinct().order_by(AppliedModification.applied_month.desc())
        ).all()
        return list(rows)
