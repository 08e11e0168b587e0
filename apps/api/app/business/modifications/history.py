from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.modifications.models import AppliedModification, ModificationRequest
from app.business.modifications.repository import AppliedModificationRepository
from app.business.modifications.schemas import AppliedModificationRead
from app.core.errors import ValidationError


logger = logging.getLogger("app.modifications.history")

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


@dataclass(slots=True)
class ModificationHistoryService:
    """Append-only archive of applied modifications, one entry per request."""

    repository: AppliedModificationRepository = AppliedModificationRepository()

    def append(
        self,
        session: Session,
        request: ModificationRequest,
        applied_by: str | None,
        applied_at: datetime,
    ) -> AppliedModification:
        # Flushed only; the caller commits together with the status change.
        entry = AppliedModification(
            modification_request_id=request.id,
            engagement_id=request.engagement_id,
            engagement_name=request.engagement_name,
            client_id=request.client_id,
            client_name=request.client_name,
            client_brand_name=request.client_brand_name,
            request_type=request.request_type,
            proposed_changes=dict(request.proposed_changes),
            client_email=request.client_email,
            client_approved_at=request.client_approved_at,
            applied_at=applied_at,
            applied_by=applied_by,
            applied_month=applied_at.strftime("%Y-%m"),
            effective_from=request.effective_from,
            upsold_by_id=request.upsold_by_id,
            upsold_by_name=request.upsold_by_name,
            commission_percent=request.commission_percent,
            note=request.note,
        )
        self.repository.put(session, entry)
        logger.info(
            "modification.history_appended",
            extra={"modification_id": str(request.id), "applied_month": entry.applied_month},
        )
        return entry

    def list_all(self, session: Session) -> list[AppliedModificationRead]:
        return self._list(session)

    def list_by_engagement(self, session: Session, engagement_id: uuid.UUID) -> list[AppliedModificationRead]:
        return self._list(session, AppliedModification.engagement_id == engagement_id)

    def list_by_client(self, session: Session, client_id: uuid.UUID) -> list[AppliedModificationRead]:
        return self._list(session, AppliedModification.client_id == client_id)

    def list_by_month(self, session: Session, month: str) -> list[AppliedModificationRead]:
        if not _MONTH_RE.match(month):
            raise ValidationError("month must be formatted as YYYY-MM")
        return self._list(session, AppliedModification.applied_month == month)

    def list_available_months(self, session: Session) -> list[str]:
        return self.repository.distinct_months(session)

    def _list(self, session: Session, *criteria) -> list[AppliedModificationRead]:
        rows = session.scalars(
            select(AppliedModification)
            .where(*criteria)
            .order_by(AppliedModification.applied_at.desc(), AppliedModification.id)
        ).all()
        return [AppliedModificationRead.model_validate(row) for row in rows]


modification_history_service = ModificationHistoryService()
