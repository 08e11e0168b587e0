from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.business.commissions.models import CommissionApproval
from app.business.commissions.repository import ApprovalKey, CommissionApprovalRepository
from app.business.commissions.schemas import CommissionApprovalRead
from app.core.database import unit_of_work, utcnow
from app.core.errors import ValidationError
from app.metrics import observe_commission_approval


logger = logging.getLogger("app.commissions.ledger")

COMMISSION_ITEM_KINDS: frozenset[str] = frozenset({"extra_work", "engagement_service"})


@dataclass(slots=True)
class ApprovalLedgerService:
    """Finance sign-off per commissionable item.

    Independent of the modification lifecycle: an item's commission can be
    approved or revoked whatever state the change that created it is in.
    """

    repository: CommissionApprovalRepository = CommissionApprovalRepository()
    clock: Callable[[], datetime] = utcnow

    def get_status(self, session: Session, kind: str, item_id: uuid.UUID) -> CommissionApprovalRead | None:
        record = self.repository.get(session, self._key(kind, item_id))
        if record is None:
            return None
        return CommissionApprovalRead.model_validate(record)

    def approve(self, session: Session, kind: str, item_id: uuid.UUID, approved_by: str) -> CommissionApprovalRead:
        if not approved_by or not approved_by.strip():
            raise ValidationError("approved_by is required")
        key = self._key(kind, item_id)

        with unit_of_work(session):
            record = self.repository.get(session, key)
            if record is None:
                record = CommissionApproval(kind=key.kind, item_id=key.item_id)
            record.approved = True
            record.approved_at = self.clock()
            record.approved_by = approved_by.strip()
            self.repository.put(session, record)

        observe_commission_approval(key.kind, "approve")
        logger.info("commission.approved", extra={"item_kind": key.kind, "item_id": str(key.item_id)})
        return CommissionApprovalRead.model_validate(record)

    def revoke(self, session: Session, kind: str, item_id: uuid.UUID) -> None:
        key = self._key(kind, item_id)
        with unit_of_work(session):
            record = self.repository.get(session, key)
            if record is None:
                return
            self.repository.delete(session, record)

        observe_commission_approval(key.kind, "revoke")
        logger.info("commission.revoked", extra={"item_kind": key.kind, "item_id": str(key.item_id)})

    @staticmethod
    def _key(kind: str, item_id: uuid.UUID) -> ApprovalKey:
        if kind not in COMMISSION_ITEM_KINDS:
            raise ValidationError(f"unknown commission item kind '{kind}'")
        return ApprovalKey(kind, item_id)


approval_ledger_service = ApprovalLedgerService()
