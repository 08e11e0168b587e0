from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.business.engagements.service import EngagementChangeApplier, EngagementDirectory
from app.business.modifications.history import ModificationHistoryService
from app.business.modifications.models import ModificationRequest
from app.business.modifications.repository import ModificationRequestRepository
from app.business.modifications.schemas import (
    PROPOSED_CHANGES_MODELS,
    DeactivateServiceChanges,
    EmailSentCreate,
    ModificationRequestCreate,
    ModificationRequestRead,
    ModificationRequestUpdate,
    ProposedChanges,
    RemoveAssignmentChanges,
    UpdateAssignmentChanges,
    UpdateServicePriceChanges,
    is_client_facing,
)
from app.context import get_correlation_id
from app.core.config import get_settings
from app.core.database import unit_of_work, utcnow
from app.core.errors import InvalidStateError, NotFoundError, ValidationError
from app.metrics import observe_modification_transition
from app.otel import get_tracer


logger = logging.getLogger("app.modifications")
tracer = get_tracer("app.modifications")

MODIFICATION_STATUSES: frozenset[str] = frozenset({"pending", "approved", "rejected", "client_approved", "applied"})
EDITABLE_STATUSES: frozenset[str] = frozenset({"pending", "approved"})
DELETABLE_STATUSES: frozenset[str] = frozenset({"pending", "approved", "rejected"})


def parse_proposed_changes(request_type: str, proposed_changes: dict[str, Any]) -> ProposedChanges:
    model = PROPOSED_CHANGES_MODELS.get(request_type)
    if model is None:
        raise ValidationError(f"unknown request type '{request_type}'")
    try:
        return model.model_validate(proposed_changes)  # type: ignore[return-value]
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid proposed_changes for {request_type}: {exc.errors(include_url=False)}") from exc


def generate_token() -> str:
    # 16 random bytes, url-safe.
    return secrets.token_urlsafe(16)


@dataclass(slots=True)
class ModificationService:
    """Review lifecycle for proposed changes to a live engagement.

    pending -> approved | rejected; approved -> client_approved (client-facing
    types, through the confirmation gateway) -> applied. Every state change is
    a read-modify-write of one row guarded by its version counter.
    """

    repository: ModificationRequestRepository = ModificationRequestRepository()
    directory: EngagementDirectory = field(default_factory=EngagementDirectory)
    applier: EngagementChangeApplier = field(default_factory=EngagementChangeApplier)
    history: ModificationHistoryService = field(default_factory=ModificationHistoryService)
    clock: Callable[[], datetime] = utcnow
    token_factory: Callable[[], str] = generate_token

    def create(
        self,
        session: Session,
        payload: ModificationRequestCreate,
        requested_by: str | None = None,
    ) -> ModificationRequestRead:
        changes = parse_proposed_changes(payload.request_type, payload.proposed_changes)
        display = self.directory.describe(session, payload.engagement_id, payload.upsold_by_id)
        changes = self._complete_changes(session, payload.engagement_id, changes)

        commission_percent = payload.commission_percent
        if commission_percent is None:
            commission_percent = Decimal(get_settings().default_commission_percent)

        now = self.clock()
        record = ModificationRequest(
            engagement_id=display.engagement_id,
            request_type=payload.request_type,
            status="pending",
            proposed_changes=changes.model_dump(mode="json", exclude_none=True),
            engagement_service_id=_service_target(changes),
            engagement_assignment_id=_assignment_target(changes),
            effective_from=payload.effective_from,
            upsold_by_id=payload.upsold_by_id,
            commission_percent=commission_percent,
            requested_by=requested_by,
            requested_at=now,
            note=payload.note,
            emails_sent=[],
            engagement_name=display.engagement_name,
            client_id=display.client_id,
            client_name=display.client_name,
            client_brand_name=display.client_brand_name,
            upsold_by_name=display.upsold_by_name,
            created_at=now,
            updated_at=now,
        )
        with unit_of_work(session):
            self.repository.put(session, record)

        self._record_transition(record)
        return ModificationRequestRead.model_validate(record)

    def get(self, session: Session, modification_id: uuid.UUID) -> ModificationRequestRead:
        return ModificationRequestRead.model_validate(self._get(session, modification_id))

    def list(
        self,
        session: Session,
        *,
        status: str | None = None,
        engagement_id: uuid.UUID | None = None,
    ) -> list[ModificationRequestRead]:
        criteria = []
        if status is not None:
            if status not in MODIFICATION_STATUSES:
                raise ValidationError(f"unknown status '{status}'")
            criteria.append(ModificationRequest.status == status)
        if engagement_id is not None:
            criteria.append(ModificationRequest.engagement_id == engagement_id)

        rows = self.repository.scan(
            session,
            *criteria,
            order_by=(ModificationRequest.requested_at.desc(), ModificationRequest.id),
        )
        return [ModificationRequestRead.model_validate(row) for row in rows]

    def list_pending(self, session: Session) -> list[ModificationRequestRead]:
        return self.list(session, status="pending")

    def approve(self, session: Session, modification_id: uuid.UUID, reviewer: str | None) -> ModificationRequestRead:
        with unit_of_work(session):
            record = self._get(session, modification_id)
            self._require_status(record, {"pending"}, "approve")

            now = self.clock()
            token = None
            token_expiry = None
            if is_client_facing(record.request_type):
                token = self._new_token(session)
                token_expiry = now + timedelta(days=get_settings().modification_token_ttl_days)

            record.status = "approved"
            record.reviewed_by = reviewer
            record.reviewed_at = now
            record.token = token
            record.token_expiry = token_expiry
            record.updated_at = now

        self._record_transition(record)
        return ModificationRequestRead.model_validate(record)

    def reject(
        self,
        session: Session,
        modification_id: uuid.UUID,
        reviewer: str | None,
        reason: str | None,
    ) -> ModificationRequestRead:
        with unit_of_work(session):
            record = self._get(session, modification_id)
            if reason is None or not reason.strip():
                raise ValidationError("a rejection reason is required")
            self._require_status(record, {"pending"}, "reject")

            now = self.clock()
            record.status = "rejected"
            record.reviewed_by = reviewer
            record.reviewed_at = now
            record.rejection_reason = reason.strip()
            record.updated_at = now

        self._record_transition(record)
        return ModificationRequestRead.model_validate(record)

    def update(
        self,
        session: Session,
        modification_id: uuid.UUID,
        payload: ModificationRequestUpdate,
    ) -> ModificationRequestRead:
        values = payload.model_dump(exclude_unset=True)

        with unit_of_work(session):
            record = self._get(session, modification_id)
            self._require_status(record, EDITABLE_STATUSES, "update")

            if "proposed_changes" in values:
                if values["proposed_changes"] is None:
                    raise ValidationError("proposed_changes cannot be cleared")
                changes = parse_proposed_changes(record.request_type, values["proposed_changes"])
                changes = self._complete_changes(session, record.engagement_id, changes)
                record.proposed_changes = changes.model_dump(mode="json", exclude_none=True)
                record.engagement_service_id = _service_target(changes)
                record.engagement_assignment_id = _assignment_target(changes)

            if "upsold_by_id" in values:
                display = self.directory.describe(session, record.engagement_id, values["upsold_by_id"])
                record.upsold_by_id = values["upsold_by_id"]
                record.upsold_by_name = display.upsold_by_name

            if "commission_percent" in values:
                if values["commission_percent"] is None:
                    raise ValidationError("commission_percent cannot be cleared")
                record.commission_percent = values["commission_percent"]

            if "effective_from" in values:
                record.effective_from = values["effective_from"]
            if "note" in values:
                record.note = values["note"]
            record.updated_at = self.clock()

        logger.info(
            "modification.updated",
            extra={"modification_id": str(record.id), "request_type": record.request_type, "status": record.status},
        )
        return ModificationRequestRead.model_validate(record)

    def delete(self, session: Session, modification_id: uuid.UUID) -> None:
        with unit_of_work(session):
            record = self._get(session, modification_id)
            self._require_status(record, DELETABLE_STATUSES, "delete")
            request_type, status = record.request_type, record.status
            self.repository.delete(session, record)

        logger.info(
            "modification.deleted",
            extra={"modification_id": str(modification_id), "request_type": request_type, "status": status},
        )

    def apply(self, session: Session, modification_id: uuid.UUID, applied_by: str | None) -> ModificationRequestRead:
        with tracer.start_as_current_span("modification.apply") as span, unit_of_work(session):
            span.set_attribute("modification_id", str(modification_id))
            correlation_id = get_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)
            record = self._get(session, modification_id)
            span.set_attribute("request_type", record.request_type)
            if record.status == "applied":
                raise InvalidStateError("modification request has already been applied")
            required = "client_approved" if is_client_facing(record.request_type) else "approved"
            self._require_status(record, {required}, "apply")

            changes = parse_proposed_changes(record.request_type, record.proposed_changes)
            now = self.clock()
            self.applier.apply(session, record, changes, applied_on=now.date())

            record.status = "applied"
            record.updated_at = now
            session.flush()
            self.history.append(session, record, applied_by, now)

        self._record_transition(record)
        return ModificationRequestRead.model_validate(record)

    def record_email_sent(
        self,
        session: Session,
        modification_id: uuid.UUID,
        payload: EmailSentCreate,
        sent_by: str | None = None,
    ) -> ModificationRequestRead:
        with unit_of_work(session):
            record = self._get(session, modification_id)
            if not is_client_facing(record.request_type) or record.token is None:
                raise InvalidStateError("only client-facing requests with a confirmation link can be emailed")
            self._require_status(record, {"approved"}, "email")

            now = self.clock()
            entry = {
                "recipient": payload.recipient,
                "subject": payload.subject,
                "sender": payload.sender,
                "sent_at": now.isoformat(),
                "sent_by": sent_by,
            }
            # Reassigned so the JSON column is flagged dirty.
            record.emails_sent = [*record.emails_sent, entry]
            record.updated_at = now

        logger.info(
            "modification.email_recorded",
            extra={"modification_id": str(record.id), "request_type": record.request_type, "status": record.status},
        )
        return ModificationRequestRead.model_validate(record)

    def _get(self, session: Session, modification_id: uuid.UUID) -> ModificationRequest:
        record = self.repository.get(session, modification_id)
        if record is None:
            raise NotFoundError("modification request not found")
        return record

    def _new_token(self, session: Session) -> str:
        while True:
            token = self.token_factory()
            if not self.repository.token_exists(session, token):
                return token

    def _complete_changes(self, session: Session, engagement_id: uuid.UUID, changes: ProposedChanges) -> ProposedChanges:
        if isinstance(changes, (UpdateServicePriceChanges, DeactivateServiceChanges)):
            service = self.directory.find_service(session, engagement_id, changes.engagement_service_id)
            if service is None:
                raise NotFoundError("engagement service not found")
            if isinstance(changes, UpdateServicePriceChanges) and changes.old_price is None:
                return changes.model_copy(update={"old_price": service.price})
        return changes

    @staticmethod
    def _require_status(record: ModificationRequest, allowed: set[str] | frozenset[str], action: str) -> None:
        if record.status not in allowed:
            raise InvalidStateError(f"cannot {action} a modification request in status '{record.status}'")

    @staticmethod
    def _record_transition(record: ModificationRequest) -> None:
        observe_modification_transition(record.request_type, record.status)
        logger.info(
            f"modification.{record.status}",
            extra={
                "modification_id": str(record.id),
                "engagement_id": str(record.engagement_id),
                "request_type": record.request_type,
                "status": record.status,
            },
        )


def _service_target(changes: ProposedChanges) -> uuid.UUID | None:
    if isinstance(changes, (UpdateServicePriceChanges, DeactivateServiceChanges)):
        return changes.engagement_service_id
    return None


def _assignment_target(changes: ProposedChanges) -> uuid.UUID | None:
    if isinstance(changes, (UpdateAssignmentChanges, RemoveAssignmentChanges)):
        return changes.engagement_assignment_id
    return None


modification_service = ModificationService()
