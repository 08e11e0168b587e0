from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.business.commissions.proration import calculate_prorated_reward
from app.business.engagements.service import EngagementDirectory
from app.business.modifications.models import ModificationRequest
from app.business.modifications.repository import ModificationRequestRepository
from app.business.modifications.schemas import (
    EMAIL_PATTERN,
    AddServiceChanges,
    ClientConfirmationRead,
    DeactivateServiceChanges,
    ModificationRequestRead,
    UpdateServicePriceChanges,
)
from app.business.modifications.service import parse_proposed_changes
from app.core.config import get_settings
from app.core.database import unit_of_work, utcnow
from app.core.errors import ExpiredTokenError, InvalidStateError, NotFoundError, ValidationError
from app.metrics import observe_modification_transition
from app.notifications import EntityRef, NotificationSink, notification_sink
from app.otel import get_tracer


logger = logging.getLogger("app.modifications.confirmation")
tracer = get_tracer("app.modifications.confirmation")

CLIENT_APPROVED_NOTIFICATION = "modification_client_approved"

_EMAIL_RE = re.compile(EMAIL_PATTERN)


@dataclass(frozen=True, slots=True)
class _Offer:
    summary: str
    currency: str | None
    new_monthly_price: Decimal | None
    price_difference: Decimal | None


@dataclass(slots=True)
class ClientConfirmationService:
    """Public, token-addressed view and acceptance of client-facing changes.

    The token is the only credential; validity (status and expiry) is checked
    on accept, never swept in the background.
    """

    repository: ModificationRequestRepository = ModificationRequestRepository()
    directory: EngagementDirectory = field(default_factory=EngagementDirectory)
    notifier: NotificationSink = notification_sink
    clock: Callable[[], datetime] = utcnow

    def lookup_by_token(self, session: Session, token: str) -> ModificationRequestRead:
        return ModificationRequestRead.model_validate(self._get_by_token(session, token))

    def get_offer(self, session: Session, token: str) -> ClientConfirmationRead:
        record = self._get_by_token(session, token)
        offer = self._describe(session, record)

        prorated_first_month = None
        if offer.new_monthly_price is not None and record.effective_from is not None:
            start = record.effective_from
            prorated_first_month = calculate_prorated_reward(
                offer.new_monthly_price, start, start.year, start.month
            ).prorated_amount

        return ClientConfirmationRead(
            modification_request_id=record.id,
            request_type=record.request_type,
            status=record.status,
            engagement_name=record.engagement_name,
            client_name=record.client_name,
            client_brand_name=record.client_brand_name,
            change_summary=offer.summary,
            proposed_changes=record.proposed_changes,
            effective_from=record.effective_from,
            currency=offer.currency,
            new_monthly_price=offer.new_monthly_price,
            price_difference=offer.price_difference,
            prorated_first_month=prorated_first_month,
            valid_until=record.token_expiry,
            is_expired=record.token_expiry is not None and self.clock() > record.token_expiry,
            client_email=record.client_email,
            client_approved_at=record.client_approved_at,
        )

    def accept(self, session: Session, token: str, client_email: str) -> ModificationRequestRead:
        with tracer.start_as_current_span("modification.client_accept"), unit_of_work(session):
            record = self._get_by_token(session, token)
            email = (client_email or "").strip()
            if not _EMAIL_RE.match(email):
                raise ValidationError("a valid client email is required")
            if record.status != "approved":
                raise InvalidStateError(f"cannot accept a modification request in status '{record.status}'")
            now = self.clock()
            if record.token_expiry is None or now > record.token_expiry:
                raise ExpiredTokenError("confirmation link has expired")

            record.status = "client_approved"
            record.client_email = email
            record.client_approved_at = now
            record.updated_at = now

        observe_modification_transition(record.request_type, record.status)
        logger.info(
            "modification.client_approved",
            extra={
                "modification_id": str(record.id),
                "engagement_id": str(record.engagement_id),
                "request_type": record.request_type,
                "status": record.status,
            },
        )

        # The acceptance is committed; a failing subscriber must not turn it into an error.
        client_label = record.client_brand_name or record.client_name
        try:
            self.notifier.submit(
                type=CLIENT_APPROVED_NOTIFICATION,
                title=f"{client_label} approved a change to {record.engagement_name}",
                message=(
                    f"{record.client_name} confirmed the {record.request_type.replace('_', ' ')} request "
                    f"for engagement {record.engagement_name}. It is ready to be applied."
                ),
                link=f"{get_settings().public_base_url.rstrip('/')}/engagements/{record.engagement_id}",
                entity_ref=EntityRef(type="engagement_modification_request", id=str(record.id)),
            )
        except Exception:
            logger.exception(
                "notification.failed",
                extra={
                    "modification_id": str(record.id),
                    "notification_type": CLIENT_APPROVED_NOTIFICATION,
                },
            )
        return ModificationRequestRead.model_validate(record)

    def _get_by_token(self, session: Session, token: str) -> ModificationRequest:
        record = self.repository.get_by_token(session, token) if token else None
        if record is None:
            raise NotFoundError("confirmation link not found")
        return record

    def _describe(self, session: Session, record: ModificationRequest) -> _Offer:
        changes = parse_proposed_changes(record.request_type, record.proposed_changes)
        if isinstance(changes, AddServiceChanges):
            recurring = changes.billing_type == "recurring"
            cadence = "per month" if recurring else "one-off"
            return _Offer(
                summary=f"Add {changes.name} at {changes.price} {changes.currency} {cadence}",
                currency=changes.currency,
                new_monthly_price=changes.price if recurring else None,
                price_difference=changes.price if recurring else None,
            )

        if isinstance(changes, (UpdateServicePriceChanges, DeactivateServiceChanges)):
            service = self.directory.find_service(session, record.engagement_id, changes.engagement_service_id)
            name = service.name if service is not None else "service"
            currency = service.currency if service is not None else None
            if isinstance(changes, UpdateServicePriceChanges):
                old_price = changes.old_price if changes.old_price is not None else (service.price if service else None)
                return _Offer(
                    summary=f"Change the price of {name} to {changes.new_price}",
                    currency=currency,
                    new_monthly_price=changes.new_price,
                    price_difference=changes.new_price - Decimal(old_price) if old_price is not None else None,
                )
            current = Decimal(service.price) if service is not None else None
            return _Offer(
                summary=f"Deactivate {name}",
                currency=currency,
                new_monthly_price=Decimal("0"),
                price_difference=-current if current is not None else None,
            )

        # Team changes never carry a confirmation link.
        return _Offer(summary=record.request_type.replace("_", " "), currency=None, new_monthly_price=None, price_difference=None)


client_confirmation_service = ClientConfirmationService()
