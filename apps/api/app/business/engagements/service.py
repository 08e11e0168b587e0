from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import assert_never

from sqlalchemy.orm import Session

from app.business.engagements.models import EngagementAssignment, EngagementService
from app.business.engagements.repository import (
    ClientRepository,
    ColleagueRepository,
    EngagementAssignmentRepository,
    EngagementRepository,
    EngagementServiceRepository,
)
from app.business.modifications.models import ModificationRequest
from app.business.modifications.schemas import (
    AddAssignmentChanges,
    AddServiceChanges,
    DeactivateServiceChanges,
    ProposedChanges,
    RemoveAssignmentChanges,
    UpdateAssignmentChanges,
    UpdateServicePriceChanges,
)
from app.core.errors import InvalidStateError, NotFoundError


logger = logging.getLogger("app.engagements")


@dataclass(frozen=True, slots=True)
class EngagementDisplay:
    engagement_id: uuid.UUID
    engagement_name: str
    client_id: uuid.UUID
    client_name: str
    client_brand_name: str | None
    upsold_by_name: str | None


@dataclass(slots=True)
class EngagementDirectory:
    """Read-only lookups used to denormalize display names onto requests."""

    engagement_repository: EngagementRepository = EngagementRepository()
    client_repository: ClientRepository = ClientRepository()
    colleague_repository: ColleagueRepository = ColleagueRepository()
    service_repository: EngagementServiceRepository = EngagementServiceRepository()

    def describe(self, session: Session, engagement_id: uuid.UUID, seller_id: uuid.UUID | None) -> EngagementDisplay:
        engagement = self.engagement_repository.get(session, engagement_id)
        if engagement is None:
            raise NotFoundError("engagement not found")
        client = self.client_repository.get(session, engagement.client_id)
        if client is None:
            raise NotFoundError("client not found")

        seller_name = None
        if seller_id is not None:
            seller = self.colleague_repository.get(session, seller_id)
            if seller is None:
                raise NotFoundError("seller not found")
            seller_name = seller.full_name

        return EngagementDisplay(
            engagement_id=engagement.id,
            engagement_name=engagement.name,
            client_id=client.id,
            client_name=client.name,
            client_brand_name=client.brand_name,
            upsold_by_name=seller_name,
        )

    def find_service(self, session: Session, engagement_id: uuid.UUID, service_id: uuid.UUID) -> EngagementService | None:
        service = self.service_repository.get(session, service_id)
        if service is None or service.engagement_id != engagement_id:
            return None
        return service


@dataclass(slots=True)
class EngagementChangeApplier:
    """Executes an approved modification against the live engagement records.

    Runs inside the caller's transaction and never commits.
    """

    engagement_repository: EngagementRepository = EngagementRepository()
    colleague_repository: ColleagueRepository = ColleagueRepository()
    service_repository: EngagementServiceRepository = EngagementServiceRepository()
    assignment_repository: EngagementAssignmentRepository = EngagementAssignmentRepository()

    def apply(self, session: Session, request: ModificationRequest, changes: ProposedChanges, *, applied_on: date) -> None:
        if isinstance(changes, AddServiceChanges):
            self._add_service(session, request, changes)
        elif isinstance(changes, UpdateServicePriceChanges):
            service = self._get_service(session, request.engagement_id, changes.engagement_service_id)
            service.price = changes.new_price
        elif isinstance(changes, DeactivateServiceChanges):
            service = self._get_service(session, request.engagement_id, changes.engagement_service_id)
            service.is_active = False
        elif isinstance(changes, AddAssignmentChanges):
            self._add_assignment(session, request, changes)
        elif isinstance(changes, UpdateAssignmentChanges):
            assignment = self._get_assignment(session, request.engagement_id, changes.engagement_assignment_id)
            self._set_cost(assignment, changes)
        elif isinstance(changes, RemoveAssignmentChanges):
            assignment = self._get_assignment(session, request.engagement_id, changes.engagement_assignment_id)
            assignment.is_active = False
            assignment.end_date = request.effective_from or applied_on
        else:
            assert_never(changes)

        session.flush()
        logger.info(
            "engagement.change_applied",
            extra={
                "modification_id": str(request.id),
                "engagement_id": str(request.engagement_id),
                "request_type": request.request_type,
            },
        )

    def _add_service(self, session: Session, request: ModificationRequest, changes: AddServiceChanges) -> None:
        if self.engagement_repository.get(session, request.engagement_id) is None:
            raise NotFoundError("engagement not found")
        self.service_repository.put(
            session,
            EngagementService(
                engagement_id=request.engagement_id,
                service_id=changes.service_id,
                name=changes.name,
                price=changes.price,
                currency=changes.currency,
                billing_type=changes.billing_type,
                is_active=True,
                selected_tier=changes.selected_tier,
                max_credits=changes.max_credits,
                price_per_credit=changes.price_per_credit,
                effective_from=request.effective_from,
                upsold_by_id=request.upsold_by_id,
                commission_percent=request.commission_percent if request.upsold_by_id is not None else None,
            ),
        )

    def _add_assignment(self, session: Session, request: ModificationRequest, changes: AddAssignmentChanges) -> None:
        if self.colleague_repository.get(session, changes.colleague_id) is None:
            raise NotFoundError("colleague not found")
        assignment = EngagementAssignment(
            engagement_id=request.engagement_id,
            colleague_id=changes.colleague_id,
            role_on_engagement=changes.role_on_engagement,
            cost_model=changes.cost_model,
            is_active=True,
            start_date=request.effective_from,
        )
        self._set_cost(assignment, changes)
        self.assignment_repository.put(session, assignment)

    def _get_service(self, session: Session, engagement_id: uuid.UUID, service_id: uuid.UUID) -> EngagementService:
        service = self.service_repository.get(session, service_id)
        if service is None or service.engagement_id != engagement_id:
            raise NotFoundError("engagement service not found")
        return service

    def _get_assignment(self, session: Session, engagement_id: uuid.UUID, assignment_id: uuid.UUID) -> EngagementAssignment:
        assignment = self.assignment_repository.get(session, assignment_id)
        if assignment is None or assignment.engagement_id != engagement_id:
            raise NotFoundError("engagement assignment not found")
        if not assignment.is_active:
            raise InvalidStateError("engagement assignment is no longer active")
        return assignment

    @staticmethod
    def _set_cost(assignment: EngagementAssignment, changes: AddAssignmentChanges | UpdateAssignmentChanges) -> None:
        assignment.cost_model = changes.cost_model
        assignment.hourly_cost = _cost_or_none(changes.cost_model == "hourly", changes.hourly_cost)
        assignment.monthly_cost = _cost_or_none(changes.cost_model == "fixed_monthly", changes.monthly_cost)
        assignment.percentage_of_revenue = _cost_or_none(changes.cost_model == "percentage", changes.percentage_of_revenue)


def _cost_or_none(selected: bool, value: Decimal | None) -> Decimal | None:
    return value if selected else None


engagement_directory = EngagementDirectory()
engagement_change_applier = EngagementChangeApplier()
