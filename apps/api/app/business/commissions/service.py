from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from app.business.commissions.attribution import AttributionMonth, attribution_month, commission_amount, commission_base
from app.business.commissions.models import CommissionApproval
from app.business.commissions.schemas import CommissionLineRead, CommissionMonthSummary, CurrencyCommissionTotal
from app.business.engagements.models import Client, Colleague, Engagement, EngagementService, ExtraWork
from app.core.errors import ValidationError


UNKNOWN_SELLER = "Unknown"
UNKNOWN_ENGAGEMENT = "N/A"


@dataclass(slots=True)
class CommissionService:
    """Buckets seller commissions by attribution month.

    Results depend only on stored items and stored approvals, never on the
    current time, so repeated reads over unchanged data are identical.
    """

    def list_for_month(self, session: Session, year: int, month: int) -> list[CommissionLineRead]:
        target = self._target_month(year, month)
        return [line for line in self._collect_lines(session) if line.attribution_month == target.label()]

    def list_approved_for_seller(
        self,
        session: Session,
        seller_id: uuid.UUID,
        *,
        year: int | None = None,
        month: int | None = None,
    ) -> list[CommissionLineRead]:
        if (year is None) != (month is None):
            raise ValidationError("year and month must be provided together")
        label = self._target_month(year, month).label() if year is not None and month is not None else None

        return [
            line
            for line in self._collect_lines(session)
            if line.seller_id == seller_id and line.is_approved and (label is None or line.attribution_month == label)
        ]

    def summarize_month(self, session: Session, year: int, month: int) -> CommissionMonthSummary:
        grouped: dict[str, list[CommissionLineRead]] = defaultdict(list)
        for line in self.list_for_month(session, year, month):
            grouped[line.currency].append(line)

        totals = []
        for currency in sorted(grouped):
            lines = grouped[currency]
            approved = [line.commission_amount for line in lines if line.is_approved]
            pending = [line.commission_amount for line in lines if not line.is_approved]
            totals.append(
                CurrencyCommissionTotal(
                    currency=currency,
                    item_count=len(lines),
                    approved_count=len(approved),
                    approved_commission=sum(approved, Decimal("0")),
                    pending_commission=sum(pending, Decimal("0")),
                    total_commission=sum(approved + pending, Decimal("0")),
                )
            )
        return CommissionMonthSummary(year=year, month=month, totals=totals)

    def _collect_lines(self, session: Session) -> list[CommissionLineRead]:
        # Both kinds and their approvals are read inside the session's current
        # transaction, each kind paired with its approval in a single statement.
        lines = self._extra_work_lines(session) + self._service_lines(session)
        lines.sort(key=lambda line: (line.created_at, str(line.item_id)), reverse=True)
        return lines

    def _extra_work_lines(self, session: Session) -> list[CommissionLineRead]:
        rows = session.execute(
            select(ExtraWork, Client, Engagement, Colleague, CommissionApproval)
            .join(Client, Client.id == ExtraWork.client_id)
            .outerjoin(Engagement, Engagement.id == ExtraWork.engagement_id)
            .outerjoin(Colleague, Colleague.id == ExtraWork.upsold_by_id)
            .outerjoin(
                CommissionApproval,
                and_(CommissionApproval.kind == "extra_work", CommissionApproval.item_id == ExtraWork.id),
            )
            .where(ExtraWork.upsold_by_id.is_not(None), ExtraWork.commission_percent > 0)
            .execution_options(populate_existing=True)
        ).all()

        lines = []
        for work, client, engagement, seller, approval in rows:
            base = Decimal(work.amount)
            lines.append(
                self._line(
                    kind="extra_work",
                    item_id=work.id,
                    item_name=work.name,
                    client=client,
                    engagement=engagement,
                    seller_id=work.upsold_by_id,
                    seller=seller,
                    amount=base,
                    currency=work.currency,
                    commission_percent=Decimal(work.commission_percent),
                    month=attribution_month("one_off", work.work_date, None),
                    is_one_off=True,
                    approval=approval,
                    created_at=work.created_at,
                )
            )
        return lines

    def _service_lines(self, session: Session) -> list[CommissionLineRead]:
        rows = session.execute(
            select(EngagementService, Engagement, Client, Colleague, CommissionApproval)
            .join(Engagement, Engagement.id == EngagementService.engagement_id)
            .join(Client, Client.id == Engagement.client_id)
            .outerjoin(Colleague, Colleague.id == EngagementService.upsold_by_id)
            .outerjoin(
                CommissionApproval,
                and_(CommissionApproval.kind == "engagement_service", CommissionApproval.item_id == EngagementService.id),
            )
            .where(EngagementService.upsold_by_id.is_not(None), EngagementService.commission_percent > 0)
            .execution_options(populate_existing=True)
        ).all()

        lines = []
        for service, engagement, client, seller, approval in rows:
            is_one_off = service.billing_type == "one_off"
            lines.append(
                self._line(
                    kind="engagement_service",
                    item_id=service.id,
                    item_name=service.name,
                    client=client,
                    engagement=engagement,
                    seller_id=service.upsold_by_id,
                    seller=seller,
                    amount=commission_base(service.price, service.max_credits, service.price_per_credit),
                    currency=service.currency,
                    commission_percent=Decimal(service.commission_percent),
                    month=attribution_month(service.billing_type, service.created_at.date(), service.effective_from),
                    is_one_off=is_one_off,
                    approval=approval,
                    created_at=service.created_at,
                )
            )
        return lines

    @staticmethod
    def _line(
        *,
        kind: str,
        item_id: uuid.UUID,
        item_name: str,
        client: Client,
        engagement: Engagement | None,
        seller_id: uuid.UUID,
        seller: Colleague | None,
        amount: Decimal,
        currency: str,
        commission_percent: Decimal,
        month: AttributionMonth,
        is_one_off: bool,
        approval: CommissionApproval | None,
        created_at: datetime,
    ) -> CommissionLineRead:
        return CommissionLineRead(
            kind=kind,
            item_id=item_id,
            item_name=item_name,
            client_id=client.id,
            client_name=client.name,
            brand_name=client.brand_name or client.name,
            engagement_id=engagement.id if engagement is not None else None,
            engagement_name=engagement.name if engagement is not None else UNKNOWN_ENGAGEMENT,
            seller_id=seller_id,
            seller_name=seller.full_name if seller is not None else UNKNOWN_SELLER,
            amount=amount,
            currency=currency,
            commission_percent=commission_percent,
            commission_amount=commission_amount(amount, commission_percent),
            attribution_month=month.label(),
            is_one_off=is_one_off,
            is_approved=approval is not None and approval.approved,
            approved_at=approval.approved_at if approval is not None else None,
            approved_by=approval.approved_by if approval is not None else None,
            created_at=created_at,
        )

    @staticmethod
    def _target_month(year: int, month: int) -> AttributionMonth:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        if not 1900 <= year <= 9999:
            raise ValidationError("year is out of range")
        return AttributionMonth(year, month)


commission_service = CommissionService()
