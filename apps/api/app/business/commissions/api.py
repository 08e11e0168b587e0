from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.business.commissions.ledger import approval_ledger_service
from app.business.commissions.proration import calculate_prorated_reward
from app.business.commissions.schemas import (
    CommissionApprovalCreate,
    CommissionApprovalRead,
    CommissionItemKind,
    CommissionLineRead,
    CommissionMonthSummary,
    ProrationRead,
)
from app.business.commissions.service import commission_service
from app.core.auth import AuthUser, get_current_user as get_auth_user
from app.core.database import get_db
from app.core.errors import NotFoundError


router = APIRouter(prefix="/commissions", tags=["commissions"])


@router.get("", response_model=list[CommissionLineRead])
def list_commissions(
    year: int = Query(),
    month: int = Query(),
    db: Session = Depends(get_db),
) -> list[CommissionLineRead]:
    return commission_service.list_for_month(db, year, month)


@router.get("/summary", response_model=CommissionMonthSummary)
def summarize_commissions(
    year: int = Query(),
    month: int = Query(),
    db: Session = Depends(get_db),
) -> CommissionMonthSummary:
    return commission_service.summarize_month(db, year, month)


@router.get("/sellers/{seller_id}", response_model=list[CommissionLineRead])
def list_seller_commissions(
    seller_id: uuid.UUID,
    year: int | None = Query(default=None),
    month: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[CommissionLineRead]:
    return commission_service.list_approved_for_seller(db, seller_id, year=year, month=month)


@router.get("/approvals/{kind}/{item_id}", response_model=CommissionApprovalRead)
def get_commission_approval(
    kind: CommissionItemKind,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> CommissionApprovalRead:
    approval = approval_ledger_service.get_status(db, kind, item_id)
    if approval is None:
        raise NotFoundError("commission is not approved")
    return approval


@router.put("/approvals/{kind}/{item_id}", response_model=CommissionApprovalRead)
def approve_commission(
    kind: CommissionItemKind,
    item_id: uuid.UUID,
    payload: CommissionApprovalCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> CommissionApprovalRead:
    return approval_ledger_service.approve(db, kind, item_id, payload.approved_by or user.actor)


@router.delete("/approvals/{kind}/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_commission(
    kind: CommissionItemKind,
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> Response:
    approval_ledger_service.revoke(db, kind, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/proration", response_model=ProrationRead)
def preview_proration(
    amount: Decimal = Query(ge=Decimal("0")),
    year: int = Query(ge=1900, le=9999),
    month: int = Query(ge=1, le=12),
    start_date: date | None = Query(default=None),
) -> ProrationRead:
    return ProrationRead.model_validate(calculate_prorated_reward(amount, start_date, year, month))
