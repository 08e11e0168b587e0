from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


CommissionItemKind = Literal["extra_work", "engagement_service"]


class CommissionApprovalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: CommissionItemKind | str
    item_id: UUID
    approved: bool
    approved_at: datetime
    approved_by: str


class CommissionApprovalCreate(BaseModel):
    approved_by: str | None = None


class CommissionLineRead(BaseModel):
    kind: CommissionItemKind | str
    item_id: UUID
    item_name: str
    client_id: UUID
    client_name: str
    brand_name: str
    engagement_id: UUID | None
    engagement_name: str
    seller_id: UUID
    seller_name: str
    amount: Decimal
    currency: str
    commission_percent: Decimal
    commission_amount: Decimal
    attribution_month: str
    is_one_off: bool
    is_approved: bool
    approved_at: datetime | None
    approved_by: str | None
    created_at: datetime


class CurrencyCommissionTotal(BaseModel):
    currency: str
    item_count: int
    approved_count: int
    approved_commission: Decimal
    pending_commission: Decimal
    total_commission: Decimal


class CommissionMonthSummary(BaseModel):
    year: int
    month: int
    totals: list[CurrencyCommissionTotal] = Field(default_factory=list)


class ProrationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    full_amount: Decimal
    prorated_amount: Decimal
    is_prorated: bool
    start_day: int | None
    days_in_month: int
    days_worked: int
    percent_of_month: int
