from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


RequestType = Literal[
    "add_service",
    "update_service_price",
    "deactivate_service",
    "add_assignment",
    "update_assignment",
    "remove_assignment",
]
ModificationStatus = Literal["pending", "approved", "rejected", "client_approved", "applied"]
BillingType = Literal["one_off", "recurring"]
CostModel = Literal["hourly", "fixed_monthly", "percentage"]

CLIENT_FACING_REQUEST_TYPES: frozenset[str] = frozenset({"add_service", "update_service_price", "deactivate_service"})

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def is_client_facing(request_type: str) -> bool:
    return request_type in CLIENT_FACING_REQUEST_TYPES


class _ProposedChanges(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class AddServiceChanges(_ProposedChanges):
    service_id: str | None = None
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=Decimal("0"))
    currency: str = Field(min_length=1)
    billing_type: BillingType
    selected_tier: str | None = None
    max_credits: int | None = Field(default=None, gt=0)
    price_per_credit: Decimal | None = Field(default=None, ge=Decimal("0"))

    @model_validator(mode="after")
    def _credits_come_in_pairs(self) -> AddServiceChanges:
        if (self.max_credits is None) != (self.price_per_credit is None):
            raise ValueError("max_credits and price_per_credit must be provided together")
        return self


class UpdateServicePriceChanges(_ProposedChanges):
    engagement_service_id: UUID
    new_price: Decimal = Field(ge=Decimal("0"))
    old_price: Decimal | None = None


class DeactivateServiceChanges(_ProposedChanges):
    engagement_service_id: UUID


class _AssignmentCostChanges(_ProposedChanges):
    cost_model: CostModel
    hourly_cost: Decimal | None = Field(default=None, ge=Decimal("0"))
    monthly_cost: Decimal | None = Field(default=None, ge=Decimal("0"))
    percentage_of_revenue: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))

    @model_validator(mode="after")
    def _cost_matches_model(self) -> _AssignmentCostChanges:
        required = {
            "hourly": self.hourly_cost,
            "fixed_monthly": self.monthly_cost,
            "percentage": self.percentage_of_revenue,
        }[self.cost_model]
        if required is None:
            raise ValueError(f"cost model '{self.cost_model}' requires its cost value")
        return self


class AddAssignmentChanges(_AssignmentCostChanges):
    colleague_id: UUID
    role_on_engagement: str = Field(min_length=1)


class UpdateAssignmentChanges(_AssignmentCostChanges):
    engagement_assignment_id: UUID


class RemoveAssignmentChanges(_ProposedChanges):
    engagement_assignment_id: UUID


ProposedChanges = Union[
    AddServiceChanges,
    UpdateServicePriceChanges,
    DeactivateServiceChanges,
    AddAssignmentChanges,
    UpdateAssignmentChanges,
    RemoveAssignmentChanges,
]

PROPOSED_CHANGES_MODELS: dict[str, type[_ProposedChanges]] = {
    "add_service": AddServiceChanges,
    "update_service_price": UpdateServicePriceChanges,
    "deactivate_service": DeactivateServiceChanges,
    "add_assignment": AddAssignmentChanges,
    "update_assignment": UpdateAssignmentChanges,
    "remove_assignment": RemoveAssignmentChanges,
}


class ModificationRequestCreate(BaseModel):
    engagement_id: UUID
    request_type: RequestType
    proposed_changes: dict[str, Any]
    effective_from: date | None = None
    upsold_by_id: UUID | None = None
    commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    note: str | None = None


class ModificationRequestUpdate(BaseModel):
    proposed_changes: dict[str, Any] | None = None
    effective_from: date | None = None
    upsold_by_id: UUID | None = None
    commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    note: str | None = None


class RejectModificationRequest(BaseModel):
    reason: str | None = None


class AcceptModificationRequest(BaseModel):
    client_email: str


class EmailSentCreate(BaseModel):
    recipient: str = Field(pattern=EMAIL_PATTERN)
    subject: str = Field(min_length=1)
    sender: str = Field(min_length=1)


class EmailSentRead(BaseModel):
    recipient: str
    subject: str
    sender: str
    sent_at: datetime
    sent_by: str | None


class ModificationRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    engagement_id: UUID
    request_type: RequestType | str
    status: ModificationStatus | str
    proposed_changes: dict[str, Any]
    engagement_service_id: UUID | None
    engagement_assignment_id: UUID | None
    effective_from: date | None
    upsold_by_id: UUID | None
    commission_percent: Decimal
    requested_by: str | None
    requested_at: datetime
    note: str | None
    reviewed_by: str | None
    reviewed_at: datetime | None
    rejection_reason: str | None
    token: str | None
    token_expiry: datetime | None
    client_email: str | None
    client_approved_at: datetime | None
    emails_sent: list[EmailSentRead] = Field(default_factory=list)
    engagement_name: str
    client_id: UUID
    client_name: str
    client_brand_name: str | None
    upsold_by_name: str | None
    created_at: datetime
    updated_at: datetime
    version: int


class ClientConfirmationRead(BaseModel):
    modification_request_id: UUID
    request_type: RequestType | str
    status: ModificationStatus | str
    engagement_name: str
    client_name: str
    client_brand_name: str | None
    change_summary: str
    proposed_changes: dict[str, Any]
    effective_from: date | None
    currency: str | None
    new_monthly_price: Decimal | None
    price_difference: Decimal | None
    prorated_first_month: Decimal | None
    valid_until: datetime | None
    is_expired: bool
    client_email: str | None
    client_approved_at: datetime | None


class AppliedModificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    modification_request_id: UUID
    engagement_id: UUID
    engagement_name: str
    client_id: UUID
    client_name: str
    client_brand_name: str | None
    request_type: RequestType | str
    proposed_changes: dict[str, Any]
    client_email: str | None
    client_approved_at: datetime | None
    applied_at: datetime
    applied_by: str | None
    applied_month: str
    effective_from: date | None
    upsold_by_id: UUID | None
    upsold_by_name: str | None
    commission_percent: Decimal
    note: str | None
