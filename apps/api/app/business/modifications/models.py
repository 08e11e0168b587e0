from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UtcDateTime, utcnow
from app.core.errors import InvalidStateError


class ModificationRequest(Base):
    __tablename__ = "engagement_modification_request"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("engagement.id"), nullable=False)
    request_type: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending", server_default="pending")
    proposed_changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    engagement_service_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    engagement_assignment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    effective_from: Mapped[date | None] = mapped_column(Date(), nullable=True)
    upsold_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    requested_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)
    note: Mapped[str | None] = mapped_column(Text(), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text(), nullable=True)
    token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    token_expiry: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    client_approved_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    emails_sent: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    engagement_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_brand_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    upsold_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("token", name="uq_engagement_modification_request_token"),
        Index("ix_engagement_modification_request_engagement", "engagement_id", "requested_at"),
        Index("ix_engagement_modification_request_status", "status"),
    )


class AppliedModification(Base):
    __tablename__ = "applied_modification_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    modification_request_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    engagement_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_brand_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    request_type: Mapped[str] = mapped_column(String(64), nullable=False)
    proposed_changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    client_approved_at: Mapped[datetime | None] = mapped_column(UtcDateTime(), nullable=True)
    applied_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    applied_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    applied_month: Mapped[str] = mapped_column(String(7), nullable=False)
    effective_from: Mapped[date | None] = mapped_column(Date(), nullable=True)
    upsold_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    upsold_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    note: Mapped[str | None] = mapped_column(Text(), nullable=True)

    __table_args__ = (
        UniqueConstraint("modification_request_id", name="uq_applied_modification_history_request"),
        Index("ix_applied_modification_history_month", "applied_month"),
        Index("ix_applied_modification_history_engagement", "engagement_id"),
        Index("ix_applied_modification_history_client", "client_id"),
    )


@event.listens_for(AppliedModification, "before_update")
def _reject_history_update(mapper, connection, target: AppliedModification) -> None:
    raise InvalidStateError("applied modification history entries are immutable")
