from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, UtcDateTime, utcnow


class Client(Base):
    __tablename__ = "client"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)

    engagements: Mapped[list[Engagement]] = relationship(
        "app.business.engagements.models.Engagement",
        back_populates="client",
    )


class Colleague(Base):
    __tablename__ = "colleague"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)


class Engagement(Base):
    __tablename__ = "engagement"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active", server_default="active")
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)

    client: Mapped[Client] = relationship("app.business.engagements.models.Client", back_populates="engagements")
    services: Mapped[list[EngagementService]] = relationship(
        "app.business.engagements.models.EngagementService",
        back_populates="engagement",
    )
    assignments: Mapped[list[EngagementAssignment]] = relationship(
        "app.business.engagements.models.EngagementAssignment",
        back_populates="engagement",
    )

    __table_args__ = (Index("ix_engagement_client", "client_id"),)


class EngagementService(Base):
    __tablename__ = "engagement_service"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("engagement.id"), nullable=False)
    service_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    billing_type: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    selected_tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    max_credits: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_per_credit: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    effective_from: Mapped[date | None] = mapped_column(Date(), nullable=True)
    upsold_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey("colleague.id"), nullable=True)
    commission_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    engagement: Mapped[Engagement] = relationship("app.business.engagements.models.Engagement", back_populates="services")

    __table_args__ = (
        Index("ix_engagement_service_engagement", "engagement_id"),
        Index("ix_engagement_service_seller", "upsold_by_id"),
    )


class EngagementAssignment(Base):
    __tablename__ = "engagement_assignment"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    engagement_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("engagement.id"), nullable=False)
    colleague_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("colleague.id"), nullable=False)
    role_on_engagement: Mapped[str] = mapped_column(String(128), nullable=False)
    cost_model: Mapped[str] = mapped_column(String(32), nullable=False)
    hourly_cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    monthly_cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    percentage_of_revenue: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    start_date: Mapped[date | None] = mapped_column(Date(), nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    engagement: Mapped[Engagement] = relationship("app.business.engagements.models.Engagement", back_populates="assignments")

    __table_args__ = (Index("ix_engagement_assignment_engagement", "engagement_id"),)


class ExtraWork(Base):
    __tablename__ = "extra_work"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False)
    engagement_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey("engagement.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    work_date: Mapped[date] = mapped_column(Date(), nullable=False)
    upsold_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey("colleague.id"), nullable=True)
    commission_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_extra_work_client", "client_id"),
        Index("ix_extra_work_work_date", "work_date"),
    )
