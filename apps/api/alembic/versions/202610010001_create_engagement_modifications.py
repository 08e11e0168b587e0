"""create engagements, modification requests, history and commission approvals

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610010001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "client",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("brand_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "colleague",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "engagement",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["client.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_engagement_client", "engagement", ["client_id"], unique=False)

    op.create_table(
        "engagement_service",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("service_id", sa.String(length=128), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("billing_type", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("selected_tier", sa.String(length=32), nullable=True),
        sa.Column("max_credits", sa.Integer(), nullable=True),
        sa.Column("price_per_credit", sa.Numeric(18, 2), nullable=True),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("upsold_by_id", sa.Uuid(), nullable=True),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagement.id"]),
        sa.ForeignKeyConstraint(["upsold_by_id"], ["colleague.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_engagement_service_engagement", "engagement_service", ["engagement_id"], unique=False)
    op.create_index("ix_engagement_service_seller", "engagement_service", ["upsold_by_id"], unique=False)

    op.create_table(
        "engagement_assignment",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("colleague_id", sa.Uuid(), nullable=False),
        sa.Column("role_on_engagement", sa.String(length=128), nullable=False),
        sa.Column("cost_model", sa.String(length=32), nullable=False),
        sa.Column("hourly_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("monthly_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("percentage_of_revenue", sa.Numeric(5, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagement.id"]),
        sa.ForeignKeyConstraint(["colleague_id"], ["colleague.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_engagement_assignment_engagement", "engagement_assignment", ["engagement_id"], unique=False)

    op.create_table(
        "extra_work",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("upsold_by_id", sa.Uuid(), nullable=True),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["client.id"]),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagement.id"]),
        sa.ForeignKeyConstraint(["upsold_by_id"], ["colleague.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_extra_work_client", "extra_work", ["client_id"], unique=False)
    op.create_index("ix_extra_work_work_date", "extra_work", ["work_date"], unique=False)

    op.create_table(
        "engagement_modification_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("proposed_changes", sa.JSON(), nullable=False),
        sa.Column("engagement_service_id", sa.Uuid(), nullable=True),
        sa.Column("engagement_assignment_id", sa.Uuid(), nullable=True),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("upsold_by_id", sa.Uuid(), nullable=True),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("requested_by", sa.String(length=128), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(length=128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("token", sa.String(length=64), nullable=True),
        sa.Column("token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_email", sa.String(length=320), nullable=True),
        sa.Column("client_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("emails_sent", sa.JSON(), nullable=False),
        sa.Column("engagement_name", sa.String(length=255), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("client_brand_name", sa.String(length=255), nullable=True),
        sa.Column("upsold_by_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["engagement_id"], ["engagement.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token", name="uq_engagement_modification_request_token"),
    )
    op.create_index(
        "ix_engagement_modification_request_engagement",
        "engagement_modification_request",
        ["engagement_id", "requested_at"],
        unique=False,
    )
    op.create_index(
        "ix_engagement_modification_request_status",
        "engagement_modification_request",
        ["status"],
        unique=False,
    )

    op.create_table(
        "applied_modification_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("modification_request_id", sa.Uuid(), nullable=False),
        sa.Column("engagement_id", sa.Uuid(), nullable=False),
        sa.Column("engagement_name", sa.String(length=255), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("client_brand_name", sa.String(length=255), nullable=True),
        sa.Column("request_type", sa.String(length=64), nullable=False),
        sa.Column("proposed_changes", sa.JSON(), nullable=False),
        sa.Column("client_email", sa.String(length=320), nullable=True),
        sa.Column("client_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("applied_by", sa.String(length=128), nullable=True),
        sa.Column("applied_month", sa.String(length=7), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("upsold_by_id", sa.Uuid(), nullable=True),
        sa.Column("upsold_by_name", sa.String(length=255), nullable=True),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("modification_request_id", name="uq_applied_modification_history_request"),
    )
    op.create_index("ix_applied_modification_history_month", "applied_modification_history", ["applied_month"], unique=False)
    op.create_index(
        "ix_applied_modification_history_engagement",
        "applied_modification_history",
        ["engagement_id"],
        unique=False,
    )
    op.create_index("ix_applied_modification_history_client", "applied_modification_history", ["client_id"], unique=False)

    op.create_table(
        "commission_approval",
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_by", sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint("kind", "item_id"),
    )


def downgrade() -> None:
    op.drop_table("commission_approval")

    op.drop_index("ix_applied_modification_history_client", table_name="applied_modification_history")
    op.drop_index("ix_applied_modification_history_engagement", table_name="applied_modification_history")
    op.drop_index("ix_applied_modification_history_month", table_name="applied_modification_history")
    op.drop_table("applied_modification_history")

    op.drop_index("ix_engagement_modification_request_status", table_name="engagement_modification_request")
    op.drop_index("ix_engagement_modification_request_engagement", table_name="engagement_modification_request")
    op.drop_table("engagement_modification_request")

    op.drop_index("ix_extra_work_work_date", table_name="extra_work")
    op.drop_index("ix_extra_work_client", table_name="extra_work")
    op.drop_table("extra_work")

    op.drop_index("ix_engagement_assignment_engagement", table_name="engagement_assignment")
    op.drop_table("engagement_assignment")

    op.drop_index("ix_engagement_service_seller", table_name="engagement_service")
    op.drop_index("ix_engagement_service_engagement", table_name="engagement_service")
    op.drop_table("engagement_service")

    op.drop_index("ix_engagement_client", table_name="engagement")
    op.drop_table("engagement")
    op.drop_table("colleague")
    op.drop_table("client")
