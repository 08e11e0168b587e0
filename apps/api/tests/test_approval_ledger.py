from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.commissions.ledger import ApprovalLedgerService
from app.business.commissions.models import CommissionApproval
from app.core.database import Base
from app.core.errors import ValidationError


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def test_unapproved_item_has_no_status(db_session: Session) -> None:
    assert ApprovalLedgerService().get_status(db_session, "extra_work", uuid.uuid4()) is None


def test_approve_upserts_single_record_per_item(db_session: Session) -> None:
    times = iter(
        [
            datetime(2025, 3, 1, 10, tzinfo=timezone.utc),
            datetime(2025, 3, 2, 11, tzinfo=timezone.utc),
        ]
    )
    ledger = ApprovalLedgerService(clock=lambda: next(times))
    item_id = uuid.uuid4()

    first = ledger.approve(db_session, "extra_work", item_id, "anna")
    second = ledger.approve(db_session, "extra_work", item_id, "  bob  ")

    assert first.approved_by == "anna"
    assert second.approved_by == "bob"
    assert second.approved_at == datetime(2025, 3, 2, 11, tzinfo=timezone.utc)
    rows = db_session.scalars(select(CommissionApproval)).all()
    assert len(rows) == 1

    status = ledger.get_status(db_session, "extra_work", item_id)
    assert status is not None
    assert status.approved is True
    assert status.approved_by == "bob"


def test_same_item_id_is_tracked_separately_per_kind(db_session: Session) -> None:
    ledger = ApprovalLedgerService()
    item_id = uuid.uuid4()

    ledger.approve(db_session, "extra_work", item_id, "anna")

    assert ledger.get_status(db_session, "extra_work", item_id) is not None
    assert ledger.get_status(db_session, "engagement_service", item_id) is None


def test_revoke_is_idempotent(db_session: Session) -> None:
    ledger = ApprovalLedgerService()
    item_id = uuid.uuid4()
    ledger.approve(db_session, "engagement_service", item_id, "anna")

    ledger.revoke(db_session, "engagement_service", item_id)
    ledger.revoke(db_session, "engagement_service", item_id)

    assert ledger.get_status(db_session, "engagement_service", item_id) is None


def test_approve_requires_approver_and_known_kind(db_session: Session) -> None:
    ledger = ApprovalLedgerService()

    with pytest.raises(ValidationError):
        ledger.approve(db_session, "extra_work", uuid.uuid4(), "   ")
    with pytest.raises(ValidationError):
        ledger.approve(db_session, "subscription", uuid.uuid4(), "anna")
    with pytest.raises(ValidationError):
        ledger.get_status(db_session, "subscription", uuid.uuid4())
