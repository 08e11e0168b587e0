from __future__ import annotations

import uuid
from collections.abc import Generator
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.engagements.models import (
    Client,
    Colleague,
    Engagement,
    EngagementAssignment,
    EngagementService,
)
from app.business.modifications.confirmation import ClientConfirmationService
from app.business.modifications.models import AppliedModification, ModificationRequest
from app.business.modifications.schemas import (
    EmailSentCreate,
    ModificationRequestCreate,
    ModificationRequestUpdate,
)
from app.business.modifications.service import ModificationService
from app.core.database import Base
from app.core.errors import ConcurrencyConflictError, InvalidStateError, NotFoundError, ValidationError


NOW = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)


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


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class _Seed:
    client: Client
    engagement: Engagement
    seller: Colleague
    designer: Colleague
    service: EngagementService
    assignment: EngagementAssignment


def _seed(session: Session) -> _Seed:
    client = Client(name="Northwind Trading", brand_name="Northwind")
    seller = Colleague(full_name="Sam Seller")
    designer = Colleague(full_name="Dana Designer")
    session.add_all([client, seller, designer])
    session.flush()

    engagement = Engagement(client_id=client.id, name="Northwind Retainer")
    session.add(engagement)
    session.flush()

    service = EngagementService(
        engagement_id=engagement.id,
        name="SEO",
        price=Decimal("1000"),
        currency="EUR",
        billing_type="recurring",
    )
    assignment = EngagementAssignment(
        engagement_id=engagement.id,
        colleague_id=designer.id,
        role_on_engagement="Designer",
        cost_model="hourly",
        hourly_cost=Decimal("40"),
        start_date=date(2024, 1, 1),
    )
    session.add_all([service, assignment])
    session.commit()
    return _Seed(client, engagement, seller, designer, service, assignment)


def _service(clock: _Clock | None = None, **kwargs) -> ModificationService:
    return ModificationService(clock=clock or _Clock(NOW), **kwargs)


def _price_change(seed: _Seed, new_price: str = "1200", **extra) -> ModificationRequestCreate:
    return ModificationRequestCreate(
        engagement_id=seed.engagement.id,
        request_type="update_service_price",
        proposed_changes={"engagement_service_id": str(seed.service.id), "new_price": new_price},
        **extra,
    )


def _add_assignment(seed: _Seed) -> ModificationRequestCreate:
    return ModificationRequestCreate(
        engagement_id=seed.engagement.id,
        request_type="add_assignment",
        proposed_changes={
            "colleague_id": str(seed.seller.id),
            "role_on_engagement": "Strategist",
            "cost_model": "fixed_monthly",
            "monthly_cost": "800",
        },
        effective_from=date(2025, 4, 1),
    )


def test_create_validates_and_denormalizes_display_fields(db_session: Session) -> None:
    seed = _seed(db_session)

    created = _service().create(
        db_session,
        _price_change(seed, upsold_by_id=seed.seller.id, note="Scope grew"),
        requested_by="alice",
    )

    assert created.status == "pending"
    assert created.engagement_name == "Northwind Retainer"
    assert created.client_id == seed.client.id
    assert created.client_name == "Northwind Trading"
    assert created.client_brand_name == "Northwind"
    assert created.upsold_by_name == "Sam Seller"
    assert created.commission_percent == Decimal("10")
    assert created.engagement_service_id == seed.service.id
    assert created.engagement_assignment_id is None
    assert Decimal(created.proposed_changes["old_price"]) == Decimal("1000")
    assert created.requested_by == "alice"
    assert created.requested_at == NOW
    assert created.token is None
    assert created.emails_sent == []
    assert created.version == 1


def test_create_rejects_payload_that_does_not_match_request_type(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()

    with pytest.raises(ValidationError):
        service.create(
            db_session,
            ModificationRequestCreate(
                engagement_id=seed.engagement.id,
                request_type="add_service",
                proposed_changes={"engagement_service_id": str(seed.service.id), "new_price": "10"},
            ),
        )
    with pytest.raises(ValidationError):
        service.create(
            db_session,
            ModificationRequestCreate(
                engagement_id=seed.engagement.id,
                request_type="update_assignment",
                proposed_changes={"engagement_assignment_id": str(seed.assignment.id), "cost_model": "hourly"},
            ),
        )

    assert db_session.scalars(select(ModificationRequest)).all() == []


def test_create_for_unknown_engagement_or_service_is_not_found(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()

    with pytest.raises(NotFoundError):
        service.create(
            db_session,
            ModificationRequestCreate(
                engagement_id=uuid.uuid4(),
                request_type="deactivate_service",
                proposed_changes={"engagement_service_id": str(seed.service.id)},
            ),
        )
    with pytest.raises(NotFoundError):
        service.create(
            db_session,
            ModificationRequestCreate(
                engagement_id=seed.engagement.id,
                request_type="deactivate_service",
                proposed_changes={"engagement_service_id": str(uuid.uuid4())},
            ),
        )


def test_approve_client_facing_issues_unique_expiring_token(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _price_change(seed))

    approved = service.approve(db_session, created.id, reviewer="rita")

    assert approved.status == "approved"
    assert approved.reviewed_by == "rita"
    assert approved.reviewed_at == NOW
    assert approved.token is not None
    assert len(approved.token) >= 22
    assert approved.token_expiry == NOW + timedelta(days=14)


def test_approve_retries_token_on_collision(db_session: Session) -> None:
    seed = _seed(db_session)
    tokens = iter(["duplicate-token", "duplicate-token", "fresh-token"])
    service = _service(token_factory=lambda: next(tokens))
    first = service.create(db_session, _price_change(seed, "1100"))
    second = service.create(db_session, _price_change(seed, "1300"))

    assert service.approve(db_session, first.id, "rita").token == "duplicate-token"
    assert service.approve(db_session, second.id, "rita").token == "fresh-token"


def test_approve_team_change_has_no_token(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _add_assignment(seed))

    approved = service.approve(db_session, created.id, "rita")

    assert approved.status == "approved"
    assert approved.token is None
    assert approved.token_expiry is None


def test_double_approve_is_invalid(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _price_change(seed))
    service.approve(db_session, created.id, "rita")

    with pytest.raises(InvalidStateError):
        service.approve(db_session, created.id, "rita")


def test_reject_requires_reason_and_pending_status(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    pending = service.create(db_session, _price_change(seed))
    approved = service.create(db_session, _price_change(seed, "1500"))
    service.approve(db_session, approved.id, "rita")

    with pytest.raises(ValidationError):
        service.reject(db_session, pending.id, "rita", "   ")
    assert service.get(db_session, pending.id).status == "pending"

    with pytest.raises(InvalidStateError):
        service.reject(db_session, approved.id, "rita", "Changed our minds")

    rejected = service.reject(db_session, pending.id, "rita", " Budget frozen ")
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Budget frozen"
    assert rejected.token is None

    with pytest.raises(InvalidStateError):
        service.approve(db_session, pending.id, "rita")


def test_update_allowed_while_pending_or_approved_and_revalidates(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _price_change(seed))

    updated = service.update(
        db_session,
        created.id,
        ModificationRequestUpdate(
            proposed_changes={"engagement_service_id": str(seed.service.id), "new_price": "1250"},
            note="Adjusted after call",
            commission_percent=Decimal("12.5"),
        ),
    )
    assert Decimal(updated.proposed_changes["new_price"]) == Decimal("1250")
    assert updated.note == "Adjusted after call"
    assert updated.commission_percent == Decimal("12.5")
    assert updated.version == 2

    with pytest.raises(ValidationError):
        service.update(db_session, created.id, ModificationRequestUpdate(proposed_changes={"new_price": "1"}))

    service.approve(db_session, created.id, "rita")
    assert service.update(db_session, created.id, ModificationRequestUpdate(note="still editable")).note == "still editable"

    rejected = service.create(db_session, _price_change(seed))
    service.reject(db_session, rejected.id, "rita", "no")
    with pytest.raises(InvalidStateError):
        service.update(db_session, rejected.id, ModificationRequestUpdate(note="too late"))


def test_delete_allowed_until_client_approval(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    pending = service.create(db_session, _price_change(seed))
    rejected = service.create(db_session, _price_change(seed))
    service.reject(db_session, rejected.id, "rita", "duplicate")

    service.delete(db_session, pending.id)
    service.delete(db_session, rejected.id)

    with pytest.raises(NotFoundError):
        service.get(db_session, pending.id)
    with pytest.raises(NotFoundError):
        service.delete(db_session, rejected.id)


def test_delete_applied_request_is_invalid(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _add_assignment(seed))
    service.approve(db_session, created.id, "rita")
    service.apply(db_session, created.id, "ops")

    with pytest.raises(InvalidStateError):
        service.delete(db_session, created.id)


def test_apply_team_change_from_approved_writes_history_once(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(db_session, _add_assignment(seed))

    with pytest.raises(InvalidStateError):
        service.apply(db_session, created.id, "ops")

    service.approve(db_session, created.id, "rita")
    applied = service.apply(db_session, created.id, "ops")

    assert applied.status == "applied"
    assignments = db_session.scalars(
        select(EngagementAssignment).where(EngagementAssignment.colleague_id == seed.seller.id)
    ).all()
    assert len(assignments) == 1
    assert assignments[0].cost_model == "fixed_monthly"
    assert assignments[0].monthly_cost == Decimal("800")
    assert assignments[0].hourly_cost is None
    assert assignments[0].start_date == date(2025, 4, 1)

    with pytest.raises(InvalidStateError):
        service.apply(db_session, created.id, "ops")

    history = db_session.scalars(select(AppliedModification)).all()
    assert len(history) == 1
    assert history[0].modification_request_id == created.id
    assert history[0].applied_by == "ops"
    assert history[0].applied_month == "2025-03"


def test_client_facing_change_requires_client_approval_before_apply(db_session: Session) -> None:
    seed = _seed(db_session)
    clock = _Clock(NOW)
    service = _service(clock)
    gateway = ClientConfirmationService(clock=clock)
    created = service.create(db_session, _price_change(seed))
    approved = service.approve(db_session, created.id, "rita")

    with pytest.raises(InvalidStateError):
        service.apply(db_session, created.id, "ops")

    clock.advance(days=2)
    gateway.accept(db_session, approved.token, "buyer@northwind.example")
    applied = service.apply(db_session, created.id, "ops")

    assert applied.status == "applied"
    db_session.refresh(seed.service)
    assert seed.service.price == Decimal("1200")
    entry = db_session.scalars(select(AppliedModification)).one()
    assert entry.client_email == "buyer@northwind.example"
    assert entry.client_approved_at == NOW + timedelta(days=2)


def test_apply_add_service_carries_effective_date_and_commission(db_session: Session) -> None:
    seed = _seed(db_session)
    clock = _Clock(NOW)
    service = _service(clock)
    gateway = ClientConfirmationService(clock=clock)
    created = service.create(
        db_session,
        ModificationRequestCreate(
            engagement_id=seed.engagement.id,
            request_type="add_service",
            proposed_changes={
                "service_id": "ppc-pro",
                "name": "PPC Pro",
                "price": "2500",
                "currency": "EUR",
                "billing_type": "recurring",
                "selected_tier": "pro",
            },
            effective_from=date(2025, 3, 16),
            upsold_by_id=seed.seller.id,
            commission_percent=Decimal("15"),
        ),
    )
    approved = service.approve(db_session, created.id, "rita")
    gateway.accept(db_session, approved.token, "buyer@northwind.example")

    service.apply(db_session, created.id, "ops")

    added = db_session.scalars(select(EngagementService).where(EngagementService.name == "PPC Pro")).one()
    assert added.engagement_id == seed.engagement.id
    assert added.effective_from == date(2025, 3, 16)
    assert added.upsold_by_id == seed.seller.id
    assert added.commission_percent == Decimal("15")
    assert added.is_active is True
    assert added.selected_tier == "pro"


def test_apply_remove_assignment_closes_it(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(
        db_session,
        ModificationRequestCreate(
            engagement_id=seed.engagement.id,
            request_type="remove_assignment",
            proposed_changes={"engagement_assignment_id": str(seed.assignment.id)},
        ),
    )
    assert created.engagement_assignment_id == seed.assignment.id
    service.approve(db_session, created.id, "rita")

    service.apply(db_session, created.id, "ops")

    db_session.refresh(seed.assignment)
    assert seed.assignment.is_active is False
    assert seed.assignment.end_date == NOW.date()


def test_failed_apply_leaves_request_and_history_untouched(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    created = service.create(
        db_session,
        ModificationRequestCreate(
            engagement_id=seed.engagement.id,
            request_type="update_assignment",
            proposed_changes={
                "engagement_assignment_id": str(seed.assignment.id),
                "cost_model": "hourly",
                "hourly_cost": "55",
            },
        ),
    )
    service.approve(db_session, created.id, "rita")
    seed.assignment.is_active = False
    db_session.commit()

    with pytest.raises(InvalidStateError):
        service.apply(db_session, created.id, "ops")

    assert service.get(db_session, created.id).status == "approved"
    assert db_session.scalars(select(AppliedModification)).all() == []


def test_record_email_sent_appends_to_log(db_session: Session) -> None:
    seed = _seed(db_session)
    clock = _Clock(NOW)
    service = _service(clock)
    created = service.create(db_session, _price_change(seed))

    email = EmailSentCreate(recipient="buyer@northwind.example", subject="Please confirm", sender="am@agency.example")
    with pytest.raises(InvalidStateError):
        service.record_email_sent(db_session, created.id, email)

    service.approve(db_session, created.id, "rita")
    service.record_email_sent(db_session, created.id, email, sent_by="rita")
    clock.advance(hours=1)
    logged = service.record_email_sent(db_session, created.id, email.model_copy(update={"subject": "Reminder"}), sent_by="rita")

    assert [entry.subject for entry in logged.emails_sent] == ["Please confirm", "Reminder"]
    assert logged.emails_sent[1].sent_at == NOW + timedelta(hours=1)
    assert logged.emails_sent[0].sent_by == "rita"

    team_change = service.create(db_session, _add_assignment(seed))
    service.approve(db_session, team_change.id, "rita")
    with pytest.raises(InvalidStateError):
        service.record_email_sent(db_session, team_change.id, email)


def test_list_filters_and_orders_newest_first(db_session: Session) -> None:
    seed = _seed(db_session)
    clock = _Clock(NOW)
    service = _service(clock)
    first = service.create(db_session, _price_change(seed))
    clock.advance(minutes=5)
    second = service.create(db_session, _add_assignment(seed))
    clock.advance(minutes=5)
    third = service.create(db_session, _price_change(seed, "900"))
    service.approve(db_session, second.id, "rita")

    assert [item.id for item in service.list(db_session)] == [third.id, second.id, first.id]
    assert [item.id for item in service.list_pending(db_session)] == [third.id, first.id]
    assert [item.id for item in service.list(db_session, status="approved")] == [second.id]
    assert service.list(db_session, engagement_id=uuid.uuid4()) == []
    with pytest.raises(ValidationError):
        service.list(db_session, status="archived")


def test_unknown_id_is_not_found_for_every_operation(db_session: Session) -> None:
    service = _service()
    missing = uuid.uuid4()

    with pytest.raises(NotFoundError):
        service.get(db_session, missing)
    with pytest.raises(NotFoundError):
        service.approve(db_session, missing, "rita")
    with pytest.raises(NotFoundError):
        service.reject(db_session, missing, "rita", "reason")
    with pytest.raises(NotFoundError):
        service.reject(db_session, missing, "rita", "")
    with pytest.raises(NotFoundError):
        service.update(db_session, missing, ModificationRequestUpdate(note="x"))
    with pytest.raises(NotFoundError):
        service.delete(db_session, missing)
    with pytest.raises(NotFoundError):
        service.apply(db_session, missing, "ops")


def test_token_present_only_while_awaiting_or_after_client_approval(db_session: Session) -> None:
    seed = _seed(db_session)
    service = _service()
    gateway = ClientConfirmationService(clock=lambda: NOW)

    pending = service.create(db_session, _price_change(seed))
    rejected = service.create(db_session, _price_change(seed))
    service.reject(db_session, rejected.id, "rita", "no")
    awaiting = service.create(db_session, _price_change(seed))
    service.approve(db_session, awaiting.id, "rita")
    confirmed = service.create(db_session, _price_change(seed))
    token = service.approve(db_session, confirmed.id, "rita").token
    gateway.accept(db_session, token, "buyer@northwind.example")
    applied = service.create(db_session, _price_change(seed))
    token = service.approve(db_session, applied.id, "rita").token
    gateway.accept(db_session, token, "buyer@northwind.example")
    service.apply(db_session, applied.id, "ops")

    for item in service.list(db_session):
        expects_token = item.status in {"approved", "client_approved", "applied"}
        assert (item.token is not None) is expects_token, item.status
        if expects_token:
            assert item.token_expiry is not None
    assert {item.id for item in service.list(db_session) if item.token is None} == {pending.id, rejected.id}


def test_concurrent_approve_loses_with_conflict(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'modifications.db'}")
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    service = _service()

    with SessionLocal() as setup_session:
        seed = _seed(setup_session)
        created = service.create(setup_session, _price_change(seed))

    first = SessionLocal()
    second = SessionLocal()
    try:
        # The loser read the row before the winner committed and still holds it.
        stale = service.repository.get(second, created.id)
        assert stale is not None
        assert stale.status == "pending"

        winner = service.approve(first, created.id, "rita")
        with pytest.raises(ConcurrencyConflictError):
            service.approve(second, created.id, "victor")

        reloaded = service.get(second, created.id)
        assert reloaded.status == "approved"
        assert reloaded.reviewed_by == "rita"
        assert reloaded.token == winner.token
        assert reloaded.version == 2
    finally:
        first.close()
        second.close()
        engine.dispose()


def test_approve_after_other_session_committed_is_invalid_state(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'modifications.db'}")
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    service = _service()

    with SessionLocal() as setup_session:
        seed = _seed(setup_session)
        created = service.create(setup_session, _price_change(seed))

    first = SessionLocal()
    second = SessionLocal()
    try:
        service.approve(first, created.id, "rita")

        with pytest.raises(InvalidStateError):
            service.approve(second, created.id, "victor")

        assert service.get(second, created.id).reviewed_by == "rita"
    finally:
        first.close()
        second.close()
        engine.dispose()
