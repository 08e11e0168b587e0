from __future__ import annotations

import os
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from app.business.engagements.models import Client, Colleague, Engagement, EngagementService
from app.core.auth import AuthUser, get_current_user as auth_get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.otel import setup_inmemory_otel


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


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="user-1", roles=["user"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auth_get_current_user] = override_auth_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _seed(db_session: Session) -> tuple[Engagement, Colleague, EngagementService]:
    customer = Client(name="OTel Client", brand_name="OTel")
    colleague = Colleague(full_name="Olive Ops")
    db_session.add_all([customer, colleague])
    db_session.flush()
    engagement = Engagement(client_id=customer.id, name="OTel Engagement")
    db_session.add(engagement)
    db_session.flush()
    service = EngagementService(
        engagement_id=engagement.id,
        name="Analytics",
        price=Decimal("400"),
        currency="EUR",
        billing_type="recurring",
    )
    db_session.add(service)
    db_session.commit()
    return engagement, colleague, service


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/modifications", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_apply_span_contains_modification_and_correlation(
    client: TestClient,
    db_session: Session,
    span_exporter: InMemorySpanExporter,
) -> None:
    engagement, colleague, _ = _seed(db_session)
    created = client.post(
        "/modifications",
        json={
            "engagement_id": str(engagement.id),
            "request_type": "add_assignment",
            "proposed_changes": {
                "colleague_id": str(colleague.id),
                "role_on_engagement": "Data analyst",
                "cost_model": "percentage",
                "percentage_of_revenue": "5",
            },
        },
    )
    assert created.status_code == 201
    modification_id = created.json()["id"]
    assert client.post(f"/modifications/{modification_id}/approve").status_code == 200

    applied = client.post(f"/modifications/{modification_id}/apply", headers={"X-Correlation-Id": "otel-apply-1"})
    assert applied.status_code == 200

    apply_spans = [span for span in span_exporter.get_finished_spans() if span.name == "modification.apply"]
    assert apply_spans
    assert any(
        span.attributes.get("modification_id") == modification_id
        and span.attributes.get("request_type") == "add_assignment"
        and span.attributes.get("correlation_id") == "otel-apply-1"
        for span in apply_spans
    )


def test_public_confirmation_span_masks_token(
    client: TestClient,
    db_session: Session,
    span_exporter: InMemorySpanExporter,
) -> None:
    engagement, _, service = _seed(db_session)
    created = client.post(
        "/modifications",
        json={
            "engagement_id": str(engagement.id),
            "request_type": "deactivate_service",
            "proposed_changes": {"engagement_service_id": str(service.id)},
        },
    )
    assert created.status_code == 201
    token = client.post(f"/modifications/{created.json()['id']}/approve").json()["token"]
    span_exporter.clear()

    accepted = client.post(f"/public/modifications/{token}/accept", json={"client_email": "ops@otel.example"})
    assert accepted.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert any(span.name == "modification.client_accept" for span in spans)
    assert all(token not in str(span.attributes.get("http.target", "")) for span in spans)
