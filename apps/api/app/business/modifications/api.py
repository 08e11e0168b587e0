from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.business.modifications.confirmation import client_confirmation_service
from app.business.modifications.history import modification_history_service
from app.business.modifications.schemas import (
    AcceptModificationRequest,
    AppliedModificationRead,
    ClientConfirmationRead,
    EmailSentCreate,
    ModificationRequestCreate,
    ModificationRequestRead,
    ModificationRequestUpdate,
    ModificationStatus,
    RejectModificationRequest,
)
from app.business.modifications.service import modification_service
from app.core.auth import AuthUser, get_current_user as get_auth_user
from app.core.database import get_db
from app.core.errors import ValidationError


router = APIRouter(prefix="/modifications", tags=["modifications"])
public_router = APIRouter(prefix="/public/modifications", tags=["client-confirmation"])
history_router = APIRouter(prefix="/modification-history", tags=["modification-history"])


@router.post("", response_model=ModificationRequestRead, status_code=status.HTTP_201_CREATED)
def create_modification(
    payload: ModificationRequestCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> ModificationRequestRead:
    return modification_service.create(db, payload, requested_by=user.actor)


@router.get("", response_model=list[ModificationRequestRead])
def list_modifications(
    status_filter: ModificationStatus | None = Query(default=None, alias="status"),
    engagement_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ModificationRequestRead]:
    return modification_service.list(db, status=status_filter, engagement_id=engagement_id)


@router.get("/pending", response_model=list[ModificationRequestRead])
def list_pending_modifications(db: Session = Depends(get_db)) -> list[ModificationRequestRead]:
    return modification_service.list_pending(db)


@router.get("/{modification_id}", response_model=ModificationRequestRead)
def get_modification(modification_id: uuid.UUID, db: Session = Depends(get_db)) -> ModificationRequestRead:
    return modification_service.get(db, modification_id)


@router.patch("/{modification_id}", response_model=ModificationRequestRead)
def update_modification(
    modification_id: uuid.UUID,
    payload: ModificationRequestUpdate,
    db: Session = Depends(get_db),
) -> ModificationRequestRead:
    return modification_service.update(db, modification_id, payload)


@router.delete("/{modification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_modification(modification_id: uuid.UUID, db: Session = Depends(get_db)) -> Response:
    modification_service.delete(db, modification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{modification_id}/approve", response_model=ModificationRequestRead)
def approve_modification(
    modification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> ModificationRequestRead:
    return modification_service.approve(db, modification_id, reviewer=user.actor)


@router.post("/{modification_id}/reject", response_model=ModificationRequestRead)
def reject_modification(
    modification_id: uuid.UUID,
    payload: RejectModificationRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> ModificationRequestRead:
    return modification_service.reject(db, modification_id, reviewer=user.actor, reason=payload.reason)


@router.post("/{modification_id}/apply", response_model=ModificationRequestRead)
def apply_modification(
    modification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> ModificationRequestRead:
    return modification_service.apply(db, modification_id, applied_by=user.actor)


@router.post("/{modification_id}/emails", response_model=ModificationRequestRead, status_code=status.HTTP_201_CREATED)
def record_modification_email(
    modification_id: uuid.UUID,
    payload: EmailSentCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_auth_user),
) -> ModificationRequestRead:
    return modification_service.record_email_sent(db, modification_id, payload, sent_by=user.actor)


@public_router.get("/{token}", response_model=ClientConfirmationRead)
def get_client_confirmation(token: str, db: Session = Depends(get_db)) -> ClientConfirmationRead:
    return client_confirmation_service.get_offer(db, token)


@public_router.post("/{token}/accept", response_model=ClientConfirmationRead)
def accept_client_confirmation(
    token: str,
    payload: AcceptModificationRequest,
    db: Session = Depends(get_db),
) -> ClientConfirmationRead:
    client_confirmation_service.accept(db, token, payload.client_email)
    return client_confirmation_service.get_offer(db, token)


@history_router.get("", response_model=list[AppliedModificationRead])
def list_modification_history(
    month: str | None = Query(default=None),
    engagement_id: uuid.UUID | None = Query(default=None),
    client_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[AppliedModificationRead]:
    filters = [value for value in (month, engagement_id, client_id) if value is not None]
    if len(filters) > 1:
        raise ValidationError("filter by one of month, engagement_id or client_id")
    if month is not None:
        return modification_history_service.list_by_month(db, month)
    if engagement_id is not None:
        return modification_history_service.list_by_engagement(db, engagement_id)
    if client_id is not None:
        return modification_history_service.list_by_client(db, client_id)
    return modification_history_service.list_all(db)


@history_router.get("/months", response_model=list[str])
def list_modification_history_months(db: Session = Depends(get_db)) -> list[str]:
    return modification_history_service.list_available_months(db)
