# Routers and services live in submodules; the engagement change applier
# imports this package's models and schemas.
from app.business.modifications.models import AppliedModification, ModificationRequest
from app.business.modifications.schemas import (
    CLIENT_FACING_REQUEST_TYPES,
    PROPOSED_CHANGES_MODELS,
    AppliedModificationRead,
    ClientConfirmationRead,
    ModificationRequestCreate,
    ModificationRequestRead,
    ModificationRequestUpdate,
    is_client_facing,
)

__all__ = [
    "ModificationRequest",
    "AppliedModification",
    "CLIENT_FACING_REQUEST_TYPES",
    "PROPOSED_CHANGES_MODELS",
    "ModificationRequestCreate",
    "ModificationRequestUpdate",
    "ModificationRequestRead",
    "ClientConfirmationRead",
    "AppliedModificationRead",
    "is_client_facing",
]
