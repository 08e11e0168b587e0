from __future__ import annotations

from app.business.engagements.models import (
    Client,
    Colleague,
    Engagement,
    EngagementAssignment,
    EngagementService,
)
from app.core.repository import BaseRepository


class ClientRepository(BaseRepository[Client]):
    model = Client


class ColleagueRepository(BaseRepository[Colleague]):
    model = Colleague


class EngagementRepository(BaseRepository[Engagement]):
    model = Engagement


class EngagementServiceRepository(BaseRepository[EngagementService]):
    model = EngagementService


class EngagementAssignmentRepository(BaseRepository[EngagementAssignment]):
    model = EngagementAssignment

