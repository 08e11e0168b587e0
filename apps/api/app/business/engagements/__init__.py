from app.business.engagements.models import (
    Client,
    Colleague,
    Engagement,
    EngagementAssignment,
    EngagementService,
    ExtraWork,
)
from app.business.engagements.service import (
    EngagementChangeApplier,
    EngagementDirectory,
    EngagementDisplay,
    engagement_change_applier,
    engagement_directory,
)

__all__ = [
    "Client",
    "Colleague",
    "Engagement",
    "EngagementService",
    "EngagementAssignment",
    "ExtraWork",
    "EngagementDisplay",
    "EngagementDirectory",
    "EngagementChangeApplier",
    "engagement_directory",
    "engagement_change_applier",
]
