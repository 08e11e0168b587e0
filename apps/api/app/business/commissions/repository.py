from __future__ import annotations

import uuid
from typing import NamedTuple

from app.business.commissions.models import CommissionApproval
from app.core.repository import BaseRepository


class ApprovalKey(NamedTuple):
    kind: str
    item_id: uuid.UUID


class CommissionApprovalRepository(BaseRepository[CommissionApproval]):
    model = CommissionApproval
