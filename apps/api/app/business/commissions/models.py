from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, UtcDateTime


class CommissionApproval(Base):
    __tablename__ = "commission_approval"

    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approved_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    approved_by: Mapped[str] = mapped_column(String(128), nullable=False)
