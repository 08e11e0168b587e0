from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.database import Base


ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Keyed get/put/delete/scan over one mapped table.

    Repositories never commit; the owning service decides the transaction
    boundary so a failed operation can be rolled back as a whole.
    """

    model: type[ModelT]

    def get(self, session: Session, key: Any) -> ModelT | None:
        return session.get(self.model, key)

    def put(self, session: Session, record: ModelT) -> ModelT:
        session.add(record)
        session.flush()
        return record

    def delete(self, session: Session, record: ModelT) -> None:
        session.delete(record)
        session.flush()

    def scan(self, session: Session, *criteria: Any, order_by: tuple[Any, ...] = ()) -> list[ModelT]:
        stmt = select(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(session.scalars(stmt).all())
