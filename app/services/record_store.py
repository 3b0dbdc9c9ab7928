"""
SQLAlchemy-backed record store used by the workflow registry.
Every write is flushed, never committed: the caller owns the transaction.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.models import TRASHED, Base, Workflow


class RecordStore:
    """Load/store/publish primitives over the workflow tables."""

    def __init__(self, db: Session):
        self.db = db

    def load(self, model: type[Base] = Workflow, for_update: bool = False, **criteria: Any) -> Any | None:
        query = self.db.query(model).filter_by(**criteria).order_by(model.id.asc())
        if for_update:
            query = query.with_for_update()
        return query.first()

    def load_default(self, extension: str, for_update: bool = False) -> Workflow | None:
        return self.load(Workflow, for_update=for_update, extension=extension, default=True)

    def bind(self, record: Base, data: dict[str, Any]) -> Base:
        """Copy known column values from ``data`` onto ``record``."""
        for column in record.__table__.columns:
            if column.key == "id" or column.key not in data:
                continue
            setattr(record, column.key, data[column.key])
        return record

    def store(self, record: Base) -> bool:
        self.db.add(record)
        self.db.flush()
        return True

    def save(self, model: type[Base], data: dict[str, Any]) -> Any | None:
        """Create a row, or update the one matching ``data["id"]``; None when that id is unknown."""
        pk = data.get("id")
        if pk:
            record = self.load(model, id=pk)
            if record is None:
                return None
        else:
            record = model()
        self.bind(record, data)
        self.store(record)
        return record

    def publish_batch(
        self,
        ids: Iterable[int],
        value: int,
        actor_id: int,
        now: datetime,
    ) -> bool:
        wanted = set(ids)
        if not wanted:
            return True
        rows = self.db.query(Workflow).filter(Workflow.id.in_(wanted)).all()
        for row in rows:
            row.published = value
            row.modified = now
            row.modified_by = actor_id
        self.db.flush()
        return len(rows) == len(wanted)

    def is_deletable(self, record: Base | None) -> bool:
        if record is None or record.id is None:
            return False
        if not inspect(record).persistent:
            return False
        return record.published == TRASHED

    def delete(self, record: Base) -> None:
        self.db.delete(record)
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
