# PURPOSE: per-owner analytics aggregate (task_analytics table).
#
# Upserts use INSERT ... ON CONFLICT DO UPDATE so the first event for an owner
# creates the row and later ones increment it in a single statement. Counters
# are never cross-checked against each other.

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db_models import TaskAnalyticsDB
from .domain import TaskAnalytics, as_utc, now_utc
from .errors import StoreUnavailableError


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise StoreUnavailableError(f"analytics upsert not supported on dialect {dialect_name!r}")


class SqlAnalyticsStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _upsert(self, owner_id: uuid.UUID, *, created: int, completed: int, on_conflict: dict[str, Any]) -> None:
        now = now_utc()
        try:
            with self._session_factory() as db:
                insert = _insert_for(db.get_bind().dialect.name)
                stmt = insert(TaskAnalyticsDB).values(
                    owner_id=owner_id,
                    tasks_created=created,
                    tasks_completed=completed,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[TaskAnalyticsDB.owner_id],
                    set_={**on_conflict, "updated_at": now},
                )
                db.execute(stmt)
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"analytics upsert failed: {exc}") from exc

    def upsert_created(self, owner_id: uuid.UUID) -> None:
        self._upsert(
            owner_id,
            created=1,
            completed=0,
            on_conflict={"tasks_created": TaskAnalyticsDB.tasks_created + 1},
        )

    def upsert_completed(self, owner_id: uuid.UUID) -> None:
        self._upsert(
            owner_id,
            created=0,
            completed=1,
            on_conflict={"tasks_completed": TaskAnalyticsDB.tasks_completed + 1},
        )

    def touch_for_deletion(self, owner_id: uuid.UUID) -> None:
        self._upsert(owner_id, created=0, completed=0, on_conflict={})

    def get_by_owner(self, owner_id: uuid.UUID) -> TaskAnalytics:
        """Return the aggregate, or a zero value when the owner has no row yet."""
        try:
            with self._session_factory() as db:
                row = db.execute(
                    select(TaskAnalyticsDB).where(TaskAnalyticsDB.owner_id == owner_id)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"analytics read failed: {exc}") from exc
        if row is None:
            return TaskAnalytics(owner_id=owner_id)
        return TaskAnalytics(
            owner_id=owner_id,
            tasks_created=row.tasks_created,
            tasks_completed=row.tasks_completed,
            updated_at=as_utc(row.updated_at),
        )


class InMemoryAnalyticsStore:
    def __init__(self) -> None:
        self._rows: dict[uuid.UUID, TaskAnalytics] = {}
        self._lock = threading.Lock()

    def _bump(self, owner_id: uuid.UUID, *, created: int = 0, completed: int = 0) -> None:
        with self._lock:
            row = self._rows.get(owner_id, TaskAnalytics(owner_id=owner_id))
            self._rows[owner_id] = replace(
                row,
                tasks_created=row.tasks_created + created,
                tasks_completed=row.tasks_completed + completed,
                updated_at=now_utc(),
            )

    def upsert_created(self, owner_id: uuid.UUID) -> None:
        self._bump(owner_id, created=1)

    def upsert_completed(self, owner_id: uuid.UUID) -> None:
        self._bump(owner_id, completed=1)

    def touch_for_deletion(self, owner_id: uuid.UUID) -> None:
        self._bump(owner_id)

    def get_by_owner(self, owner_id: uuid.UUID) -> TaskAnalytics:
        with self._lock:
            return self._rows.get(owner_id, TaskAnalytics(owner_id=owner_id))
