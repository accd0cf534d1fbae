# PURPOSE: SQLAlchemy-backed task store (system of record).
#
# Every public method opens its own short-lived Session from the shared
# factory, so one store instance is safe to use from concurrent requests.
# SQLAlchemy errors are wrapped into StoreUnavailableError at this boundary.

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db_models import TaskDB
from .domain import Task, TaskFilter, TaskStatus, stored_spellings
from .errors import NotFoundError, StoreUnavailableError, TaskflowError

logger = logging.getLogger(__name__)


# --- Mapping -----------------------------------------------------------------


def to_row(task: Task) -> TaskDB:
    return TaskDB(
        id=task.id,
        owner_id=task.owner_id,
        title=task.title,
        description=task.description,
        status=task.status.value,
        created_at=task.created_at,
        completed_at=task.completed_at,
    )


def to_domain(row: TaskDB) -> Task:
    """Validate a persisted row; corrupt rows raise a domain error."""
    return Task.from_storage(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description,
        status=row.status,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


# --- Helpers -----------------------------------------------------------------


def _apply_common_filters(query, *, owner_id: uuid.UUID, task_filter: TaskFilter):
    """Apply owner scope plus status/search filters to a TaskDB select."""
    query = query.where(TaskDB.owner_id == owner_id)
    if isinstance(task_filter.status, TaskStatus):
        query = query.where(TaskDB.status.in_(stored_spellings(task_filter.status)))
    elif task_filter.status is not None:
        query = query.where(TaskDB.status == task_filter.status)
    if task_filter.search:
        query = query.where(TaskDB.title.icontains(task_filter.search, autoescape=True))
    return query


def _apply_ordering(query, *, sort_by: str, sort_dir: str):
    """
    Apply ordering with a safe allow-list of columns.
    Allowed: created_at, title, status, completed_at (fallback to created_at).
    Includes stable secondary ordering for deterministic results.
    """
    if sort_by == "title":
        primary: Any = TaskDB.title
    elif sort_by == "status":
        # Lifecycle rank: pending(0) < in_progress(1) < done(2) < cancelled(3)
        primary = case(
            (TaskDB.status == TaskStatus.PENDING.value, 0),
            (TaskDB.status == TaskStatus.IN_PROGRESS.value, 1),
            (TaskDB.status == TaskStatus.DONE.value, 2),
            (TaskDB.status.in_(stored_spellings(TaskStatus.CANCELLED)), 3),
            else_=0,
        )
    elif sort_by == "completed_at":
        primary = TaskDB.completed_at
    else:
        primary = TaskDB.created_at

    if sort_dir == "asc":
        return query.order_by(primary.asc().nulls_last(), TaskDB.created_at.asc(), TaskDB.id.asc())
    return query.order_by(primary.desc().nulls_last(), TaskDB.created_at.desc(), TaskDB.id.desc())


class SqlTaskStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    @staticmethod
    def _find(db: Session, owner_id: uuid.UUID, task_id: uuid.UUID) -> TaskDB | None:
        stmt = select(TaskDB).where(TaskDB.id == task_id, TaskDB.owner_id == owner_id)
        return db.execute(stmt).scalar_one_or_none()

    # --- CRUD ----------------------------------------------------------------

    def create(self, task: Task) -> Task:
        """Insert a new row and return the stored (authoritative) copy."""
        try:
            with self._session() as db:
                row = to_row(task)
                db.add(row)
                db.commit()
                db.refresh(row)
                return to_domain(row)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"create task failed: {exc}") from exc

    def get(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        """Fetch a single task scoped by owner; NotFoundError when absent."""
        try:
            with self._session() as db:
                row = self._find(db, owner_id, task_id)
                if row is None:
                    raise NotFoundError()
                return to_domain(row)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"get task failed: {exc}") from exc

    def update(self, task: Task) -> Task:
        """Persist mutable fields; created_at and owner never change."""
        try:
            with self._session() as db:
                row = self._find(db, task.owner_id, task.id)
                if row is None:
                    raise NotFoundError()
                row.title = task.title
                row.description = task.description
                row.status = task.status.value
                row.completed_at = task.completed_at
                db.commit()
                db.refresh(row)
                return to_domain(row)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"update task failed: {exc}") from exc

    def delete(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> None:
        try:
            with self._session() as db:
                row = self._find(db, owner_id, task_id)
                if row is None:
                    raise NotFoundError()
                db.delete(row)
                db.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"delete task failed: {exc}") from exc

    def list(self, owner_id: uuid.UUID, task_filter: TaskFilter) -> list[Task]:
        """Return a page of the owner's tasks with filters and ordering applied."""
        task_filter = task_filter.normalized()
        query = _apply_common_filters(select(TaskDB), owner_id=owner_id, task_filter=task_filter)
        query = _apply_ordering(query, sort_by=task_filter.sort_by, sort_dir=task_filter.sort_dir)
        query = query.offset(task_filter.offset).limit(task_filter.limit)
        try:
            with self._session() as db:
                rows = db.execute(query).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"list tasks failed: {exc}") from exc

        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(to_domain(row))
            except TaskflowError as exc:
                logger.warning("skipping corrupt task row id=%s owner_id=%s error=%s", row.id, owner_id, exc)
        return tasks
