# PURPOSE: task entity, status state machine, list filter and analytics value.
# Pure domain logic: no I/O, no knowledge of stores or caches.

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum

from .errors import (
    EmptyTitleError,
    InvalidOwnerError,
    InvalidStatusError,
    InvalidTransitionError,
)


def now_utc() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach/convert to UTC; naive values are assumed to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


# Older rows and clients use the US spelling.
_STATUS_ALIASES = {"canceled": TaskStatus.CANCELLED}

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED, TaskStatus.DONE}
    ),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.DONE, TaskStatus.CANCELLED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def parse_status(value: TaskStatus | str | None) -> TaskStatus:
    """Coerce a status value or string into TaskStatus; raise InvalidStatusError."""
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _STATUS_ALIASES:
            return _STATUS_ALIASES[raw]
        try:
            return TaskStatus(raw)
        except ValueError:
            pass
    raise InvalidStatusError(value)


def stored_spellings(status: TaskStatus) -> list[str]:
    """Every string a persisted row may use for ``status``."""
    return [status.value, *(alias for alias, target in _STATUS_ALIASES.items() if target is status)]


def is_allowed_transition(source: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def _check_owner(owner_id: uuid.UUID | None) -> uuid.UUID:
    if not isinstance(owner_id, uuid.UUID) or owner_id.int == 0:
        raise InvalidOwnerError()
    return owner_id


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise EmptyTitleError()
    return cleaned


@dataclass(slots=True)
class Task:
    """A user-owned task.

    Invariant: ``completed_at`` is set if and only if ``status`` is ``done``.
    Use :meth:`create` for new tasks and :meth:`from_storage` for persisted
    rows; both validate. Mutate only through :meth:`rename`,
    :meth:`change_description` and :meth:`change_status`.
    """

    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    status: TaskStatus
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def create(
        cls,
        owner_id: uuid.UUID | None,
        title: str,
        description: str = "",
        *,
        now: datetime | None = None,
    ) -> Task:
        owner = _check_owner(owner_id)
        return cls(
            id=uuid.uuid4(),
            owner_id=owner,
            title=_clean_title(title),
            description=(description or "").strip(),
            status=TaskStatus.PENDING,
            created_at=as_utc(now) if now is not None else now_utc(),
        )

    @classmethod
    def from_storage(
        cls,
        *,
        id: uuid.UUID,
        owner_id: uuid.UUID,
        title: str,
        description: str | None,
        status: TaskStatus | str,
        created_at: datetime,
        completed_at: datetime | None,
    ) -> Task:
        """Rebuild a persisted task, rejecting rows that break the invariants."""
        task = cls(
            id=id,
            owner_id=_check_owner(owner_id),
            title=_clean_title(title),
            description=(description or "").strip(),
            status=parse_status(status),
            created_at=as_utc(created_at),
            completed_at=as_utc(completed_at),
        )
        task.check_invariants()
        return task

    def rename(self, new_title: str) -> None:
        self.title = _clean_title(new_title)

    def change_description(self, text: str | None) -> None:
        self.description = (text or "").strip()

    def change_status(self, target: TaskStatus | str, now: datetime | None = None) -> None:
        """Apply a state-machine transition; on failure the task is untouched."""
        to = parse_status(target)
        if not is_allowed_transition(self.status, to):
            raise InvalidTransitionError(self.status, to)

        completed_at = (as_utc(now) if now is not None else now_utc()) if to is TaskStatus.DONE else None
        candidate = replace(self, status=to, completed_at=completed_at)
        candidate.check_invariants()

        self.status = candidate.status
        self.completed_at = candidate.completed_at

    def check_invariants(self) -> None:
        if (self.status is TaskStatus.DONE) != (self.completed_at is not None):
            raise InvalidTransitionError(self.status, self.status)


# --- Listing filter ----------------------------------------------------------

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SORT_COLUMNS = ("created_at", "title", "status", "completed_at")
DEFAULT_SORT_BY = "created_at"
DEFAULT_SORT_DIR = "desc"


@dataclass(frozen=True, slots=True)
class TaskFilter:
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    status: TaskStatus | str | None = None
    search: str | None = None
    sort_by: str = DEFAULT_SORT_BY
    sort_dir: str = DEFAULT_SORT_DIR

    def normalized(self) -> TaskFilter:
        """Return a copy with every field clamped into its allowed range."""
        limit = self.limit if isinstance(self.limit, int) else DEFAULT_LIMIT
        if limit <= 0:
            limit = DEFAULT_LIMIT
        limit = min(limit, MAX_LIMIT)

        offset = self.offset if isinstance(self.offset, int) else 0
        offset = max(offset, 0)

        status = None
        if self.status is not None and self.status != "":
            try:
                status = parse_status(self.status)
            except InvalidStatusError:
                # kept as a literal equality filter, so it matches no rows
                status = str(self.status).strip().lower()

        search = (self.search or "").strip() or None

        sort_by = (self.sort_by or "").strip().lower()
        if sort_by not in SORT_COLUMNS:
            sort_by = DEFAULT_SORT_BY

        sort_dir = (self.sort_dir or "").strip().lower()
        if sort_dir not in ("asc", "desc"):
            sort_dir = DEFAULT_SORT_DIR

        return TaskFilter(
            limit=limit,
            offset=offset,
            status=status,
            search=search,
            sort_by=sort_by,
            sort_dir=sort_dir,
        )


# --- Analytics aggregate -----------------------------------------------------


@dataclass(frozen=True, slots=True)
class TaskAnalytics:
    owner_id: uuid.UUID
    tasks_created: int = 0
    tasks_completed: int = 0
    updated_at: datetime | None = field(default=None)

    @property
    def open_tasks(self) -> int:
        return max(self.tasks_created - self.tasks_completed, 0)

    @property
    def completion_rate(self) -> float:
        if self.tasks_created <= 0:
            return 0.0
        return self.tasks_completed / self.tasks_created
