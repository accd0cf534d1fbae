"""
Ports (capability interfaces) consumed by the core.

The lifecycle service and the analytics worker depend on these Protocols, not
on concrete adapters, so every collaborator has a real (SQLAlchemy / Redis)
variant and an in-process variant used for local runs and tests.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Protocol

from .domain import Task, TaskAnalytics, TaskFilter
from .events import TaskEvent


class TaskStore(Protocol):
    """System of record. get/update/delete raise NotFoundError for a missing (id, owner) pair."""

    def create(self, task: Task) -> Task: ...
    def get(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task: ...
    def update(self, task: Task) -> Task: ...
    def delete(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> None: ...
    def list(self, owner_id: uuid.UUID, task_filter: TaskFilter) -> list[Task]: ...


class TaskCache(Protocol):
    """Advisory key/value cache. get returns None on miss; errors raise CacheUnavailableError."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    def delete(self, key: str) -> None: ...


class EventPublisher(Protocol):
    def publish_task_event(self, event: TaskEvent) -> None: ...


@dataclass(frozen=True, slots=True)
class Message:
    """One received event as handed out by a transport, acknowledged via commit()."""

    id: str
    payload: str


class EventReceiver(Protocol):
    """Consume side of the event transport (group based, at-least-once)."""

    def receive(self, stop: threading.Event) -> Message | None: ...
    def commit(self, message: Message) -> None: ...


class AnalyticsStore(Protocol):
    def upsert_created(self, owner_id: uuid.UUID) -> None: ...
    def upsert_completed(self, owner_id: uuid.UUID) -> None: ...
    def touch_for_deletion(self, owner_id: uuid.UUID) -> None: ...
    def get_by_owner(self, owner_id: uuid.UUID) -> TaskAnalytics: ...
