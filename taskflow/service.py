"""Task lifecycle service: cache-aside reads over an authoritative store.

Each mutation is sequenced store write -> cache write/delete -> event publish.
Only the store step can fail the call; cache and publish failures are logged
and dropped, because by then the store has already committed. A lost cache
invalidation heals when the entry's TTL expires; a lost publish permanently
drops that analytics increment.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from .cache import DEFAULT_TTL_SECONDS, dump_task, load_task, task_cache_key
from .domain import Task, TaskFilter, TaskStatus, now_utc
from .errors import (
    NotFoundError,
    PublishError,
    TaskflowError,
    TransientInfrastructureError,
)
from .events import NoopEventPublisher, TaskEvent, TaskEventType
from .ports import EventPublisher, TaskCache, TaskStore

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        store: TaskStore,
        cache: TaskCache | None = None,
        publisher: EventPublisher | None = None,
        *,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.cache = cache
        self.publisher = publisher if publisher is not None else NoopEventPublisher()
        self.cache_ttl_seconds = cache_ttl_seconds

    # --- Public operations ---------------------------------------------------

    def create_task(self, owner_id: uuid.UUID, title: str, description: str = "") -> Task:
        task = Task.create(owner_id, title, description)
        stored = self.store.create(task)
        self._cache_task(stored)
        self._publish(TaskEventType.CREATED, stored.owner_id, stored.id)
        return stored

    def get_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        cached = self._get_cached_task(owner_id, task_id)
        if cached is not None:
            return cached

        try:
            task = self.store.get(owner_id, task_id)
        except TaskflowError as exc:
            # missing row, foreign owner, corrupt row and store outage all read as "not found"
            logger.debug("get_task miss owner_id=%s task_id=%s cause=%s", owner_id, task_id, type(exc).__name__)
            raise NotFoundError() from exc

        self._cache_task(task)
        return task

    def change_status(
        self,
        owner_id: uuid.UUID,
        task_id: uuid.UUID,
        target: TaskStatus | str,
        *,
        now: datetime | None = None,
    ) -> Task:
        task = self._load_for_update(owner_id, task_id)
        task.change_status(target, now or now_utc())

        updated = self.store.update(task)
        self._cache_task(updated)
        if updated.status is TaskStatus.DONE:
            self._publish(TaskEventType.COMPLETED, updated.owner_id, updated.id)
        return updated

    def update_task(
        self,
        owner_id: uuid.UUID,
        task_id: uuid.UUID,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Task:
        task = self._load_for_update(owner_id, task_id)
        if title is not None:
            task.rename(title)
        if description is not None:
            task.change_description(description)

        updated = self.store.update(task)
        self._cache_task(updated)
        return updated

    def delete_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> None:
        self.store.delete(owner_id, task_id)
        self._delete_cached_task(owner_id, task_id)
        self._publish(TaskEventType.DELETED, owner_id, task_id)

    def list_tasks(self, owner_id: uuid.UUID, task_filter: TaskFilter | None = None) -> list[Task]:
        """Always served by the store; result pages are never cached."""
        task_filter = (task_filter or TaskFilter()).normalized()
        return self.store.list(owner_id, task_filter)

    # --- Helpers -------------------------------------------------------------

    def _load_for_update(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        # Mutations start from the store copy, never the cache, to avoid lost updates
        try:
            return self.store.get(owner_id, task_id)
        except TaskflowError as exc:
            raise NotFoundError() from exc

    def _get_cached_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task | None:
        if self.cache is None:
            return None
        key = task_cache_key(owner_id, task_id)
        try:
            payload = self.cache.get(key)
        except TransientInfrastructureError as exc:
            logger.warning("cache get failed key=%s error=%s", key, exc)
            return None
        if payload is None:
            return None
        try:
            task = load_task(payload)
        except (PydanticValidationError, TaskflowError) as exc:
            logger.warning("cache entry undecodable key=%s error=%s", key, type(exc).__name__)
            return None
        if task.owner_id != owner_id or task.id != task_id:
            return None
        return task

    def _cache_task(self, task: Task) -> None:
        if self.cache is None:
            return
        key = task_cache_key(task.owner_id, task.id)
        try:
            self.cache.set(key, dump_task(task), self.cache_ttl_seconds)
        except TransientInfrastructureError as exc:
            logger.warning("cache set failed key=%s error=%s", key, exc)

    def _delete_cached_task(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> None:
        if self.cache is None:
            return
        key = task_cache_key(owner_id, task_id)
        try:
            self.cache.delete(key)
        except TransientInfrastructureError as exc:
            # entry expires on its own within the TTL
            logger.warning("cache delete failed key=%s error=%s", key, exc)

    def _publish(self, event_type: TaskEventType, owner_id: uuid.UUID, task_id: uuid.UUID) -> None:
        event = TaskEvent(type=event_type, owner_id=owner_id, task_id=task_id)
        try:
            self.publisher.publish_task_event(event)
        except PublishError as exc:
            logger.warning(
                "event dropped type=%s owner_id=%s task_id=%s error=%s",
                event_type.value,
                owner_id,
                task_id,
                exc,
            )
