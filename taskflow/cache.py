# PURPOSE: task cache adapters plus the cache key and payload codec.
#
# The cache is advisory: adapters raise CacheUnavailableError on any backend
# failure and the lifecycle service treats that exactly like a miss.

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from datetime import datetime

import redis
from pydantic import BaseModel, ConfigDict

from .domain import Task, TaskStatus
from .errors import CacheUnavailableError

DEFAULT_TTL_SECONDS = 5 * 60


def task_cache_key(owner_id: uuid.UUID, task_id: uuid.UUID) -> str:
    """Deterministic key; both ids are fixed-width UUIDs so keys cannot collide."""
    return f"task:{owner_id}:{task_id}"


class CachedTask(BaseModel):
    """Wire shape of a cached task."""

    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    status: TaskStatus
    created_at: datetime
    completed_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")


def dump_task(task: Task) -> str:
    return CachedTask(
        id=task.id,
        owner_id=task.owner_id,
        title=task.title,
        description=task.description,
        status=task.status,
        created_at=task.created_at,
        completed_at=task.completed_at,
    ).model_dump_json()


def load_task(payload: str) -> Task:
    """Parse a cached payload; raises pydantic or domain errors on bad data."""
    data = CachedTask.model_validate_json(payload)
    return Task.from_storage(**data.model_dump())


class RedisTaskCache:
    def __init__(self, client: redis.Redis) -> None:
        # client should use decode_responses=True so values come back as str
        self._client = client

    def get(self, key: str) -> str | None:
        try:
            value = self._client.get(key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"cache get failed: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"cache set failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"cache delete failed: {exc}") from exc


class InMemoryTaskCache:
    """TTL dict for single-process runs and tests; expired entries are dropped on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
