# PURPOSE: in-process task store with the same contract as SqlTaskStore.
# Used for tests and single-process dev runs; state lives in a dict guarded by a lock.

from __future__ import annotations

import threading
import uuid
from dataclasses import replace

from .domain import Task, TaskFilter, TaskStatus
from .errors import NotFoundError

_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.DONE: 2,
    TaskStatus.CANCELLED: 3,
}


def _sort_value(task: Task, sort_by: str):
    if sort_by == "title":
        return task.title
    if sort_by == "status":
        return _STATUS_RANK[task.status]
    if sort_by == "completed_at":
        return task.completed_at
    return task.created_at


class InMemoryTaskStore:
    def __init__(self) -> None:
        self._tasks: dict[uuid.UUID, Task] = {}
        self._lock = threading.Lock()

    def create(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = replace(task)
            return replace(task)

    def get(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.owner_id != owner_id:
                raise NotFoundError()
            return replace(task)

    def update(self, task: Task) -> Task:
        with self._lock:
            current = self._tasks.get(task.id)
            if current is None or current.owner_id != task.owner_id:
                raise NotFoundError()
            updated = replace(
                current,
                title=task.title,
                description=task.description,
                status=task.status,
                completed_at=task.completed_at,
            )
            self._tasks[task.id] = updated
            return replace(updated)

    def delete(self, owner_id: uuid.UUID, task_id: uuid.UUID) -> None:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.owner_id != owner_id:
                raise NotFoundError()
            del self._tasks[task_id]

    def list(self, owner_id: uuid.UUID, task_filter: TaskFilter) -> list[Task]:
        task_filter = task_filter.normalized()
        with self._lock:
            items = [replace(t) for t in self._tasks.values() if t.owner_id == owner_id]

        if task_filter.status is not None:
            items = [t for t in items if t.status == task_filter.status]
        if task_filter.search:
            needle = task_filter.search.lower()
            items = [t for t in items if needle in t.title.lower()]

        reverse = task_filter.sort_dir == "desc"
        sort_by = task_filter.sort_by
        # secondary keys first (stable sort), then primary; None values sort last either way
        items.sort(key=lambda t: (t.created_at, str(t.id)), reverse=reverse)
        present = [t for t in items if _sort_value(t, sort_by) is not None]
        missing = [t for t in items if _sort_value(t, sort_by) is None]
        present.sort(key=lambda t: _sort_value(t, sort_by), reverse=reverse)
        items = present + missing
        return items[task_filter.offset : task_filter.offset + task_filter.limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
