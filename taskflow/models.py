# PURPOSE: request/response schemas for the HTTP layer.
# Domain validation (trimming, empty titles, transitions) happens in taskflow.domain;
# these schemas only shape JSON.

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .domain import Task, TaskAnalytics


class TaskCreate(BaseModel):
    title: str = Field(max_length=255)
    description: str = Field(default="", max_length=10_000)
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"title": "Buy milk"},
                {"title": "Plan trip", "description": "Book flights and hotel"},
            ]
        },
    )


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=10_000)
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"title": "New title"},
                {"description": ""},
            ]
        },
    )


class StatusChange(BaseModel):
    # Plain string: unknown values are rejected by the state machine (422)
    status: str
    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"examples": [{"status": "in_progress"}, {"status": "done"}]},
    )


class TaskOut(BaseModel):
    id: UUID
    title: str
    description: str
    status: str
    created_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskOut":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status.value,
            created_at=task.created_at,
            completed_at=task.completed_at,
        )


class AnalyticsOut(BaseModel):
    tasks_created: int
    tasks_completed: int
    tasks_open: int
    completion_rate: float
    last_updated_at: datetime | None = None

    @classmethod
    def from_analytics(cls, analytics: TaskAnalytics) -> "AnalyticsOut":
        return cls(
            tasks_created=analytics.tasks_created,
            tasks_completed=analytics.tasks_completed,
            tasks_open=analytics.open_tasks,
            completion_rate=analytics.completion_rate,
            last_updated_at=analytics.updated_at,
        )
