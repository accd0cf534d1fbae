"""Task lifecycle events and their publishers.

Events are emitted after a mutation has committed to the task store, so
publishing is best-effort: the lifecycle service logs and drops any
``PublishError``. Only three mutations produce an event: creation, a
transition to ``done`` and deletion.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from enum import Enum

import redis
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .domain import now_utc
from .errors import EncodingError, EventDecodeError, TransportError

logger = logging.getLogger(__name__)

PAYLOAD_FIELD = "payload"


class TaskEventType(str, Enum):
    CREATED = "task_created"
    COMPLETED = "task_completed"
    DELETED = "task_deleted"


class TaskEvent(BaseModel):
    """Immutable record of a task mutation, serialized as JSON for transport."""

    type: TaskEventType
    owner_id: uuid.UUID
    task_id: uuid.UUID
    occurred_at: datetime = Field(default_factory=now_utc)

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "type": "task_created",
                    "owner_id": "11111111-1111-1111-1111-111111111111",
                    "task_id": "0b7d4e1e-8f6a-4d8b-9d7e-3f1d2c4b5a69",
                    "occurred_at": "2025-09-01T12:00:00Z",
                }
            ]
        },
    )


def encode_event(event: TaskEvent) -> str:
    try:
        return event.model_dump_json()
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"cannot encode task event: {exc}") from exc


def decode_event(payload: str | bytes) -> TaskEvent:
    """Parse a transported payload; unknown types and bad JSON raise EventDecodeError."""
    try:
        return TaskEvent.model_validate_json(payload)
    except PydanticValidationError as exc:
        raise EventDecodeError(f"cannot decode task event: {exc.error_count()} error(s)") from exc


# --- Publishers --------------------------------------------------------------


class NoopEventPublisher:
    """Publisher for deployments without an event sink; always succeeds."""

    def publish_task_event(self, event: TaskEvent) -> None:
        return None

    def close(self) -> None:
        return None


class RedisStreamPublisher:
    """Append events to a Redis Stream (XADD).

    The client should be created with a short ``socket_timeout`` so a slow
    broker cannot stall the request that triggered the event.
    """

    def __init__(self, client: redis.Redis, stream: str, *, maxlen: int | None = None) -> None:
        self._client = client
        self._stream = stream
        self._maxlen = maxlen

    def publish_task_event(self, event: TaskEvent) -> None:
        payload = encode_event(event)
        try:
            self._client.xadd(
                self._stream,
                {PAYLOAD_FIELD: payload, "owner_id": str(event.owner_id)},
                maxlen=self._maxlen,
                approximate=True,
            )
        except redis.RedisError as exc:
            raise TransportError(f"xadd to {self._stream} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()
