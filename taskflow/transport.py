# PURPOSE: consume side of the event transport.
#
# RedisStreamReceiver reads a Redis Stream through a consumer group, so several
# worker instances share the backlog. A message stays in the group's pending
# list (PEL) until commit() acknowledges it; uncommitted messages are re-read
# from the PEL whenever the stream goes idle (and on start-up), which gives
# at-least-once delivery. InMemoryEventBus mirrors the same behaviour in-process.

from __future__ import annotations

import itertools
import logging
import queue
import threading

import redis

from .events import PAYLOAD_FIELD, TaskEvent, encode_event
from .errors import TransportError
from .ports import Message

logger = logging.getLogger(__name__)

_NEW_MESSAGES = ">"
_PENDING_FROM_START = "0"


def _stream_entries(response) -> list:
    """Extract [(id, fields), ...] from an XREADGROUP reply (RESP2 list or RESP3 dict)."""
    if not response:
        return []
    if isinstance(response, dict):
        return next(iter(response.values()), [])
    _, entries = response[0]
    return entries or []


class RedisStreamReceiver:
    def __init__(
        self,
        client: redis.Redis,
        stream: str,
        group: str,
        consumer: str,
        *,
        block_ms: int = 1000,
    ) -> None:
        self._client = client
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._block_ms = block_ms
        self._group_ready = False
        # Start by re-reading our own unacknowledged entries (crash recovery)
        self._backlog_cursor: str | None = _PENDING_FROM_START

    def ensure_group(self) -> None:
        """Create the consumer group (and the stream) if missing; idempotent."""
        try:
            self._client.xgroup_create(self._stream, self._group, id="0", mkstream=True)
        except redis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise TransportError(f"xgroup create {self._group} failed: {exc}") from exc
        except redis.RedisError as exc:
            raise TransportError(f"xgroup create {self._group} failed: {exc}") from exc
        self._group_ready = True

    def receive(self, stop: threading.Event) -> Message | None:
        """Return the next message, or None after an idle poll or when stopping."""
        if stop.is_set():
            return None
        if not self._group_ready:
            self.ensure_group()

        while True:
            reading_backlog = self._backlog_cursor is not None
            read_id = self._backlog_cursor if reading_backlog else _NEW_MESSAGES
            try:
                response = self._client.xreadgroup(
                    self._group,
                    self._consumer,
                    {self._stream: read_id},
                    count=1,
                    block=None if reading_backlog else self._block_ms,
                )
            except redis.RedisError as exc:
                if isinstance(exc, redis.ResponseError) and "NOGROUP" in str(exc):
                    # Group or stream was dropped; recreate it on the next poll
                    self._group_ready = False
                    self._backlog_cursor = _PENDING_FROM_START
                raise TransportError(f"xreadgroup on {self._stream} failed: {exc}") from exc

            entries = _stream_entries(response)
            if not entries:
                # Backlog drained -> switch to new messages; idle on new -> re-scan backlog
                self._backlog_cursor = None if reading_backlog else _PENDING_FROM_START
                return None

            entry_id, fields = entries[0]
            if reading_backlog:
                self._backlog_cursor = entry_id
            if not fields:
                # Entry was trimmed from the stream while pending; nothing to redeliver
                logger.warning("dropping trimmed stream entry id=%s stream=%s", entry_id, self._stream)
                self.commit(Message(id=entry_id, payload=""))
                continue
            return Message(id=entry_id, payload=fields.get(PAYLOAD_FIELD, ""))

    def commit(self, message: Message) -> None:
        try:
            self._client.xack(self._stream, self._group, message.id)
        except redis.RedisError as exc:
            raise TransportError(f"xack {message.id} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class InMemoryEventBus:
    """In-process publisher + receiver pair for single-process runs and tests."""

    def __init__(self, *, poll_interval: float = 0.05) -> None:
        self._queue: queue.Queue[Message] = queue.Queue()
        self._pending: dict[str, Message] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._poll_interval = poll_interval
        self.committed: list[str] = []

    # publish side

    def publish_task_event(self, event: TaskEvent) -> None:
        self.publish_raw(encode_event(event))

    def publish_raw(self, payload: str) -> str:
        message = Message(id=f"{next(self._ids)}-0", payload=payload)
        self._queue.put(message)
        return message.id

    # consume side

    def receive(self, stop: threading.Event) -> Message | None:
        if stop.is_set():
            return None
        try:
            message = self._queue.get(timeout=self._poll_interval)
        except queue.Empty:
            self._redeliver_pending()
            return None
        with self._lock:
            self._pending[message.id] = message
        return message

    def commit(self, message: Message) -> None:
        with self._lock:
            self._pending.pop(message.id, None)
            self.committed.append(message.id)

    @property
    def pending_ids(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def backlog_size(self) -> int:
        return self._queue.qsize()

    def _redeliver_pending(self) -> None:
        with self._lock:
            redeliver = list(self._pending.values())
            self._pending.clear()
        for message in redeliver:
            self._queue.put(message)

    def close(self) -> None:
        return None
