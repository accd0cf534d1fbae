"""Analytics worker: folds task events into per-owner counters.

Processing is serial: receive -> decode -> dispatch -> upsert -> commit.
A message is committed only after its upsert succeeded, so failures lead to
redelivery (at-least-once). Duplicates are counted again, so counters are
approximate.

Run with ``taskflow-worker`` (or ``python -m taskflow.worker``).
"""

from __future__ import annotations

import logging
import signal
import threading
import uuid
from collections.abc import Callable

from .analytics_store import SqlAnalyticsStore
from .bootstrap import build_event_receiver
from .config import Settings, settings as default_settings
from .db import Base, make_engine, make_session_factory
from .errors import EventDecodeError, TaskflowError, TransientInfrastructureError
from .events import TaskEvent, TaskEventType, decode_event
from .logging_utils import setup_logging
from .ports import AnalyticsStore, EventReceiver, Message

logger = logging.getLogger(__name__)


class AnalyticsConsumer:
    def __init__(
        self,
        receiver: EventReceiver,
        store: AnalyticsStore,
        *,
        backoff_seconds: float = 1.0,
    ) -> None:
        self.receiver = receiver
        self.store = store
        self.backoff_seconds = backoff_seconds
        self._handlers: dict[TaskEventType, Callable[[uuid.UUID], None]] = {
            TaskEventType.CREATED: store.upsert_created,
            TaskEventType.COMPLETED: store.upsert_completed,
            TaskEventType.DELETED: store.touch_for_deletion,
        }

    def apply_event(self, event: TaskEvent) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            raise EventDecodeError(f"unknown task event type: {event.type}")
        handler(event.owner_id)

    def handle(self, message: Message) -> bool:
        """Process one message; return True when it was applied and committed."""
        try:
            event = decode_event(message.payload)
            self.apply_event(event)
        except EventDecodeError as exc:
            # Never committed: the message comes back on every re-scan (poison message)
            logger.error("undecodable analytics event id=%s error=%s", message.id, exc)
            return False
        except TaskflowError as exc:
            logger.warning("analytics upsert failed id=%s error=%s; will be redelivered", message.id, exc)
            return False

        try:
            self.receiver.commit(message)
        except TransientInfrastructureError as exc:
            # Upsert already applied; redelivery will count this event twice
            logger.warning("commit failed id=%s error=%s", message.id, exc)
            return False

        logger.debug("analytics event applied id=%s type=%s owner_id=%s", message.id, event.type.value, event.owner_id)
        return True

    def poll_once(self, stop: threading.Event) -> bool:
        """Receive and handle at most one message; return True if one was handled."""
        try:
            message = self.receiver.receive(stop)
        except TransientInfrastructureError as exc:
            logger.warning("receive failed error=%s; retrying in %ss", exc, self.backoff_seconds)
            stop.wait(self.backoff_seconds)
            return False
        if message is None:
            return False
        # A message in hand is always finished, even if stop was requested meanwhile
        self.handle(message)
        return True

    def run(self, stop: threading.Event) -> None:
        """Loop until ``stop`` is set; the flag is checked between messages only."""
        logger.info("analytics consumer started")
        while not stop.is_set():
            self.poll_once(stop)
        logger.info("analytics consumer stopped")


def install_signal_handlers(stop: threading.Event) -> None:
    def _request_stop(signum, _frame):
        logger.info("shutdown requested signal=%s", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)


def main(settings: Settings | None = None) -> None:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    engine = make_engine(settings.DATABASE_URL)
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    store = SqlAnalyticsStore(make_session_factory(engine))
    receiver = build_event_receiver(settings)

    stop = threading.Event()
    install_signal_handlers(stop)
    logger.info(
        "taskflow-worker starting stream=%s group=%s consumer=%s",
        settings.EVENTS_STREAM,
        settings.EVENTS_GROUP,
        settings.EVENTS_CONSUMER_NAME,
    )
    consumer = AnalyticsConsumer(receiver, store, backoff_seconds=settings.CONSUMER_BACKOFF_SECONDS)
    try:
        consumer.run(stop)
    finally:
        receiver.close()
        engine.dispose()


if __name__ == "__main__":
    main()
