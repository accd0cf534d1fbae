# PURPOSE: build concrete collaborators from settings (process wiring).
#
# With REDIS_URL set, the cache and the event stream use Redis; without it the
# in-process variants are used, which only make sense for a single process
# (API and worker sharing one InMemoryEventBus, e.g. in tests).

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import redis
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .analytics import AnalyticsService
from .analytics_store import InMemoryAnalyticsStore, SqlAnalyticsStore
from .cache import InMemoryTaskCache, RedisTaskCache
from .config import Settings
from .db import Base, make_engine, make_session_factory
from .events import NoopEventPublisher, RedisStreamPublisher
from .ports import AnalyticsStore, EventPublisher, TaskCache, TaskStore
from .service import TaskService
from .store import InMemoryTaskStore
from .store_db import SqlTaskStore
from .transport import InMemoryEventBus, RedisStreamReceiver

logger = logging.getLogger(__name__)


@dataclass
class Container:
    task_store: TaskStore
    cache: TaskCache | None
    publisher: EventPublisher
    analytics_store: AnalyticsStore
    task_service: TaskService
    analytics_service: AnalyticsService
    engine: Engine | None = None
    redis_clients: dict[str, redis.Redis] = field(default_factory=dict)
    closables: list[Any] = field(default_factory=list)

    def check_ready(self) -> dict[str, str]:
        """Check backing services; only the database gates readiness."""
        components: dict[str, str] = {}
        if self.engine is not None:
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                components["database"] = "ok"
            except SQLAlchemyError as exc:
                logger.warning("readiness check failed component=database error=%s", exc)
                components["database"] = "down"
        for name, client in self.redis_clients.items():
            try:
                client.ping()
                components[name] = "ok"
            except redis.RedisError as exc:
                logger.warning("readiness check failed component=%s error=%s", name, exc)
                components[name] = "down"
        return components

    def close(self) -> None:
        for resource in self.closables:
            try:
                resource.close()
            except Exception:  # noqa: BLE001
                logger.exception("failed to close resource=%s", type(resource).__name__)
        if self.engine is not None:
            self.engine.dispose()


def build_in_memory_container(*, cache_ttl_seconds: int = 300) -> tuple[Container, InMemoryEventBus]:
    """Fully in-process wiring; returns the bus so a consumer can drain it."""
    bus = InMemoryEventBus()
    store = InMemoryTaskStore()
    cache = InMemoryTaskCache()
    analytics_store = InMemoryAnalyticsStore()
    container = Container(
        task_store=store,
        cache=cache,
        publisher=bus,
        analytics_store=analytics_store,
        task_service=TaskService(store, cache, bus, cache_ttl_seconds=cache_ttl_seconds),
        analytics_service=AnalyticsService(analytics_store),
    )
    return container, bus


def build_sql_container(
    session_factory: sessionmaker,
    *,
    cache: TaskCache | None,
    publisher: EventPublisher,
    cache_ttl_seconds: int = 300,
    engine: Engine | None = None,
) -> Container:
    store = SqlTaskStore(session_factory)
    analytics_store = SqlAnalyticsStore(session_factory)
    return Container(
        task_store=store,
        cache=cache,
        publisher=publisher,
        analytics_store=analytics_store,
        task_service=TaskService(store, cache, publisher, cache_ttl_seconds=cache_ttl_seconds),
        analytics_service=AnalyticsService(analytics_store),
        engine=engine,
    )


def _redis_client(url: str, *, socket_timeout: float | None) -> redis.Redis:
    return redis.Redis.from_url(url, decode_responses=True, socket_timeout=socket_timeout)


def build_container(settings: Settings) -> Container:
    """Wire the API side: SQL store, cache and event publisher per settings."""
    engine = make_engine(settings.DATABASE_URL)
    if settings.DATABASE_URL.startswith("sqlite"):
        # Dev convenience; PostgreSQL schema is managed by Alembic (upgrade head)
        Base.metadata.create_all(bind=engine)
    session_factory = make_session_factory(engine)
    closables: list[Any] = []
    redis_clients: dict[str, redis.Redis] = {}

    cache: TaskCache | None = None
    if settings.CACHE_ENABLED:
        if settings.REDIS_URL:
            cache_client = _redis_client(settings.REDIS_URL, socket_timeout=1.0)
            closables.append(cache_client)
            redis_clients["cache"] = cache_client
            cache = RedisTaskCache(cache_client)
        else:
            cache = InMemoryTaskCache()

    publisher: EventPublisher = NoopEventPublisher()
    if settings.EVENTS_ENABLED and settings.REDIS_URL:
        events_client = _redis_client(
            settings.REDIS_URL, socket_timeout=settings.EVENTS_PUBLISH_TIMEOUT_SECONDS
        )
        publisher = RedisStreamPublisher(
            events_client, settings.EVENTS_STREAM, maxlen=settings.EVENTS_STREAM_MAXLEN
        )
        closables.append(publisher)
        redis_clients["events"] = events_client
    elif settings.EVENTS_ENABLED:
        logger.warning("REDIS_URL not set; task events are not published")

    container = build_sql_container(
        session_factory,
        cache=cache,
        publisher=publisher,
        cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
        engine=engine,
    )
    container.closables.extend(closables)
    container.redis_clients.update(redis_clients)
    logger.info(
        "container ready db=%s cache=%s publisher=%s",
        engine.url.render_as_string(hide_password=True),
        type(cache).__name__ if cache is not None else "none",
        type(publisher).__name__,
    )
    return container


def build_event_receiver(settings: Settings) -> RedisStreamReceiver:
    """Consume side for the analytics worker; requires Redis."""
    if not settings.REDIS_URL:
        raise RuntimeError("REDIS_URL must be set to run the analytics worker")
    # Blocking reads last up to CONSUMER_BLOCK_MS; the socket timeout must exceed it
    client = _redis_client(settings.REDIS_URL, socket_timeout=settings.CONSUMER_BLOCK_MS / 1000 + 5)
    return RedisStreamReceiver(
        client,
        settings.EVENTS_STREAM,
        settings.EVENTS_GROUP,
        settings.EVENTS_CONSUMER_NAME,
        block_ms=settings.CONSUMER_BLOCK_MS,
    )


def bootstrap_dev_owner(settings: Settings) -> uuid.UUID | None:
    """Resolve the fixed dev owner once at process start (None when disabled)."""
    owner_id = settings.DEV_OWNER_ID
    if owner_id is None:
        return None
    logger.warning("dev owner enabled owner_id=%s; requests without a token act as this owner", owner_id)
    return owner_id
