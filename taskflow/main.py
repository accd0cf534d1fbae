# PURPOSE: FastAPI application factory: lifespan wiring, middleware, routers, metrics.
# Run with: uvicorn taskflow.main:app

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from . import __version__
from .api.errors import register_exception_handlers
from .api.v1.router import api_router
from .bootstrap import bootstrap_dev_owner, build_container
from .config import settings
from .logging_utils import setup_logging
from .rate_limit import _rate_limit_exceeded_handler, limiter
from .routers import health

access_log = logging.getLogger("taskflow.request")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    # A container injected beforehand (tests, embedding) is used as-is and not closed here
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = build_container(settings)
    if not hasattr(app.state, "dev_owner_id"):
        app.state.dev_owner_id = bootstrap_dev_owner(settings)

    try:
        yield
    finally:
        if owns_container:
            app.state.container.close()
            app.state.container = None


async def request_id_and_logging(request: Request, call_next):
    """Tag each request with an id (echoed back) and write one access-log line."""
    start = time.perf_counter()
    req_id = request.headers.get(settings.REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers.setdefault(settings.REQUEST_ID_HEADER, req_id)
    access_log.info(
        "method=%s path=%s status=%s duration_ms=%s request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        int((time.perf_counter() - start) * 1000),
        req_id,
    )
    return response


def create_app() -> FastAPI:
    app = FastAPI(
        title="Taskflow API",
        version=__version__,
        description=(
            "Task lifecycle API under /api/v1 with per-user analytics. "
            "Send a Bearer token whose `sub` is your owner id."
        ),
        openapi_tags=[
            {"name": "tasks", "description": "Create, read, update, transition and delete tasks."},
            {"name": "analytics", "description": "Per-user task counters (eventually consistent)."},
            {"name": "health", "description": "Liveness and readiness checks."},
        ],
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(api_router)
    register_exception_handlers(app)

    # Rate limiting: per-route decorators (routers/) plus the default limit via middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.middleware("http")(request_id_and_logging)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    Instrumentator().instrument(app).expose(app, include_in_schema=False)
    return app


app = create_app()
