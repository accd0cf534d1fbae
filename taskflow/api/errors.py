import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import (
    NotFoundError,
    TaskflowError,
    TransientInfrastructureError,
    TransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_body(request: Request, status_code: int, error: str, **extra) -> dict:
    return {"error": error, "status": status_code, "path": request.url.path, **extra}


def status_for(exc: TaskflowError) -> tuple[int, str]:
    """Map a core error kind to (HTTP status, error label)."""
    if isinstance(exc, ValidationError):
        return 422, "ValidationError"
    if isinstance(exc, NotFoundError):
        return 404, "NotFound"
    if isinstance(exc, TransitionError):
        return 409, "InvalidTransition"
    if isinstance(exc, TransientInfrastructureError):
        return 503, "ServiceUnavailable"
    return 500, "InternalError"


def register_exception_handlers(app: FastAPI) -> None:
    """Attach simple, consistent JSON error handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request,
                exc.status_code,
                exc.detail if isinstance(exc.detail, str) else "HTTPError",
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(request, 422, "ValidationError", details=exc.errors()),
        )

    @app.exception_handler(TaskflowError)
    async def taskflow_exception_handler(request: Request, exc: TaskflowError):
        status_code, label = status_for(exc)
        if status_code >= 500:
            logger.error("request failed path=%s error=%s", request.url.path, exc)
        # NotFound never reveals whether the task exists for another owner
        message = "task not found" if isinstance(exc, NotFoundError) else str(exc)
        return JSONResponse(
            status_code=status_code,
            content=_error_body(request, status_code, label, message=message),
        )
