from fastapi import Query, Request

from ..analytics import AnalyticsService
from ..bootstrap import Container
from ..domain import TaskFilter
from ..service import TaskService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_task_service(request: Request) -> TaskService:
    return get_container(request).task_service


def get_analytics_service(request: Request) -> AnalyticsService:
    return get_container(request).analytics_service


def _parse_int(raw: str | None) -> int | None:
    # Unparseable numbers fall back to defaults instead of failing the request
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def parse_task_filter(
    limit: str | None = Query(None),
    offset: str | None = Query(None),
    status: str | None = Query(None),
    search: str | None = Query(None),
    sort_by: str | None = Query(None),
    sort_dir: str | None = Query(None),
) -> TaskFilter:
    """Build a TaskFilter from query params; values are clamped by TaskFilter.normalized()."""
    parsed_limit = _parse_int(limit)
    parsed_offset = _parse_int(offset)
    return TaskFilter(
        limit=parsed_limit if parsed_limit is not None else 20,
        offset=parsed_offset if parsed_offset is not None else 0,
        status=status or None,
        search=search,
        sort_by=sort_by or "created_at",
        sort_dir=sort_dir or "desc",
    )
