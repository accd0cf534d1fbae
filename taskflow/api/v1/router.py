from fastapi import APIRouter

from ... import __version__
from ...routers import analytics as analytics_router
from ...routers import tasks as tasks_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(tasks_router.router)
api_router.include_router(analytics_router.router)


@api_router.get("/", tags=["meta"])
def api_info():
    """Entry point listing the resource collections."""
    return {
        "name": "Taskflow API",
        "version": "v1",
        "release": __version__,
        "docs": "/docs",
        "resources": {
            "tasks": "/api/v1/tasks",
            "analytics": "/api/v1/analytics",
        },
    }
