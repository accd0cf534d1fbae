# Health checks for orchestrators. They sit outside /api/v1 and need no token.

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..api.deps import get_container
from ..bootstrap import Container

router = APIRouter(tags=["health"])

# Cache and event stream are advisory; their outage only degrades the service
REQUIRED_COMPONENTS = ("database",)


@router.get("/health")
def health():
    """Simple healthcheck endpoint."""
    return {"status": "ok"}


@router.get("/live")
def live():
    return {"status": "live"}


@router.get("/ready")
def ready(container: Container = Depends(get_container)):
    components = container.check_ready()
    if any(components.get(name) == "down" for name in REQUIRED_COMPONENTS):
        return JSONResponse(status_code=503, content={"status": "not ready", "components": components})
    return {"status": "ready", "components": components}
