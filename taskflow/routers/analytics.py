from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response

from ..analytics import AnalyticsService
from ..api.deps import get_analytics_service
from ..auth import get_current_owner
from ..models import AnalyticsOut
from ..rate_limit import api_limit

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsOut)
@api_limit
def get_analytics(
    request: Request,
    response: Response,
    service: AnalyticsService = Depends(get_analytics_service),
    owner_id: UUID = Depends(get_current_owner),
):
    """Counters produced by the analytics worker; eventually consistent."""
    return AnalyticsOut.from_analytics(service.get_by_user_id(owner_id))
