# PURPOSE: global request rate limit.
# Authenticated callers are limited per owner, anonymous ones per client address.

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from .auth import decode_owner_id
from .config import settings


def rate_limit_key(request: Request) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        owner_id = decode_owner_id(token)
        if owner_id is not None:
            return f"owner:{owner_id}"
    return f"addr:{get_remote_address(request)}"


def get_storage_uri() -> str:
    # Share counters across API replicas when Redis is configured
    return settings.REDIS_URL or settings.RATE_LIMIT_STORAGE_URI


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=get_storage_uri(),
    headers_enabled=True,
)

# Per-route decorator: one budget per caller shared by every /api/v1 resource.
# Decorated handlers need `request` and, unless they return a Response, `response`.
api_limit = limiter.shared_limit(settings.RATE_LIMIT_DEFAULT, scope="api")

__all__ = ["api_limit", "limiter", "rate_limit_key", "_rate_limit_exceeded_handler"]
