"""
Rate limiting utilities for API endpoints.
Uses slowapi to prevent brute force attacks on the login endpoint.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from studio_cms.config import settings


def get_client_identifier(request: Request) -> str:
    """
    Get client identifier for rate limiting.
    Uses the Cloudflare/proxy forwarded IP when present, otherwise remote address.

    Args:
        request: FastAPI request object

    Returns:
        str: Client identifier (IP address)
    """
    connecting_ip = request.headers.get("CF-Connecting-IP")
    if connecting_ip:
        return connecting_ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Get first IP in chain (original client)
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=["1000/hour"],
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)


RATE_LIMITS = {
    "login": settings.LOGIN_RATE_LIMIT,
    "upload": "60/hour",
}
