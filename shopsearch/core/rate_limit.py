"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from starlette.requests import Request

from shopsearch.core.config import settings


def get_client_ip(request: Request) -> str:
    """Extract the real client IP behind a CDN or reverse proxy."""
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or (request.client.host if request.client else "127.0.0.1")
    )


limiter = Limiter(key_func=get_client_ip)

# Per-route limits, read from settings so deployments can tune them
STANDARD_LIMIT = settings.rate_limit_standard
AUTOCOMPLETE_LIMIT = settings.rate_limit_autocomplete
ADVANCED_LIMIT = settings.rate_limit_advanced
