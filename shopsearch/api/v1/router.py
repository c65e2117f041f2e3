"""API v1 router combining all route modules."""

from fastapi import APIRouter

from shopsearch.api.v1 import health, search

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Product search (public, rate limited per client IP)
api_router.include_router(
    search.router,
    prefix="/search",
    tags=["search"],
)
