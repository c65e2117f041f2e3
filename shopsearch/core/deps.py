"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shopsearch.core.config import settings
from shopsearch.core.database import async_session_maker, get_async_session
from shopsearch.core.rate_limit import get_client_ip
from shopsearch.schemas.search import SearchCaller
from shopsearch.services.catalog.sql_store import SqlCatalogStore
from shopsearch.services.catalog.store import CatalogStore
from shopsearch.services.search_analytics import (
    CelerySearchAnalytics,
    NullSearchAnalytics,
    SearchAnalytics,
)
from shopsearch.services.search_service import SearchService

# Header set by the gateway once it has authenticated the caller
USER_ID_HEADER = "X-User-ID"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session, used by the health checks."""
    async for session in get_async_session():
        yield session


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_catalog_store() -> CatalogStore:
    """Catalog store over the shared session factory (one session per read)."""
    return SqlCatalogStore(async_session_maker)


@lru_cache
def get_search_analytics() -> SearchAnalytics:
    """Process-wide analytics dispatcher, so pending publishes survive the request."""
    if not settings.search_analytics_enabled:
        return NullSearchAnalytics()
    return CelerySearchAnalytics()


def get_search_service(
    catalog: CatalogStore = Depends(get_catalog_store),
    analytics: SearchAnalytics = Depends(get_search_analytics),
) -> SearchService:
    return SearchService(catalog, analytics)


def get_search_caller(request: Request) -> SearchCaller:
    """Identify the caller of a search from transport metadata."""
    return SearchCaller(
        user_id=request.headers.get(USER_ID_HEADER),
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


SearchServiceDep = Annotated[SearchService, Depends(get_search_service)]
SearchCallerDep = Annotated[SearchCaller, Depends(get_search_caller)]


__all__ = [
    "DBSession",
    "SearchCallerDep",
    "SearchServiceDep",
    "get_catalog_store",
    "get_db",
    "get_search_analytics",
    "get_search_caller",
    "get_search_service",
]
