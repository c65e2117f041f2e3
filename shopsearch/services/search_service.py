"""Search orchestration: filters in, ranked and faceted products out."""

import asyncio
import logging
import math
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from shopsearch.core.config import settings
from shopsearch.core.exceptions import SearchNotFoundError, SearchValidationError
from shopsearch.schemas.search import (
    FilterSummary,
    Pagination,
    SearchCaller,
    SearchEvent,
    SearchFilters,
    SearchResponse,
    SearchResult,
    SearchSuggestion,
    SortField,
    SortOrder,
)
from shopsearch.services.catalog.store import CatalogStore
from shopsearch.services.facets import FacetAggregator
from shopsearch.services.filter_parser import build_filters, parse_advanced_filters
from shopsearch.services.ordering import POPULAR_ORDERING, RELEVANCE_WITH_QUERY, build_order_by
from shopsearch.services.predicates import (
    build_popular_predicate,
    build_quick_search_predicate,
    build_search_predicate,
)
from shopsearch.services.relevance import to_search_result
from shopsearch.services.search_analytics import SearchAnalytics
from shopsearch.services.similarity import SimilarityEngine
from shopsearch.services.suggestions import SuggestionGenerator, degraded_queries

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class SearchService:
    """Product search over an injected catalog store.

    Every paginated operation goes through ``search_products``, so totals,
    facets and pages always come from the same predicate.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        analytics: SearchAnalytics | None = None,
    ) -> None:
        self.catalog = catalog
        self.analytics = analytics
        self.facets = FacetAggregator(catalog)
        self.similarity = SimilarityEngine(catalog)
        self.suggestions = SuggestionGenerator(catalog)

    async def search_products(
        self,
        filters: SearchFilters,
        caller: SearchCaller | None = None,
    ) -> SearchResponse:
        """Run a filtered, sorted, paginated search with facets.

        The page fetch, the total count and the facet aggregation are
        independent reads over the same predicate and run concurrently.

        Args:
            filters: Validated filter set
            caller: Transport-level identity, recorded with text searches

        Returns:
            SearchResponse with results, pagination, facets and suggestions
        """
        started = time.perf_counter()

        predicate = build_search_predicate(filters)
        order_by = build_order_by(filters.sort_by, filters.sort_order, has_query=bool(filters.query))
        offset = (filters.page - 1) * filters.limit

        rows, total, facets = await asyncio.gather(
            self.catalog.find_products(predicate, order_by, offset=offset, limit=filters.limit),
            self.catalog.count_products(predicate),
            self.facets.aggregate(predicate),
        )

        results = [to_search_result(row, filters.query) for row in rows]

        suggestions: list[str] = []
        if filters.query and total < settings.low_result_threshold:
            suggestions = degraded_queries(filters.query)

        search_time = _elapsed_ms(started)
        response = SearchResponse(
            results=results,
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                pages=math.ceil(total / filters.limit),
            ),
            filters=FilterSummary(applied=filters, available=facets),
            suggestions=suggestions,
            search_time=search_time,
            total_results=total,
        )

        logger.debug(
            "Search completed",
            extra={
                "search_query": filters.query,
                "total": total,
                "page": filters.page,
                "search_time_ms": search_time,
            },
        )

        if filters.query:
            self._track(filters, response, caller)

        return response

    def _track(
        self,
        filters: SearchFilters,
        response: SearchResponse,
        caller: SearchCaller | None,
    ) -> None:
        if self.analytics is None:
            return
        caller = caller or SearchCaller()
        event = SearchEvent(
            query=filters.query or "",
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
            results_count=response.total_results,
            search_time=response.search_time,
            filters=filters.model_dump(mode="json", by_alias=True, exclude_none=True),
            timestamp=datetime.now(UTC),
        )
        try:
            self.analytics.track(event)
        except Exception:
            # Search availability never depends on analytics
            logger.exception("Failed to dispatch search event")

    async def full_text_search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """Quick search over names, descriptions, slugs, categories and tags.

        Raises:
            SearchValidationError: The query is shorter than two characters.
        """
        limit = settings.quick_search_default_limit if limit is None else limit
        text = query.strip()
        if len(text) < MIN_QUERY_LENGTH:
            raise SearchValidationError(
                f"Search query must be at least {MIN_QUERY_LENGTH} characters", field="q"
            )

        products = await self.catalog.find_products(
            build_quick_search_predicate(text),
            RELEVANCE_WITH_QUERY,
            limit=limit,
        )
        return [to_search_result(p, text) for p in products]

    async def search_by_category(
        self,
        category_slug: str,
        filters: SearchFilters,
        caller: SearchCaller | None = None,
    ) -> SearchResponse:
        """Search within one category.

        Raises:
            SearchNotFoundError: No category has this slug.
        """
        category = await self.catalog.get_category_by_slug(category_slug)
        if category is None:
            raise SearchNotFoundError("Category not found")

        scoped = filters.model_copy(update={"category_id": category.id, "category_slug": None})
        return await self.search_products(scoped, caller)

    async def find_similar_products(
        self, product_id: UUID, limit: int | None = None
    ) -> list[SearchResult]:
        return await self.similarity.find_similar(product_id, limit)

    async def get_popular_products(
        self,
        category_slug: str | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Active products ranked by featured flag, wishlists, views, then rating."""
        limit = settings.popular_default_limit if limit is None else limit
        products = await self.catalog.find_products(
            build_popular_predicate(category_slug),
            POPULAR_ORDERING,
            limit=limit,
        )
        return [to_search_result(p) for p in products]

    async def get_autocomplete_suggestions(
        self, query: str, limit: int | None = None
    ) -> list[SearchSuggestion]:
        return await self.suggestions.autocomplete(query, limit)

    async def advanced_search(
        self,
        payload: Mapping[str, Any],
        caller: SearchCaller | None = None,
    ) -> SearchResponse:
        """Strictly validate ``payload`` and search. Invalid payloads never reach the catalog."""
        filters = parse_advanced_filters(payload)
        return await self.search_products(filters, caller)

    # ------------------------------------------------------------------
    # Preset listings
    # ------------------------------------------------------------------

    async def search_by_price_range(
        self,
        min_price: float,
        max_price: float,
        category_slug: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResponse:
        """Products within a price range, cheapest first."""
        filters = build_filters(
            {
                "minPrice": min_price,
                "maxPrice": max_price,
                "categorySlug": category_slug,
                "page": page,
                "limit": settings.search_default_limit if limit is None else limit,
                "sortBy": SortField.PRICE,
                "sortOrder": SortOrder.ASC,
            }
        )
        return await self.search_products(filters)

    async def search_by_rating(
        self,
        min_rating: float,
        category_slug: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResponse:
        """Reviewed products rated at least ``min_rating``, best rated first."""
        filters = build_filters(
            {
                "minRating": min_rating,
                "hasReviews": True,
                "categorySlug": category_slug,
                "page": page,
                "limit": settings.search_default_limit if limit is None else limit,
                "sortBy": SortField.RATING,
                "sortOrder": SortOrder.DESC,
            }
        )
        return await self.search_products(filters)

    async def get_products_on_sale(
        self,
        category_slug: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResponse:
        """Discounted products.

        The discount filter is part of the predicate, so pagination and facets
        only count products that are actually on sale.
        """
        filters = build_filters(
            {
                "onSale": True,
                "categorySlug": category_slug,
                "page": page,
                "limit": settings.search_default_limit if limit is None else limit,
                "sortBy": SortField.DISCOUNT,
                "sortOrder": SortOrder.DESC,
            }
        )
        return await self.search_products(filters)

    async def search_digital_products(
        self,
        filters: SearchFilters,
        caller: SearchCaller | None = None,
    ) -> SearchResponse:
        return await self.search_products(filters.model_copy(update={"is_digital": True}), caller)

    async def get_featured_products(
        self,
        category_slug: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResponse:
        """Featured products, most popular first."""
        filters = build_filters(
            {
                "isFeatured": True,
                "categorySlug": category_slug,
                "page": page,
                "limit": settings.search_default_limit if limit is None else limit,
                "sortBy": SortField.POPULARITY,
                "sortOrder": SortOrder.DESC,
            }
        )
        return await self.search_products(filters)
