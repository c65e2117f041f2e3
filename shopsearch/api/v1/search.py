"""Product search API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Query, Request

from shopsearch.core.config import settings
from shopsearch.core.deps import SearchCallerDep, SearchServiceDep
from shopsearch.core.exceptions import SearchValidationError
from shopsearch.core.rate_limit import (
    ADVANCED_LIMIT,
    AUTOCOMPLETE_LIMIT,
    STANDARD_LIMIT,
    limiter,
)
from shopsearch.schemas.common import ErrorResponse
from shopsearch.schemas.search import (
    PopularProductsResponse,
    QuickSearchResponse,
    SearchResponse,
    SimilarProductsResponse,
    SuggestionsResponse,
)
from shopsearch.services.filter_parser import parse_search_filters

router = APIRouter(
    responses={
        400: {"model": ErrorResponse, "description": "Invalid filters or parameters"},
        404: {"model": ErrorResponse, "description": "Category or product not found"},
        503: {"model": ErrorResponse, "description": "Catalog unavailable"},
    }
)

PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int | None, Query(ge=1, le=settings.search_max_limit)]
CategoryQuery = Annotated[str | None, Query(alias="category", max_length=255)]


@router.get("", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def search_products(
    request: Request,
    service: SearchServiceDep,
    caller: SearchCallerDep,
) -> SearchResponse:
    """General product search.

    Filters are read leniently from the query string (``q``, ``minPrice``,
    ``sortBy``, ``tags=a,b`` ...). Values that do not parse are ignored.
    """
    filters = parse_search_filters(request.query_params)
    return await service.search_products(filters, caller)


@router.get("/quick", response_model=QuickSearchResponse)
@limiter.limit(AUTOCOMPLETE_LIMIT)
async def quick_search(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    q: str | None = Query(None, max_length=500),
    limit: LimitQuery = None,
) -> QuickSearchResponse:
    """Fast text search across names, descriptions, slugs, categories and tags."""
    if not q:
        raise SearchValidationError("Query parameter 'q' is required", field="q")

    results = await service.full_text_search(q, limit)
    return QuickSearchResponse(query=q, results=results, total=len(results))


@router.get("/suggestions", response_model=SuggestionsResponse)
@limiter.limit(AUTOCOMPLETE_LIMIT)
async def get_suggestions(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    q: str | None = Query(None, max_length=500),
    limit: int | None = Query(None, ge=1, le=50),
) -> SuggestionsResponse:
    """Autocomplete entries from product and category names."""
    if not q:
        raise SearchValidationError("Query parameter 'q' is required", field="q")

    suggestions = await service.get_autocomplete_suggestions(q, limit)
    return SuggestionsResponse(query=q, suggestions=suggestions, total=len(suggestions))


@router.get("/category/{category_slug}", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def search_by_category(
    request: Request,
    category_slug: str,
    service: SearchServiceDep,
    caller: SearchCallerDep,
) -> SearchResponse:
    """Search within a category. 404 when the slug does not resolve."""
    filters = parse_search_filters(request.query_params)
    return await service.search_by_category(category_slug, filters, caller)


@router.get("/similar/{product_id}", response_model=SimilarProductsResponse)
@limiter.limit(STANDARD_LIMIT)
async def get_similar_products(
    request: Request,  # noqa: ARG001 - required by slowapi
    product_id: UUID,
    service: SearchServiceDep,
    limit: int | None = Query(None, ge=1, le=50),
) -> SimilarProductsResponse:
    """Products sharing the category, a tag, or a price band with the given product."""
    similar = await service.find_similar_products(product_id, limit)
    return SimilarProductsResponse(product_id=product_id, similar=similar, total=len(similar))


@router.get("/popular", response_model=PopularProductsResponse)
@limiter.limit(STANDARD_LIMIT)
async def get_popular_products(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    category: CategoryQuery = None,
    limit: LimitQuery = None,
) -> PopularProductsResponse:
    """Most popular active products, optionally within a category."""
    popular = await service.get_popular_products(category, limit)
    return PopularProductsResponse(popular=popular, total=len(popular), category=category or "all")


@router.post("/advanced", response_model=SearchResponse)
@limiter.limit(ADVANCED_LIMIT)
async def advanced_search(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    caller: SearchCallerDep,
    payload: dict[str, Any] = Body(...),
) -> SearchResponse:
    """Search with a JSON filter body. Any invalid value is rejected with 400."""
    return await service.advanced_search(payload, caller)


@router.get("/price-range", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def search_by_price_range(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    min_price: float | None = Query(None, alias="min"),
    max_price: float | None = Query(None, alias="max"),
    category: CategoryQuery = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> SearchResponse:
    """Products priced within ``min..max``, cheapest first."""
    if min_price is None or max_price is None:
        raise SearchValidationError("Query parameters 'min' and 'max' are required", field="min")

    return await service.search_by_price_range(min_price, max_price, category, page, limit)


@router.get("/by-rating", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def search_by_rating(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    min_rating: float | None = Query(None, alias="minRating"),
    category: CategoryQuery = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> SearchResponse:
    """Reviewed products rated at least ``minRating``, best first."""
    if min_rating is None:
        raise SearchValidationError("Query parameter 'minRating' is required", field="minRating")

    return await service.search_by_rating(min_rating, category, page, limit)


@router.get("/on-sale", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def get_products_on_sale(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    category: CategoryQuery = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> SearchResponse:
    """Products priced below their original price."""
    return await service.get_products_on_sale(category, page, limit)


@router.get("/digital", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def search_digital_products(
    request: Request,
    service: SearchServiceDep,
    caller: SearchCallerDep,
) -> SearchResponse:
    """General search restricted to digital products."""
    filters = parse_search_filters(request.query_params)
    return await service.search_digital_products(filters, caller)


@router.get("/featured", response_model=SearchResponse)
@limiter.limit(STANDARD_LIMIT)
async def get_featured_products(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: SearchServiceDep,
    category: CategoryQuery = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
) -> SearchResponse:
    """Featured products, most popular first."""
    return await service.get_featured_products(category, page, limit)
