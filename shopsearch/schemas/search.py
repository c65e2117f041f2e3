"""Pydantic schemas for product search, facets and suggestions."""

import enum
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from shopsearch.core.config import settings
from shopsearch.schemas.catalog import CategoryRef, ImageRef, TagRef
from shopsearch.schemas.common import CamelSchema


class SortField(str, enum.Enum):
    """Fields a search can be ordered by."""

    RELEVANCE = "relevance"
    PRICE = "price"
    RATING = "rating"
    REVIEWS = "reviews"
    CREATED_AT = "createdAt"
    NAME = "name"
    POPULARITY = "popularity"
    DISCOUNT = "discount"


class SortOrder(str, enum.Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


_SORT_FIELD_VALUES = frozenset(field.value for field in SortField)

MAX_QUERY_LENGTH = 500
MAX_SLUG_LENGTH = 255


class SuggestionType(str, enum.Enum):
    """Where an autocomplete suggestion came from."""

    PRODUCT = "product"
    CATEGORY = "category"


class SearchFilters(CamelSchema):
    """Validated filter set for a product search.

    An instance always satisfies every bound and cross-field rule, so nothing
    downstream re-checks them.
    """

    # Text
    query: str | None = Field(None, max_length=MAX_QUERY_LENGTH)

    # Category (one selector at most)
    category_id: UUID | None = None
    category_slug: str | None = Field(None, max_length=MAX_SLUG_LENGTH)

    # Price
    min_price: float | None = Field(None, ge=0, allow_inf_nan=False)
    max_price: float | None = Field(None, ge=0, allow_inf_nan=False)

    # Rating
    min_rating: float | None = Field(None, ge=0, le=5, allow_inf_nan=False)

    # Inventory
    in_stock: bool | None = None
    track_inventory: bool | None = None

    # Product type
    is_digital: bool | None = None
    is_featured: bool | None = None
    is_active: bool = True
    on_sale: bool | None = None

    # Reviews
    min_reviews: int | None = Field(None, ge=0)
    has_reviews: bool | None = None

    # Pagination
    page: int = Field(1, ge=1)
    limit: int = Field(settings.search_default_limit, ge=1, le=settings.search_max_limit)

    # Ordering
    sort_by: SortField = SortField.RELEVANCE
    sort_order: SortOrder | None = None

    # Dates
    created_after: datetime | None = None
    created_before: datetime | None = None

    # Advanced
    tags: list[str] | None = Field(None, max_length=settings.max_filter_tags)
    has_images: bool | None = None
    has_variants: bool | None = None

    @field_validator("query", "category_slug")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("created_after", "created_before")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        cleaned = [tag.strip() for tag in value if tag.strip()]
        return cleaned or None

    @model_validator(mode="before")
    @classmethod
    def _unknown_sort_newest_first(cls, data: Any) -> Any:
        # Unrecognized sort fields order newest first
        if not isinstance(data, Mapping):
            return data
        key = "sortBy" if "sortBy" in data else "sort_by"
        sort_by = data.get(key)
        if (
            not isinstance(sort_by, str)
            or isinstance(sort_by, SortField)
            or sort_by in _SORT_FIELD_VALUES
        ):
            return data
        data = {k: v for k, v in data.items() if k not in ("sortOrder", "sort_order")}
        data[key] = SortField.CREATED_AT
        data["sortOrder"] = SortOrder.DESC
        return data

    @model_validator(mode="after")
    def _check_cross_field_bounds(self) -> "SearchFilters":
        if self.category_id is not None and self.category_slug is not None:
            raise PydanticCustomError(
                "category_selector",
                "{field} cannot be combined with categorySlug",
                {"field": "categoryId"},
            )
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise PydanticCustomError(
                "price_range",
                "{field} cannot be greater than maxPrice",
                {"field": "minPrice"},
            )
        if (
            self.created_after is not None
            and self.created_before is not None
            and self.created_after > self.created_before
        ):
            raise PydanticCustomError(
                "date_range",
                "{field} cannot be later than createdBefore",
                {"field": "createdAfter"},
            )
        return self


class SearchResult(CamelSchema):
    """A product as returned by search, annotated with search metadata."""

    id: UUID
    name: str
    slug: str
    description: str | None = None
    short_description: str | None = None
    price: float
    original_price: float | None = None
    discount_percentage: int | None = None
    average_rating: float
    review_count: int
    stock: int
    is_digital: bool
    is_featured: bool
    wishlist_count: int = 0
    view_count: int = 0
    download_count: int = 0
    created_at: datetime
    category: CategoryRef | None = None
    images: list[ImageRef] = []
    tags: list[TagRef] = []

    # Search metadata
    relevance_score: int = 0
    matched_fields: list[str] = []


class CategoryFacet(CamelSchema):
    """Number of matches in one category."""

    id: UUID
    name: str
    slug: str
    count: int


class PriceRangeFacet(CamelSchema):
    """One of the five price buckets spanning the matches' price range."""

    min: float
    max: float
    count: int
    label: str


class RatingFacet(CamelSchema):
    """Number of matches whose rating floors to ``rating``."""

    rating: int
    count: int


class TagFacet(CamelSchema):
    """Number of matches carrying a tag."""

    id: UUID
    name: str
    slug: str
    count: int


class AvailabilityFacet(CamelSchema):
    """Stock breakdown of the matches."""

    in_stock: int = 0
    out_of_stock: int = 0


class ProductTypeFacet(CamelSchema):
    """Product-type breakdown of the matches."""

    digital: int = 0
    physical: int = 0
    featured: int = 0


class SearchFacets(CamelSchema):
    """Aggregates computed over the same candidate set as the results."""

    categories: list[CategoryFacet] = []
    price_ranges: list[PriceRangeFacet] = []
    ratings: list[RatingFacet] = []
    tags: list[TagFacet] = []
    availability: AvailabilityFacet = AvailabilityFacet()
    product_types: ProductTypeFacet = ProductTypeFacet()


class Pagination(CamelSchema):
    """Pagination block of a search response."""

    page: int
    limit: int
    total: int
    pages: int


class FilterSummary(CamelSchema):
    """Filters that were applied and the facets available to refine them."""

    applied: SearchFilters
    available: SearchFacets


class SearchResponse(CamelSchema):
    """Response envelope of every paginated search operation."""

    results: list[SearchResult]
    pagination: Pagination
    filters: FilterSummary
    suggestions: list[str] = []
    search_time: int
    total_results: int


class SearchSuggestion(CamelSchema):
    """Autocomplete entry."""

    query: str
    type: SuggestionType
    count: int | None = None


class QuickSearchResponse(CamelSchema):
    """Response of the quick (full-text) search endpoint."""

    query: str
    results: list[SearchResult]
    total: int


class SimilarProductsResponse(CamelSchema):
    """Response of the similar-products endpoint."""

    product_id: UUID
    similar: list[SearchResult]
    total: int


class PopularProductsResponse(CamelSchema):
    """Response of the popular-products endpoint."""

    popular: list[SearchResult]
    total: int
    category: str


class SuggestionsResponse(CamelSchema):
    """Response of the autocomplete endpoint."""

    query: str
    suggestions: list[SearchSuggestion]
    total: int


class SearchCaller(CamelSchema):
    """Who issued a search, as far as the transport knows."""

    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class SearchEvent(CamelSchema):
    """Search observation handed to the analytics pipeline."""

    query: str
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    results_count: int
    search_time: int
    filters: dict[str, Any]
    timestamp: datetime
