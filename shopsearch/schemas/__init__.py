"""Pydantic schemas for request/response validation."""

from shopsearch.schemas.catalog import CategoryRef, ImageRef, ProductRecord, TagRef
from shopsearch.schemas.common import ErrorResponse, HealthResponse
from shopsearch.schemas.search import (
    SearchEvent,
    SearchFacets,
    SearchFilters,
    SearchResponse,
    SearchResult,
    SearchSuggestion,
    SortField,
    SortOrder,
)

__all__ = [
    "CategoryRef",
    "ErrorResponse",
    "HealthResponse",
    "ImageRef",
    "ProductRecord",
    "SearchEvent",
    "SearchFacets",
    "SearchFilters",
    "SearchResponse",
    "SearchResult",
    "SearchSuggestion",
    "SortField",
    "SortOrder",
    "TagRef",
]
