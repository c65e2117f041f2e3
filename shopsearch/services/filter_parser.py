"""Turn raw request parameters into a validated ``SearchFilters``.

Two entry points share one representation:

- ``parse_search_filters`` reads query-string parameters leniently. Values
  that do not parse, or fall outside their bounds, are dropped; ``page`` and
  ``limit`` are clamped. Cross-field violations still fail.
- ``parse_advanced_filters`` reads a JSON body strictly. Any malformed or
  out-of-range value fails with the offending field named.
"""

import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from shopsearch.core.config import settings
from shopsearch.core.exceptions import SearchValidationError
from shopsearch.schemas.search import (
    MAX_QUERY_LENGTH,
    MAX_SLUG_LENGTH,
    SearchFilters,
    SortField,
    SortOrder,
)

logger = logging.getLogger(__name__)

MAX_RATING = 5.0

# Query-string flags, read as true only for the literal "true"
BOOLEAN_PARAMS = (
    "inStock",
    "isDigital",
    "isFeatured",
    "hasReviews",
    "hasImages",
    "hasVariants",
    "trackInventory",
    "onSale",
)


def _parse_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_datetime(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def _parse_uuid(raw: str | None) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def _to_validation_error(exc: ValidationError) -> SearchValidationError:
    """Report the first pydantic error under its camelCase field name."""
    error = exc.errors()[0]
    ctx = error.get("ctx") or {}
    field = ctx.get("field")
    if field is None and error["loc"]:
        field = str(error["loc"][0])

    message = error["msg"]
    if field and not message.startswith(field):
        message = f"{field}: {message}"
    return SearchValidationError(message, field=field)


def build_filters(data: Mapping[str, Any]) -> SearchFilters:
    """Validate ``data`` (camelCase keys) into filters, reporting the failing field."""
    try:
        return SearchFilters.model_validate(data)
    except ValidationError as e:
        raise _to_validation_error(e) from e


def parse_search_filters(params: Mapping[str, str]) -> SearchFilters:
    """Leniently parse query-string parameters.

    Args:
        params: Raw parameters keyed by their camelCase name (``q`` or
            ``query`` for the text query)

    Raises:
        SearchValidationError: A cross-field rule is violated (min price above
            max price, dates out of order, too many tags, both category
            selectors).
    """
    data: dict[str, Any] = {}

    query = (params.get("q") or params.get("query") or "").strip()
    if query and len(query) <= MAX_QUERY_LENGTH:
        data["query"] = query

    category_id = _parse_uuid(params.get("categoryId"))
    if category_id is not None:
        data["categoryId"] = category_id
    category_slug = (params.get("categorySlug") or "").strip()
    if category_slug and len(category_slug) <= MAX_SLUG_LENGTH:
        data["categorySlug"] = category_slug

    for key in ("minPrice", "maxPrice"):
        price = _parse_float(params.get(key))
        if price is not None and price >= 0:
            data[key] = price

    min_rating = _parse_float(params.get("minRating"))
    if min_rating is not None and 0 <= min_rating <= MAX_RATING:
        data["minRating"] = min_rating

    for key in BOOLEAN_PARAMS:
        if key in params:
            data[key] = params[key] == "true"

    min_reviews = _parse_int(params.get("minReviews"))
    if min_reviews is not None and min_reviews >= 0:
        data["minReviews"] = min_reviews

    page = _parse_int(params.get("page"))
    if page is not None:
        data["page"] = max(page, 1)
    limit = _parse_int(params.get("limit"))
    if limit is not None:
        data["limit"] = min(max(limit, 1), settings.search_max_limit)

    sort_by = params.get("sortBy")
    if sort_by in {field.value for field in SortField}:
        data["sortBy"] = sort_by
    sort_order = params.get("sortOrder")
    if sort_order in {order.value for order in SortOrder}:
        data["sortOrder"] = sort_order

    for key in ("createdAfter", "createdBefore"):
        created = _parse_datetime(params.get(key))
        if created is not None:
            data[key] = created

    if params.get("tags"):
        data["tags"] = [tag.strip() for tag in params["tags"].split(",") if tag.strip()]

    return build_filters(data)


def parse_advanced_filters(payload: Mapping[str, Any]) -> SearchFilters:
    """Strictly validate a JSON filter payload.

    Raises:
        SearchValidationError: Any value is malformed, out of range, or
            violates a cross-field rule. Raised before the catalog is touched.
    """
    if not isinstance(payload, Mapping):
        raise SearchValidationError("Filters must be a JSON object")

    filters = build_filters(payload)
    logger.debug(
        "Validated advanced filters: %s",
        filters.model_dump(by_alias=True, exclude_none=True),
    )
    return filters
