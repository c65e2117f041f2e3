"""Ordering strategy: sort field and direction to a multi-key ordering."""

import enum
from dataclasses import dataclass

from shopsearch.schemas.search import SortField, SortOrder


class OrderField(str, enum.Enum):
    """Product columns an ordering can reference."""

    IS_FEATURED = "is_featured"
    AVERAGE_RATING = "average_rating"
    REVIEW_COUNT = "review_count"
    CREATED_AT = "created_at"
    WISHLIST_COUNT = "wishlist_count"
    VIEW_COUNT = "view_count"
    PRICE = "price"
    NAME = "name"
    # True when the product has an original (pre-discount) price
    HAS_ORIGINAL_PRICE = "has_original_price"
    ORIGINAL_PRICE = "original_price"


@dataclass(frozen=True, slots=True)
class OrderKey:
    """One key of an ordering. Missing values always sort last."""

    field: OrderField
    descending: bool = False


OrderBy = tuple[OrderKey, ...]


def _desc(field: OrderField) -> OrderKey:
    return OrderKey(field, descending=True)


# Relevance without a text query falls back to popularity signals
RELEVANCE_WITH_QUERY: OrderBy = (
    _desc(OrderField.IS_FEATURED),
    _desc(OrderField.AVERAGE_RATING),
    _desc(OrderField.REVIEW_COUNT),
    _desc(OrderField.CREATED_AT),
)
RELEVANCE_WITHOUT_QUERY: OrderBy = (
    _desc(OrderField.IS_FEATURED),
    _desc(OrderField.WISHLIST_COUNT),
    _desc(OrderField.VIEW_COUNT),
)
NEWEST_FIRST: OrderBy = (_desc(OrderField.CREATED_AT),)

SIMILAR_ORDERING: OrderBy = (
    _desc(OrderField.AVERAGE_RATING),
    _desc(OrderField.REVIEW_COUNT),
    _desc(OrderField.WISHLIST_COUNT),
)
POPULAR_ORDERING: OrderBy = (
    _desc(OrderField.IS_FEATURED),
    _desc(OrderField.WISHLIST_COUNT),
    _desc(OrderField.VIEW_COUNT),
    _desc(OrderField.AVERAGE_RATING),
    _desc(OrderField.REVIEW_COUNT),
)
AUTOCOMPLETE_ORDERING: OrderBy = (
    _desc(OrderField.IS_FEATURED),
    _desc(OrderField.REVIEW_COUNT),
)

# Fields that read naturally in ascending order when no direction is given
_ASCENDING_BY_DEFAULT = frozenset({SortField.PRICE, SortField.NAME})


def resolve_sort_order(sort_by: SortField, sort_order: SortOrder | None) -> SortOrder:
    """Return the requested direction, or the field's default one."""
    if sort_order is not None:
        return sort_order
    return SortOrder.ASC if sort_by in _ASCENDING_BY_DEFAULT else SortOrder.DESC


def build_order_by(
    sort_by: SortField | str,
    sort_order: SortOrder | None = None,
    has_query: bool = False,
) -> OrderBy:
    """Build the ordering for a search.

    ``discount`` orders by discount eligibility and original price, not by the
    computed discount percentage. Unknown fields fall back to newest first.
    """
    try:
        field = SortField(sort_by)
    except ValueError:
        return NEWEST_FIRST

    descending = resolve_sort_order(field, sort_order) is SortOrder.DESC

    if field is SortField.RELEVANCE:
        return RELEVANCE_WITH_QUERY if has_query else RELEVANCE_WITHOUT_QUERY
    if field is SortField.PRICE:
        return (OrderKey(OrderField.PRICE, descending),)
    if field is SortField.RATING:
        return (
            OrderKey(OrderField.AVERAGE_RATING, descending),
            _desc(OrderField.REVIEW_COUNT),
        )
    if field is SortField.REVIEWS:
        return (OrderKey(OrderField.REVIEW_COUNT, descending),)
    if field is SortField.CREATED_AT:
        return (OrderKey(OrderField.CREATED_AT, descending),)
    if field is SortField.NAME:
        return (OrderKey(OrderField.NAME, descending),)
    if field is SortField.POPULARITY:
        return (
            OrderKey(OrderField.WISHLIST_COUNT, descending),
            OrderKey(OrderField.VIEW_COUNT, descending),
            _desc(OrderField.REVIEW_COUNT),
        )
    if field is SortField.DISCOUNT:
        return (
            _desc(OrderField.HAS_ORIGINAL_PRICE),
            _desc(OrderField.ORIGINAL_PRICE),
        )
    return NEWEST_FIRST
