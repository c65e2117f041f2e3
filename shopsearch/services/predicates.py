"""Typed, composable predicates over catalog products.

A predicate is a small immutable expression tree. Leaves name their field
through an enum, so a clause can only reference a field of the right kind
(a text match cannot target ``price``, a range cannot target ``is_featured``).
Catalog stores translate the tree into their own query language; see
``services/catalog``.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from shopsearch.schemas.catalog import ProductRecord
from shopsearch.schemas.search import SearchFilters

# Price band around the reference product used by the similarity search
SIMILAR_PRICE_LOWER = 0.5
SIMILAR_PRICE_UPPER = 1.5


class Flag(str, enum.Enum):
    """Boolean product columns."""

    IS_ACTIVE = "is_active"
    IS_DIGITAL = "is_digital"
    IS_FEATURED = "is_featured"
    TRACK_INVENTORY = "track_inventory"


class IdField(str, enum.Enum):
    """Identifier columns."""

    ID = "id"
    CATEGORY_ID = "category_id"


class RangeField(str, enum.Enum):
    """Ordered columns that accept bounds."""

    PRICE = "price"
    AVERAGE_RATING = "average_rating"
    REVIEW_COUNT = "review_count"
    STOCK = "stock"
    CREATED_AT = "created_at"


class TextField(str, enum.Enum):
    """Text columns searchable by case-insensitive substring."""

    NAME = "name"
    DESCRIPTION = "description"
    SHORT_DESCRIPTION = "short_description"
    SLUG = "slug"
    CATEGORY_NAME = "category_name"
    TAG_NAME = "tag_name"


class Relation(str, enum.Enum):
    """One-to-many relations usable in existence checks."""

    IMAGES = "images"
    VARIANTS = "variants"


Bound = float | int | datetime


@dataclass(frozen=True, slots=True)
class FlagEquals:
    field: Flag
    value: bool


@dataclass(frozen=True, slots=True)
class IdEquals:
    field: IdField
    value: UUID


@dataclass(frozen=True, slots=True)
class Range:
    """Inclusive ``gte``/``lte`` bounds plus an optional strict ``gt``."""

    field: RangeField
    gte: Bound | None = None
    lte: Bound | None = None
    gt: Bound | None = None


@dataclass(frozen=True, slots=True)
class Contains:
    """Case-insensitive substring match."""

    field: TextField
    text: str


@dataclass(frozen=True, slots=True)
class CategorySlugEquals:
    slug: str


@dataclass(frozen=True, slots=True)
class TagSlugIn:
    """At least one of the product's tags has a slug in ``slugs``."""

    slugs: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TagIdIn:
    """At least one of the product's tags has an id in ``ids``."""

    ids: tuple[UUID, ...]


@dataclass(frozen=True, slots=True)
class HasRelated:
    """At least one related row exists."""

    relation: Relation


@dataclass(frozen=True, slots=True)
class Discounted:
    """The product has an original price strictly above its current price."""


@dataclass(frozen=True, slots=True)
class Not:
    clause: "Predicate"


@dataclass(frozen=True, slots=True)
class AllOf:
    clauses: tuple["Predicate", ...]


@dataclass(frozen=True, slots=True)
class AnyOf:
    clauses: tuple["Predicate", ...]


Predicate = (
    FlagEquals
    | IdEquals
    | Range
    | Contains
    | CategorySlugEquals
    | TagSlugIn
    | TagIdIn
    | HasRelated
    | Discounted
    | Not
    | AllOf
    | AnyOf
)

# Fields searched by the general text query
QUERY_TEXT_FIELDS = (
    TextField.NAME,
    TextField.DESCRIPTION,
    TextField.SHORT_DESCRIPTION,
    TextField.CATEGORY_NAME,
)


def build_search_predicate(filters: SearchFilters) -> AllOf:
    """Translate a validated filter set into the predicate shared by the
    page fetch, the total count and every facet aggregation."""
    clauses: list[Predicate] = [FlagEquals(Flag.IS_ACTIVE, filters.is_active)]

    if filters.query:
        clauses.append(AnyOf(tuple(Contains(f, filters.query) for f in QUERY_TEXT_FIELDS)))

    if filters.category_id is not None:
        clauses.append(IdEquals(IdField.CATEGORY_ID, filters.category_id))
    if filters.category_slug is not None:
        clauses.append(CategorySlugEquals(filters.category_slug))

    if filters.min_price is not None or filters.max_price is not None:
        clauses.append(Range(RangeField.PRICE, gte=filters.min_price, lte=filters.max_price))

    if filters.min_rating is not None:
        clauses.append(Range(RangeField.AVERAGE_RATING, gte=filters.min_rating))

    if filters.in_stock is True:
        clauses.append(Range(RangeField.STOCK, gt=0))
    if filters.track_inventory is not None:
        clauses.append(FlagEquals(Flag.TRACK_INVENTORY, filters.track_inventory))

    if filters.is_digital is not None:
        clauses.append(FlagEquals(Flag.IS_DIGITAL, filters.is_digital))
    if filters.is_featured is not None:
        clauses.append(FlagEquals(Flag.IS_FEATURED, filters.is_featured))
    if filters.on_sale is True:
        clauses.append(Discounted())

    has_reviews = filters.has_reviews is True
    if filters.min_reviews is not None or has_reviews:
        clauses.append(
            Range(
                RangeField.REVIEW_COUNT,
                gte=filters.min_reviews,
                gt=0 if has_reviews else None,
            )
        )

    if filters.created_after is not None or filters.created_before is not None:
        clauses.append(
            Range(
                RangeField.CREATED_AT,
                gte=filters.created_after,
                lte=filters.created_before,
            )
        )

    if filters.tags:
        clauses.append(TagSlugIn(tuple(filters.tags)))

    if filters.has_images is True:
        clauses.append(HasRelated(Relation.IMAGES))
    if filters.has_variants is True:
        clauses.append(HasRelated(Relation.VARIANTS))

    return AllOf(tuple(clauses))


def build_quick_search_predicate(query: str) -> AllOf:
    """Broader text match used by quick search: also slugs and tag names."""
    return AllOf(
        (
            FlagEquals(Flag.IS_ACTIVE, True),
            AnyOf(
                (
                    Contains(TextField.NAME, query),
                    Contains(TextField.DESCRIPTION, query),
                    Contains(TextField.SHORT_DESCRIPTION, query),
                    Contains(TextField.SLUG, "-".join(query.split())),
                    Contains(TextField.CATEGORY_NAME, query),
                    Contains(TextField.TAG_NAME, query),
                )
            ),
        )
    )


def build_similarity_predicate(reference: ProductRecord) -> AllOf:
    """Other active products sharing the category, a tag, or a price band."""
    related: list[Predicate] = []
    if reference.category is not None:
        related.append(IdEquals(IdField.CATEGORY_ID, reference.category.id))
    if reference.tags:
        related.append(TagIdIn(tuple(tag.id for tag in reference.tags)))
    related.append(
        Range(
            RangeField.PRICE,
            gte=reference.price * SIMILAR_PRICE_LOWER,
            lte=reference.price * SIMILAR_PRICE_UPPER,
        )
    )

    return AllOf(
        (
            FlagEquals(Flag.IS_ACTIVE, True),
            Not(IdEquals(IdField.ID, reference.id)),
            AnyOf(tuple(related)),
        )
    )


def build_popular_predicate(category_slug: str | None = None) -> AllOf:
    clauses: list[Predicate] = [FlagEquals(Flag.IS_ACTIVE, True)]
    if category_slug:
        clauses.append(CategorySlugEquals(category_slug))
    return AllOf(tuple(clauses))


def build_name_match_predicate(text: str) -> AllOf:
    """Active products whose name contains ``text`` (autocomplete)."""
    return AllOf((FlagEquals(Flag.IS_ACTIVE, True), Contains(TextField.NAME, text)))
