"""Read-only projections of catalog rows handed to the search engine."""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import field_validator

from shopsearch.schemas.common import CamelSchema


class CategoryRef(CamelSchema):
    """Category identity as embedded in products and facets."""

    id: UUID
    name: str
    slug: str


class TagRef(CamelSchema):
    """Tag identity."""

    id: UUID
    name: str
    slug: str


class ImageRef(CamelSchema):
    """Product image."""

    id: UUID
    url: str
    alt_text: str | None = None
    is_main: bool = False


class ProductRecord(CamelSchema):
    """A product as the catalog store returns it.

    ``images`` holds every image of the product; result projections keep only
    the main one. ``has_variants`` is precomputed by the store so the
    in-memory and SQL implementations evaluate ``hasVariants`` the same way.
    """

    id: UUID
    name: str
    slug: str
    description: str | None = None
    short_description: str | None = None
    price: float
    original_price: float | None = None
    average_rating: float = 0.0
    review_count: int = 0
    stock: int = 0
    is_digital: bool = False
    is_featured: bool = False
    is_active: bool = True
    track_inventory: bool = True
    wishlist_count: int = 0
    view_count: int = 0
    download_count: int = 0
    created_at: datetime
    category: CategoryRef | None = None
    images: list[ImageRef] = []
    tags: list[TagRef] = []
    has_variants: bool = False

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
