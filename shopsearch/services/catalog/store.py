"""Read-only catalog store interface consumed by the search engine."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from shopsearch.schemas.catalog import CategoryRef, ProductRecord, TagRef
from shopsearch.services.ordering import OrderBy
from shopsearch.services.predicates import Predicate


@dataclass(frozen=True, slots=True)
class PriceStats:
    """Min/max/count of prices over a candidate set."""

    min: float | None
    max: float | None
    count: int


@dataclass(frozen=True, slots=True)
class InventoryBreakdown:
    """Availability and product-type counts over a candidate set."""

    in_stock: int = 0
    out_of_stock: int = 0
    digital: int = 0
    physical: int = 0
    featured: int = 0


class CatalogStore(Protocol):
    """Query capability over the product catalog.

    Every method is a read. Implementations must be safe to call concurrently;
    the search engine fans out several calls per request.
    """

    async def find_products(
        self,
        predicate: Predicate,
        order_by: OrderBy,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ProductRecord]: ...

    async def count_products(self, predicate: Predicate) -> int: ...

    async def get_product(self, product_id: UUID) -> ProductRecord | None: ...

    async def get_category_by_slug(self, slug: str) -> CategoryRef | None: ...

    async def get_categories(self, category_ids: Sequence[UUID]) -> list[CategoryRef]: ...

    async def count_by_category(self, predicate: Predicate) -> list[tuple[UUID, int]]: ...

    async def count_by_tag(self, predicate: Predicate, limit: int) -> list[tuple[TagRef, int]]: ...

    async def price_stats(self, predicate: Predicate) -> PriceStats: ...

    async def count_by_price_bucket(
        self,
        predicate: Predicate,
        low: float,
        step: float,
        buckets: int,
    ) -> dict[int, int]:
        """Count matches per bucket ``min(floor((price - low) / step), buckets - 1)``."""
        ...

    async def count_by_rating(self, predicate: Predicate) -> dict[int, int]:
        """Count matches with a positive rating, keyed by floor(rating)."""
        ...

    async def inventory_breakdown(self, predicate: Predicate) -> InventoryBreakdown: ...

    async def find_category_suggestions(
        self, text: str, limit: int
    ) -> list[tuple[CategoryRef, int]]:
        """Active categories whose name contains ``text``, with product counts,
        most products first."""
        ...
