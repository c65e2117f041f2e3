"""In-memory catalog store.

Reference implementation that evaluates the same predicate tree as the SQL
store, in Python. Backs the test suite; the API itself always reads through
the SQL store.
"""

import math
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from typing import Any
from uuid import UUID

from shopsearch.schemas.catalog import CategoryRef, ProductRecord, TagRef
from shopsearch.services.catalog.store import InventoryBreakdown, PriceStats
from shopsearch.services.ordering import OrderBy, OrderField
from shopsearch.services.predicates import (
    AllOf,
    AnyOf,
    CategorySlugEquals,
    Contains,
    Discounted,
    FlagEquals,
    HasRelated,
    IdEquals,
    IdField,
    Not,
    Predicate,
    Range,
    Relation,
    TagIdIn,
    TagSlugIn,
    TextField,
)


def _text_values(product: ProductRecord, field: TextField) -> list[str]:
    if field is TextField.CATEGORY_NAME:
        return [product.category.name] if product.category else []
    if field is TextField.TAG_NAME:
        return [tag.name for tag in product.tags]
    value = getattr(product, field.value)
    return [value] if value else []


def _in_range(value: Any, clause: Range) -> bool:
    if value is None:
        return False
    if clause.gte is not None and value < clause.gte:
        return False
    if clause.lte is not None and value > clause.lte:
        return False
    if clause.gt is not None and value <= clause.gt:
        return False
    return True


def matches(predicate: Predicate, product: ProductRecord) -> bool:
    """Evaluate ``predicate`` against a single product."""
    if isinstance(predicate, AllOf):
        return all(matches(clause, product) for clause in predicate.clauses)
    if isinstance(predicate, AnyOf):
        return any(matches(clause, product) for clause in predicate.clauses)
    if isinstance(predicate, Not):
        return not matches(predicate.clause, product)
    if isinstance(predicate, FlagEquals):
        return bool(getattr(product, predicate.field.value)) is predicate.value
    if isinstance(predicate, IdEquals):
        if predicate.field is IdField.CATEGORY_ID:
            return product.category is not None and product.category.id == predicate.value
        return product.id == predicate.value
    if isinstance(predicate, Range):
        return _in_range(getattr(product, predicate.field.value), predicate)
    if isinstance(predicate, Contains):
        needle = predicate.text.lower()
        return any(needle in value.lower() for value in _text_values(product, predicate.field))
    if isinstance(predicate, CategorySlugEquals):
        return product.category is not None and product.category.slug == predicate.slug
    if isinstance(predicate, TagSlugIn):
        return any(tag.slug in predicate.slugs for tag in product.tags)
    if isinstance(predicate, TagIdIn):
        return any(tag.id in predicate.ids for tag in product.tags)
    if isinstance(predicate, HasRelated):
        if predicate.relation is Relation.IMAGES:
            return bool(product.images)
        return product.has_variants
    if isinstance(predicate, Discounted):
        return product.original_price is not None and product.original_price > product.price
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def _order_value(field: OrderField) -> Callable[[ProductRecord], Any]:
    if field is OrderField.HAS_ORIGINAL_PRICE:
        return lambda p: p.original_price is not None
    return lambda p: getattr(p, field.value)


def sort_products(products: Iterable[ProductRecord], order_by: OrderBy) -> list[ProductRecord]:
    """Stable multi-key sort; missing values sort last in either direction."""
    items = list(products)
    for key in reversed(order_by):
        value = _order_value(key.field)
        present = [p for p in items if value(p) is not None]
        missing = [p for p in items if value(p) is None]
        present.sort(key=value, reverse=key.descending)
        items = present + missing
    return items


class InMemoryCatalogStore:
    """Catalog store backed by Python lists."""

    def __init__(
        self,
        products: Iterable[ProductRecord] = (),
        categories: Iterable[CategoryRef] = (),
    ) -> None:
        self._products: dict[UUID, ProductRecord] = {}
        self._categories: dict[UUID, CategoryRef] = {}
        self._inactive_categories: set[UUID] = set()
        for category in categories:
            self.add_category(category)
        for product in products:
            self.add_product(product)

    # ------------------------------------------------------------------
    # Mutation helpers (test setup only; the engine never writes)
    # ------------------------------------------------------------------

    def add_category(self, category: CategoryRef, *, is_active: bool = True) -> CategoryRef:
        self._categories[category.id] = category
        if not is_active:
            self._inactive_categories.add(category.id)
        return category

    def remove_category(self, category_id: UUID) -> None:
        """Forget a category while products still reference it."""
        self._categories.pop(category_id, None)
        self._inactive_categories.discard(category_id)

    def add_product(self, product: ProductRecord) -> ProductRecord:
        if product.category is not None and product.category.id not in self._categories:
            self._categories[product.category.id] = product.category
        self._products[product.id] = product
        return product

    # ------------------------------------------------------------------
    # CatalogStore
    # ------------------------------------------------------------------

    def _select(self, predicate: Predicate) -> list[ProductRecord]:
        return [p for p in self._products.values() if matches(predicate, p)]

    async def find_products(
        self,
        predicate: Predicate,
        order_by: OrderBy,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ProductRecord]:
        ordered = sort_products(self._select(predicate), order_by)
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    async def count_products(self, predicate: Predicate) -> int:
        return len(self._select(predicate))

    async def get_product(self, product_id: UUID) -> ProductRecord | None:
        return self._products.get(product_id)

    async def get_category_by_slug(self, slug: str) -> CategoryRef | None:
        for category in self._categories.values():
            if category.slug == slug:
                return category
        return None

    async def get_categories(self, category_ids: Sequence[UUID]) -> list[CategoryRef]:
        return [self._categories[cid] for cid in category_ids if cid in self._categories]

    async def count_by_category(self, predicate: Predicate) -> list[tuple[UUID, int]]:
        counts = Counter(p.category.id for p in self._select(predicate) if p.category is not None)
        return list(counts.items())

    async def count_by_tag(self, predicate: Predicate, limit: int) -> list[tuple[TagRef, int]]:
        tags: dict[UUID, TagRef] = {}
        counts: Counter[UUID] = Counter()
        for product in self._select(predicate):
            for tag in product.tags:
                tags[tag.id] = tag
                counts[tag.id] += 1
        ranked = sorted(counts.items(), key=lambda item: (-item[1], tags[item[0]].name))
        return [(tags[tag_id], count) for tag_id, count in ranked[:limit]]

    async def price_stats(self, predicate: Predicate) -> PriceStats:
        prices = [p.price for p in self._select(predicate)]
        if not prices:
            return PriceStats(min=None, max=None, count=0)
        return PriceStats(min=min(prices), max=max(prices), count=len(prices))

    async def count_by_price_bucket(
        self,
        predicate: Predicate,
        low: float,
        step: float,
        buckets: int,
    ) -> dict[int, int]:
        counts: Counter[int] = Counter()
        for product in self._select(predicate):
            index = math.floor((product.price - low) / step)
            counts[max(0, min(index, buckets - 1))] += 1
        return dict(counts)

    async def count_by_rating(self, predicate: Predicate) -> dict[int, int]:
        return dict(
            Counter(
                math.floor(p.average_rating)
                for p in self._select(predicate)
                if p.average_rating > 0
            )
        )

    async def inventory_breakdown(self, predicate: Predicate) -> InventoryBreakdown:
        products = self._select(predicate)
        in_stock = sum(1 for p in products if p.stock > 0)
        digital = sum(1 for p in products if p.is_digital)
        return InventoryBreakdown(
            in_stock=in_stock,
            out_of_stock=len(products) - in_stock,
            digital=digital,
            physical=len(products) - digital,
            featured=sum(1 for p in products if p.is_featured),
        )

    async def find_category_suggestions(
        self, text: str, limit: int
    ) -> list[tuple[CategoryRef, int]]:
        needle = text.lower()
        counts = Counter(p.category.id for p in self._products.values() if p.category is not None)
        candidates = [
            (category, counts.get(category.id, 0))
            for category in self._categories.values()
            if category.id not in self._inactive_categories and needle in category.name.lower()
        ]
        candidates.sort(key=lambda item: (-item[1], item[0].name))
        return candidates[:limit]
