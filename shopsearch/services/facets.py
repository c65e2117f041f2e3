"""Facet aggregation over the candidate set of a search."""

import asyncio
import logging
import math

from shopsearch.core.config import settings
from shopsearch.schemas.search import (
    AvailabilityFacet,
    CategoryFacet,
    PriceRangeFacet,
    ProductTypeFacet,
    RatingFacet,
    SearchFacets,
    TagFacet,
)
from shopsearch.services.catalog.store import CatalogStore
from shopsearch.services.predicates import Predicate

logger = logging.getLogger(__name__)

PRICE_BUCKETS = 5

# Range shown when nothing matched
DEFAULT_PRICE_FLOOR = 0.0
DEFAULT_PRICE_CEILING = 1000.0


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def generate_price_ranges(
    low: float,
    high: float,
    currency_symbol: str | None = None,
) -> list[PriceRangeFacet]:
    """Split ``low..high`` into five buckets of width ``ceil((high - low) / 5)``.

    The last bucket always ends exactly at ``high``. Counts start at zero.
    """
    symbol = settings.currency_symbol if currency_symbol is None else currency_symbol
    step = math.ceil((high - low) / PRICE_BUCKETS)
    ranges = []
    for i in range(PRICE_BUCKETS):
        range_min = low + i * step
        range_max = high if i == PRICE_BUCKETS - 1 else low + (i + 1) * step
        ranges.append(
            PriceRangeFacet(
                min=range_min,
                max=range_max,
                count=0,
                label=f"{symbol}{_format_amount(range_min)} - {symbol}{_format_amount(range_max)}",
            )
        )
    return ranges


class FacetAggregator:
    """Computes ``SearchFacets`` for a predicate.

    Every aggregation receives the exact predicate used for the result page,
    so facet counts always describe the candidate universe the caller sees.
    """

    def __init__(self, catalog: CatalogStore, tag_limit: int | None = None) -> None:
        self.catalog = catalog
        self.tag_limit = settings.facet_tag_limit if tag_limit is None else tag_limit

    async def aggregate(self, predicate: Predicate) -> SearchFacets:
        categories, price_ranges, ratings, tags, breakdown = await asyncio.gather(
            self._category_facets(predicate),
            self._price_facets(predicate),
            self._rating_facets(predicate),
            self._tag_facets(predicate),
            self.catalog.inventory_breakdown(predicate),
        )

        return SearchFacets(
            categories=categories,
            price_ranges=price_ranges,
            ratings=ratings,
            tags=tags,
            availability=AvailabilityFacet(
                in_stock=breakdown.in_stock,
                out_of_stock=breakdown.out_of_stock,
            ),
            product_types=ProductTypeFacet(
                digital=breakdown.digital,
                physical=breakdown.physical,
                featured=breakdown.featured,
            ),
        )

    async def _category_facets(self, predicate: Predicate) -> list[CategoryFacet]:
        groups = await self.catalog.count_by_category(predicate)
        if not groups:
            return []

        categories = await self.catalog.get_categories([category_id for category_id, _ in groups])
        by_id = {category.id: category for category in categories}

        facets = []
        for category_id, count in groups:
            category = by_id.get(category_id)
            # Category deleted between the two reads
            if category is None:
                logger.debug("Dropping facet for unresolved category %s", category_id)
                continue
            facets.append(
                CategoryFacet(id=category.id, name=category.name, slug=category.slug, count=count)
            )

        facets.sort(key=lambda facet: (-facet.count, facet.name))
        return facets

    async def _price_facets(self, predicate: Predicate) -> list[PriceRangeFacet]:
        stats = await self.catalog.price_stats(predicate)
        if stats.count == 0 or stats.min is None or stats.max is None:
            return generate_price_ranges(DEFAULT_PRICE_FLOOR, DEFAULT_PRICE_CEILING)

        # An all-free match set spans the default ceiling
        high = stats.max or DEFAULT_PRICE_CEILING
        ranges = generate_price_ranges(stats.min, high)
        step = math.ceil((high - stats.min) / PRICE_BUCKETS)
        if step == 0:
            counts = {0: stats.count}
        else:
            counts = await self.catalog.count_by_price_bucket(
                predicate, stats.min, step, PRICE_BUCKETS
            )

        return [
            bucket.model_copy(update={"count": counts.get(i, 0)})
            for i, bucket in enumerate(ranges)
        ]

    async def _rating_facets(self, predicate: Predicate) -> list[RatingFacet]:
        counts = await self.catalog.count_by_rating(predicate)
        return [
            RatingFacet(rating=rating, count=count)
            for rating, count in sorted(counts.items(), reverse=True)
        ]

    async def _tag_facets(self, predicate: Predicate) -> list[TagFacet]:
        groups = await self.catalog.count_by_tag(predicate, self.tag_limit)
        return [
            TagFacet(id=tag.id, name=tag.name, slug=tag.slug, count=count) for tag, count in groups
        ]
