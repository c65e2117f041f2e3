"""Per-row relevance scoring and search result projection.

The score ranks rows within one response. The ``relevance`` sort orders by
popularity signals instead (see ``ordering.RELEVANCE_WITH_QUERY``), so a page
ordered by relevance is not necessarily ordered by ``relevance_score``.
"""

import math

from shopsearch.schemas.catalog import ProductRecord
from shopsearch.schemas.search import SearchResult

TITLE_MATCH_SCORE = 100
DESCRIPTION_MATCH_SCORE = 50
REVIEW_WEIGHT = 2
REVIEW_SCORE_CAP = 50
WISHLIST_SCORE_CAP = 30
FEATURED_SCORE = 25


def score_relevance(product: ProductRecord, query: str) -> tuple[int, list[str]]:
    """Score ``product`` against ``query``.

    Returns:
        The score and the matched fields, a subset of ``["title", "description"]``.
    """
    needle = query.lower()
    score = 0
    matched_fields: list[str] = []

    if needle in product.name.lower():
        score += TITLE_MATCH_SCORE
        matched_fields.append("title")

    if needle in (product.description or "").lower():
        score += DESCRIPTION_MATCH_SCORE
        matched_fields.append("description")

    # Popularity boosts
    score += min(product.review_count * REVIEW_WEIGHT, REVIEW_SCORE_CAP)
    score += min(product.wishlist_count, WISHLIST_SCORE_CAP)
    score += FEATURED_SCORE if product.is_featured else 0

    return score, matched_fields


def discount_percentage(price: float, original_price: float | None) -> int | None:
    """Percent drop from ``original_price`` to ``price``, rounded half up."""
    if not original_price:
        return None
    return math.floor((original_price - price) / original_price * 100 + 0.5)


def to_search_result(product: ProductRecord, query: str | None = None) -> SearchResult:
    """Project a catalog record into a search result, scoring it if a query is given."""
    relevance_score, matched_fields = score_relevance(product, query) if query else (0, [])
    main_images = [image for image in product.images if image.is_main][:1]

    return SearchResult(
        id=product.id,
        name=product.name,
        slug=product.slug,
        description=product.description,
        short_description=product.short_description,
        price=product.price,
        original_price=product.original_price,
        discount_percentage=discount_percentage(product.price, product.original_price),
        average_rating=product.average_rating,
        review_count=product.review_count,
        stock=product.stock,
        is_digital=product.is_digital,
        is_featured=product.is_featured,
        wishlist_count=product.wishlist_count,
        view_count=product.view_count,
        download_count=product.download_count,
        created_at=product.created_at,
        category=product.category,
        images=main_images,
        tags=product.tags,
        relevance_score=relevance_score,
        matched_fields=matched_fields,
    )
