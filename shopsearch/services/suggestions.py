"""Autocomplete and low-result query suggestions."""

import asyncio

from shopsearch.core.config import settings
from shopsearch.schemas.search import SearchSuggestion, SuggestionType
from shopsearch.services.catalog.store import CatalogStore
from shopsearch.services.ordering import AUTOCOMPLETE_ORDERING
from shopsearch.services.predicates import build_name_match_predicate

MIN_SUGGESTION_QUERY_LENGTH = 2


def degraded_queries(query: str) -> list[str]:
    """Fallback queries for a search that found little: drop the last word."""
    words = query.split()
    if len(words) <= 1:
        return []
    return [" ".join(words[:-1])]


class SuggestionGenerator:
    """Builds autocomplete entries from product and category names."""

    def __init__(self, catalog: CatalogStore) -> None:
        self.catalog = catalog

    async def autocomplete(self, query: str, limit: int | None = None) -> list[SearchSuggestion]:
        """Product names first, then category names, capped at ``limit``.

        Queries shorter than two characters return nothing without touching
        the catalog.
        """
        limit = settings.suggestion_default_limit if limit is None else limit
        text = query.strip()
        if len(text) < MIN_SUGGESTION_QUERY_LENGTH or limit < 1:
            return []

        products, categories = await asyncio.gather(
            self.catalog.find_products(
                build_name_match_predicate(text),
                AUTOCOMPLETE_ORDERING,
                limit=limit,
            ),
            self.catalog.find_category_suggestions(text, limit // 2),
        )

        suggestions = [
            SearchSuggestion(
                query=product.name, type=SuggestionType.PRODUCT, count=product.review_count
            )
            for product in products
        ]
        suggestions.extend(
            SearchSuggestion(query=category.name, type=SuggestionType.CATEGORY, count=count)
            for category, count in categories
        )
        return suggestions[:limit]
