"""Tests for autocomplete and degraded-query suggestions."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from shopsearch.schemas.search import SuggestionType
from shopsearch.services.catalog.memory_store import InMemoryCatalogStore
from shopsearch.services.suggestions import SuggestionGenerator, degraded_queries


class TestDegradedQueries:
    def test_drops_last_word(self) -> None:
        assert degraded_queries("red leather sofa") == ["red leather"]

    def test_single_word_yields_nothing(self) -> None:
        assert degraded_queries("sofa") == []

    def test_extra_whitespace(self) -> None:
        assert degraded_queries("  red   sofa ") == ["red"]


class TestAutocomplete:
    """Tests for SuggestionGenerator.autocomplete()."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "a", " b "])
    async def test_short_query_never_touches_catalog(self, query: str) -> None:
        catalog = AsyncMock(spec=InMemoryCatalogStore)
        assert await SuggestionGenerator(catalog).autocomplete(query) == []
        catalog.find_products.assert_not_awaited()
        catalog.find_category_suggestions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_products_then_categories(
        self,
        catalog: InMemoryCatalogStore,
        product_factory: Callable[..., Any],
        category_factory: Callable[..., Any],
    ) -> None:
        lamps = category_factory(name="Lamps")
        product_factory(name="Desk lamp", review_count=3, category=lamps)
        product_factory(name="Floor lamp", review_count=12, category=lamps)
        product_factory(name="Lamp shade", review_count=1, is_featured=True, category=lamps)

        suggestions = await SuggestionGenerator(catalog).autocomplete("lamp", limit=8)

        assert [(s.query, s.type) for s in suggestions] == [
            ("Lamp shade", SuggestionType.PRODUCT),
            ("Floor lamp", SuggestionType.PRODUCT),
            ("Desk lamp", SuggestionType.PRODUCT),
            ("Lamps", SuggestionType.CATEGORY),
        ]
        assert suggestions[1].count == 12
        assert suggestions[-1].count == 3

    @pytest.mark.asyncio
    async def test_merged_list_is_capped(
        self,
        catalog: InMemoryCatalogStore,
        product_factory: Callable[..., Any],
        category_factory: Callable[..., Any],
    ) -> None:
        category_factory(name="Lamps")
        for i in range(5):
            product_factory(name=f"Lamp {i}")

        suggestions = await SuggestionGenerator(catalog).autocomplete("lamp", limit=3)
        assert len(suggestions) == 3
        assert all(s.type is SuggestionType.PRODUCT for s in suggestions)

    @pytest.mark.asyncio
    async def test_inactive_products_and_categories_are_skipped(
        self,
        catalog: InMemoryCatalogStore,
        product_factory: Callable[..., Any],
        category_factory: Callable[..., Any],
    ) -> None:
        category_factory(name="Lamp archive", is_active=False)
        product_factory(name="Old lamp", is_active=False)

        assert await SuggestionGenerator(catalog).autocomplete("lamp") == []
