"""Tests for sort resolution and multi-key ordering."""

from collections.abc import Callable
from typing import Any

import pytest

from shopsearch.schemas.search import SortField, SortOrder
from shopsearch.services.catalog.memory_store import sort_products
from shopsearch.services.ordering import (
    NEWEST_FIRST,
    RELEVANCE_WITH_QUERY,
    RELEVANCE_WITHOUT_QUERY,
    OrderField,
    OrderKey,
    build_order_by,
    resolve_sort_order,
)


class TestResolveSortOrder:
    @pytest.mark.parametrize("field", [SortField.PRICE, SortField.NAME])
    def test_price_and_name_ascend_by_default(self, field: SortField) -> None:
        assert resolve_sort_order(field, None) is SortOrder.ASC

    @pytest.mark.parametrize(
        "field",
        [SortField.RATING, SortField.REVIEWS, SortField.CREATED_AT, SortField.POPULARITY],
    )
    def test_other_fields_descend_by_default(self, field: SortField) -> None:
        assert resolve_sort_order(field, None) is SortOrder.DESC

    def test_explicit_order_wins(self) -> None:
        assert resolve_sort_order(SortField.PRICE, SortOrder.DESC) is SortOrder.DESC


class TestBuildOrderBy:
    """Tests for build_order_by()."""

    def test_relevance_depends_on_query(self) -> None:
        assert build_order_by(SortField.RELEVANCE, has_query=True) == RELEVANCE_WITH_QUERY
        assert build_order_by(SortField.RELEVANCE, has_query=False) == RELEVANCE_WITHOUT_QUERY

    def test_price_follows_direction(self) -> None:
        assert build_order_by(SortField.PRICE, SortOrder.DESC) == (
            OrderKey(OrderField.PRICE, descending=True),
        )
        assert build_order_by(SortField.PRICE) == (OrderKey(OrderField.PRICE),)

    def test_rating_breaks_ties_by_reviews(self) -> None:
        assert build_order_by(SortField.RATING, SortOrder.ASC) == (
            OrderKey(OrderField.AVERAGE_RATING),
            OrderKey(OrderField.REVIEW_COUNT, descending=True),
        )

    def test_discount_orders_by_original_price(self) -> None:
        assert build_order_by(SortField.DISCOUNT, SortOrder.ASC) == (
            OrderKey(OrderField.HAS_ORIGINAL_PRICE, descending=True),
            OrderKey(OrderField.ORIGINAL_PRICE, descending=True),
        )

    def test_unknown_field_falls_back_to_newest(self) -> None:
        assert build_order_by("shuffle") == NEWEST_FIRST


class TestSortProducts:
    """Tests for the in-memory multi-key sort."""

    def test_price_ascending_is_non_decreasing(self, product_factory: Callable[..., Any]) -> None:
        products = [product_factory(price=p) for p in (30, 5, 12.5, 5, 99)]
        ordered = sort_products(products, build_order_by(SortField.PRICE, SortOrder.ASC))
        prices = [p.price for p in ordered]
        assert prices == sorted(prices)

    def test_price_descending_is_non_increasing(self, product_factory: Callable[..., Any]) -> None:
        products = [product_factory(price=p) for p in (30, 5, 12.5, 5, 99)]
        ordered = sort_products(products, build_order_by(SortField.PRICE, SortOrder.DESC))
        prices = [p.price for p in ordered]
        assert prices == sorted(prices, reverse=True)

    def test_missing_values_sort_last(self, product_factory: Callable[..., Any]) -> None:
        plain = product_factory(name="Plain", price=10)
        cheap = product_factory(name="Cheap", price=5, original_price=8)
        pricey = product_factory(name="Pricey", price=50, original_price=90)
        ordered = sort_products([plain, cheap, pricey], build_order_by(SortField.DISCOUNT))
        assert [p.name for p in ordered] == ["Pricey", "Cheap", "Plain"]

    def test_secondary_keys_break_ties(self, product_factory: Callable[..., Any]) -> None:
        a = product_factory(name="A", average_rating=4.5, review_count=3)
        b = product_factory(name="B", average_rating=4.5, review_count=40)
        c = product_factory(name="C", average_rating=5.0, review_count=1)
        ordered = sort_products([a, b, c], build_order_by(SortField.RATING))
        assert [p.name for p in ordered] == ["C", "B", "A"]
