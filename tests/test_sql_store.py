"""Tests for the SQL catalog store.

Predicates and orderings are compiled against the PostgreSQL dialect and
inspected as SQL text; no database is needed. Session failures are simulated
with a stub session factory.
"""

import uuid
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from shopsearch.core.exceptions import CatalogUnavailableError
from shopsearch.schemas.search import SearchFilters
from shopsearch.services.catalog.sql_store import (
    SqlCatalogStore,
    compile_order_by,
    compile_predicate,
    escape_like,
)
from shopsearch.services.ordering import NEWEST_FIRST, OrderField, OrderKey
from shopsearch.services.predicates import (
    AllOf,
    AnyOf,
    Contains,
    Discounted,
    Flag,
    FlagEquals,
    HasRelated,
    IdEquals,
    IdField,
    Not,
    Range,
    RangeField,
    Relation,
    TagSlugIn,
    TextField,
    build_search_predicate,
)


def _compile(expr: Any) -> tuple[str, dict[str, Any]]:
    compiled = expr.compile(dialect=postgresql.dialect())
    return str(compiled), dict(compiled.params)


class TestEscapeLike:
    def test_plain_text_unchanged(self) -> None:
        assert escape_like("desk lamp") == "desk lamp"

    def test_wildcards_escaped(self) -> None:
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_escape_character_doubled(self) -> None:
        assert escape_like("a\\b") == "a\\\\b"


class TestCompilePredicate:
    """Tests for compile_predicate()."""

    def test_contains_is_escaped_ilike(self) -> None:
        sql, params = _compile(compile_predicate(Contains(TextField.NAME, "100%")))
        assert "ILIKE" in sql
        assert "ESCAPE" in sql
        assert "%100\\%%" in params.values()

    def test_category_and_tag_text_use_exists(self) -> None:
        sql, _ = _compile(compile_predicate(Contains(TextField.CATEGORY_NAME, "lamp")))
        assert "EXISTS" in sql
        assert "categories.name" in sql

        sql, _ = _compile(compile_predicate(Contains(TextField.TAG_NAME, "brass")))
        assert "EXISTS" in sql
        assert "tags.name" in sql

    def test_price_bounds_bind_decimals(self) -> None:
        sql, params = _compile(compile_predicate(Range(RangeField.PRICE, gte=10.5, lte=20)))
        assert "products.price >=" in sql
        assert "products.price <=" in sql
        assert Decimal("10.5") in params.values()
        assert Decimal("20") in params.values()

    def test_strict_lower_bound(self) -> None:
        sql, params = _compile(compile_predicate(Range(RangeField.STOCK, gt=0)))
        assert "products.stock >" in sql
        assert 0 in params.values()

    def test_empty_range_is_true(self) -> None:
        sql, _ = _compile(compile_predicate(Range(RangeField.PRICE)))
        assert sql == "true"

    def test_empty_any_of_is_false(self) -> None:
        sql, _ = _compile(compile_predicate(AnyOf(())))
        assert sql == "false"

    def test_flag_and_negated_id(self) -> None:
        product_id = uuid.uuid4()
        sql, params = _compile(
            compile_predicate(
                AllOf(
                    (
                        FlagEquals(Flag.IS_ACTIVE, True),
                        Not(IdEquals(IdField.ID, product_id)),
                    )
                )
            )
        )
        assert "products.is_active IS true" in sql
        assert "products.id !=" in sql or "NOT" in sql
        assert product_id in params.values()

    def test_discounted(self) -> None:
        sql, _ = _compile(compile_predicate(Discounted()))
        assert "products.original_price IS NOT NULL" in sql
        assert "products.original_price > products.price" in sql

    def test_tags_and_relations(self) -> None:
        sql, _ = _compile(compile_predicate(TagSlugIn(("sale", "new"))))
        assert "EXISTS" in sql
        assert "tags.slug IN" in sql

        sql, _ = _compile(compile_predicate(HasRelated(Relation.IMAGES)))
        assert "product_images" in sql

        sql, _ = _compile(compile_predicate(HasRelated(Relation.VARIANTS)))
        assert "product_variants" in sql

    def test_full_filter_set_compiles(self) -> None:
        filters = SearchFilters(
            query="lamp",
            category_slug="lighting",
            min_price=10,
            max_price=90,
            min_rating=4,
            in_stock=True,
            is_digital=False,
            on_sale=True,
            has_reviews=True,
            tags=["brass"],
            has_images=True,
        )
        sql, _ = _compile(compile_predicate(build_search_predicate(filters)))
        assert sql.count("ILIKE") == 4
        assert "products.average_rating >=" in sql
        assert "products.review_count >" in sql

    def test_unknown_predicate_raises(self) -> None:
        with pytest.raises(TypeError):
            compile_predicate(object())  # type: ignore[arg-type]


class TestCompileOrderBy:
    """Tests for compile_order_by()."""

    def test_nulls_last_and_stable_tiebreak(self) -> None:
        clauses = compile_order_by(NEWEST_FIRST)
        rendered = [_compile(c)[0] for c in clauses]
        assert rendered == [
            "products.created_at DESC NULLS LAST",
            "products.id ASC",
        ]

    def test_ascending_key(self) -> None:
        rendered = _compile(compile_order_by((OrderKey(OrderField.PRICE),))[0])[0]
        assert rendered == "products.price ASC NULLS LAST"


class _BrokenSession:
    """Session whose connection is gone."""

    async def __aenter__(self) -> "_BrokenSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def execute(self, _stmt: Any) -> Any:
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))


class _UnreachableSession:
    async def __aenter__(self) -> "_UnreachableSession":
        raise OSError("network unreachable")

    async def __aexit__(self, *exc_info: object) -> None:
        return None


class TestSessionFailures:
    """Database failures surface as CatalogUnavailableError."""

    @pytest.mark.asyncio
    async def test_query_failure(self) -> None:
        store = SqlCatalogStore(lambda: _BrokenSession())  # type: ignore[arg-type]
        with pytest.raises(CatalogUnavailableError) as exc_info:
            await store.count_products(AllOf(()))
        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_connection_failure(self) -> None:
        store = SqlCatalogStore(lambda: _UnreachableSession())  # type: ignore[arg-type]
        with pytest.raises(CatalogUnavailableError):
            await store.get_category_by_slug("lamps")
