"""PostgreSQL catalog store built on SQLAlchemy's async ORM."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    ColumnElement,
    Select,
    and_,
    case,
    false,
    func,
    not_,
    or_,
    select,
    true,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased, joinedload, selectinload

from shopsearch.core.exceptions import CatalogUnavailableError
from shopsearch.models import Category, Product, Tag, product_tags
from shopsearch.schemas.catalog import CategoryRef, ImageRef, ProductRecord, TagRef
from shopsearch.services.catalog.store import InventoryBreakdown, PriceStats
from shopsearch.services.ordering import OrderBy, OrderField
from shopsearch.services.predicates import (
    AllOf,
    AnyOf,
    Bound,
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
    RangeField,
    Relation,
    TagIdIn,
    TagSlugIn,
    TextField,
)

logger = logging.getLogger(__name__)

_LIKE_ESCAPE = "\\"

_RANGE_COLUMNS: dict[RangeField, Any] = {
    RangeField.PRICE: Product.price,
    RangeField.AVERAGE_RATING: Product.average_rating,
    RangeField.REVIEW_COUNT: Product.review_count,
    RangeField.STOCK: Product.stock,
    RangeField.CREATED_AT: Product.created_at,
}

# Numeric columns are bound as Decimal so asyncpg encodes them losslessly
_DECIMAL_FIELDS = frozenset({RangeField.PRICE, RangeField.AVERAGE_RATING})

_ORDER_COLUMNS: dict[OrderField, Any] = {
    OrderField.IS_FEATURED: Product.is_featured,
    OrderField.AVERAGE_RATING: Product.average_rating,
    OrderField.REVIEW_COUNT: Product.review_count,
    OrderField.CREATED_AT: Product.created_at,
    OrderField.WISHLIST_COUNT: Product.wishlist_count,
    OrderField.VIEW_COUNT: Product.view_count,
    OrderField.PRICE: Product.price,
    OrderField.NAME: Product.name,
    OrderField.HAS_ORIGINAL_PRICE: Product.original_price.isnot(None),
    OrderField.ORIGINAL_PRICE: Product.original_price,
}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text only ever matches literally."""
    return (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _contains(column: Any, text: str) -> ColumnElement[bool]:
    return column.ilike(f"%{escape_like(text)}%", escape=_LIKE_ESCAPE)


def _bind(field: RangeField, value: Bound) -> Bound | Decimal:
    if field in _DECIMAL_FIELDS and not isinstance(value, datetime):
        return Decimal(str(value))
    return value


def _compile_range(clause: Range) -> ColumnElement[bool]:
    column = _RANGE_COLUMNS[clause.field]
    conditions = []
    if clause.gte is not None:
        conditions.append(column >= _bind(clause.field, clause.gte))
    if clause.lte is not None:
        conditions.append(column <= _bind(clause.field, clause.lte))
    if clause.gt is not None:
        conditions.append(column > _bind(clause.field, clause.gt))
    return and_(*conditions) if conditions else true()


def _compile_contains(clause: Contains) -> ColumnElement[bool]:
    if clause.field is TextField.CATEGORY_NAME:
        return Product.category.has(_contains(Category.name, clause.text))
    if clause.field is TextField.TAG_NAME:
        return Product.tags.any(_contains(Tag.name, clause.text))
    return _contains(getattr(Product, clause.field.value), clause.text)


def compile_predicate(predicate: Predicate) -> ColumnElement[bool]:
    """Translate a predicate tree into a SQLAlchemy boolean expression."""
    if isinstance(predicate, AllOf):
        if not predicate.clauses:
            return true()
        return and_(*(compile_predicate(c) for c in predicate.clauses))
    if isinstance(predicate, AnyOf):
        if not predicate.clauses:
            return false()
        return or_(*(compile_predicate(c) for c in predicate.clauses))
    if isinstance(predicate, Not):
        return not_(compile_predicate(predicate.clause))
    if isinstance(predicate, FlagEquals):
        return getattr(Product, predicate.field.value).is_(predicate.value)
    if isinstance(predicate, IdEquals):
        if predicate.field is IdField.CATEGORY_ID:
            return Product.category_id == predicate.value
        return Product.id == predicate.value
    if isinstance(predicate, Range):
        return _compile_range(predicate)
    if isinstance(predicate, Contains):
        return _compile_contains(predicate)
    if isinstance(predicate, CategorySlugEquals):
        return Product.category.has(Category.slug == predicate.slug)
    if isinstance(predicate, TagSlugIn):
        return Product.tags.any(Tag.slug.in_(predicate.slugs))
    if isinstance(predicate, TagIdIn):
        return Product.tags.any(Tag.id.in_(predicate.ids))
    if isinstance(predicate, HasRelated):
        if predicate.relation is Relation.IMAGES:
            return Product.images.any()
        return Product.variants.any()
    if isinstance(predicate, Discounted):
        return and_(
            Product.original_price.isnot(None),
            Product.original_price > Product.price,
        )
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def compile_order_by(order_by: OrderBy) -> list[Any]:
    """Translate an ordering into ORDER BY clauses, nulls last.

    The primary key is appended so pages stay stable across requests.
    """
    clauses = []
    for key in order_by:
        column = _ORDER_COLUMNS[key.field]
        clauses.append(column.desc().nulls_last() if key.descending else column.asc().nulls_last())
    clauses.append(Product.id.asc())
    return clauses


def _to_record(product: Product, has_variants: bool) -> ProductRecord:
    return ProductRecord(
        id=product.id,
        name=product.name,
        slug=product.slug,
        description=product.description,
        short_description=product.short_description,
        price=float(product.price),
        original_price=(
            float(product.original_price) if product.original_price is not None else None
        ),
        average_rating=float(product.average_rating or 0),
        review_count=product.review_count,
        stock=product.stock,
        is_digital=product.is_digital,
        is_featured=product.is_featured,
        is_active=product.is_active,
        track_inventory=product.track_inventory,
        wishlist_count=product.wishlist_count or 0,
        view_count=product.view_count or 0,
        download_count=product.download_count or 0,
        created_at=product.created_at,
        category=(
            CategoryRef(
                id=product.category.id,
                name=product.category.name,
                slug=product.category.slug,
            )
            if product.category is not None
            else None
        ),
        images=[
            ImageRef(id=img.id, url=img.url, alt_text=img.alt_text, is_main=img.is_main)
            for img in product.images
        ],
        tags=[TagRef(id=tag.id, name=tag.name, slug=tag.slug) for tag in product.tags],
        has_variants=bool(has_variants),
    )


def _to_category_ref(category: Category) -> CategoryRef:
    return CategoryRef(id=category.id, name=category.name, slug=category.slug)


def product_select() -> Select[Any]:
    """Base SELECT for product records, with relations eagerly loaded."""
    return select(Product, Product.variants.any().label("has_variants")).options(
        joinedload(Product.category),
        selectinload(Product.images),
        selectinload(Product.tags),
    )


class SqlCatalogStore:
    """Catalog store over PostgreSQL.

    Each call opens its own session: an ``AsyncSession`` must not be shared
    by concurrent tasks, and the search engine fans out reads per request.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.exception("Catalog query failed")
            raise CatalogUnavailableError() from exc

    async def find_products(
        self,
        predicate: Predicate,
        order_by: OrderBy,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ProductRecord]:
        stmt = (
            product_select()
            .where(compile_predicate(predicate))
            .order_by(*compile_order_by(order_by))
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [_to_record(row.Product, row.has_variants) for row in rows]

    async def count_products(self, predicate: Predicate) -> int:
        stmt = select(func.count()).select_from(Product).where(compile_predicate(predicate))
        async with self._session() as session:
            return (await session.execute(stmt)).scalar() or 0

    async def get_product(self, product_id: UUID) -> ProductRecord | None:
        stmt = product_select().where(Product.id == product_id)
        async with self._session() as session:
            row = (await session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _to_record(row.Product, row.has_variants)

    async def get_category_by_slug(self, slug: str) -> CategoryRef | None:
        stmt = select(Category).where(Category.slug == slug)
        async with self._session() as session:
            category = (await session.execute(stmt)).scalar_one_or_none()
        return _to_category_ref(category) if category is not None else None

    async def get_categories(self, category_ids: Sequence[UUID]) -> list[CategoryRef]:
        if not category_ids:
            return []
        stmt = select(Category).where(Category.id.in_(category_ids))
        async with self._session() as session:
            categories = (await session.execute(stmt)).scalars().all()
        return [_to_category_ref(c) for c in categories]

    async def count_by_category(self, predicate: Predicate) -> list[tuple[UUID, int]]:
        stmt = (
            select(Product.category_id, func.count().label("count"))
            .where(compile_predicate(predicate), Product.category_id.isnot(None))
            .group_by(Product.category_id)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return [(row.category_id, row.count) for row in rows]

    async def count_by_tag(self, predicate: Predicate, limit: int) -> list[tuple[TagRef, int]]:
        # Aliased so EXISTS clauses on tags inside the predicate stay uncorrelated
        facet_tag = aliased(Tag, name="facet_tag")
        facet_link = product_tags.alias("facet_link")
        count = func.count(Product.id)
        stmt = (
            select(facet_tag.id, facet_tag.name, facet_tag.slug, count.label("count"))
            .join(facet_link, facet_link.c.tag_id == facet_tag.id)
            .join(Product, Product.id == facet_link.c.product_id)
            .where(compile_predicate(predicate))
            .group_by(facet_tag.id, facet_tag.name, facet_tag.slug)
            .order_by(count.desc(), facet_tag.name)
            .limit(limit)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return [(TagRef(id=row.id, name=row.name, slug=row.slug), row.count) for row in rows]

    async def price_stats(self, predicate: Predicate) -> PriceStats:
        stmt = select(
            func.min(Product.price).label("min"),
            func.max(Product.price).label("max"),
            func.count(Product.price).label("count"),
        ).where(compile_predicate(predicate))
        async with self._session() as session:
            row = (await session.execute(stmt)).one()
        return PriceStats(
            min=float(row.min) if row.min is not None else None,
            max=float(row.max) if row.max is not None else None,
            count=row.count or 0,
        )

    async def count_by_price_bucket(
        self,
        predicate: Predicate,
        low: float,
        step: float,
        buckets: int,
    ) -> dict[int, int]:
        bucket = func.least(
            func.floor((Product.price - Decimal(str(low))) / Decimal(str(step))),
            buckets - 1,
        )
        stmt = (
            select(bucket.label("bucket"), func.count().label("count"))
            .where(compile_predicate(predicate))
            .group_by("bucket")
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return {max(0, int(row.bucket)): row.count for row in rows}

    async def count_by_rating(self, predicate: Predicate) -> dict[int, int]:
        stmt = (
            select(
                func.floor(Product.average_rating).label("rating"),
                func.count().label("count"),
            )
            .where(compile_predicate(predicate), Product.average_rating > 0)
            .group_by("rating")
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return {int(row.rating): row.count for row in rows}

    async def inventory_breakdown(self, predicate: Predicate) -> InventoryBreakdown:
        stmt = select(
            func.count(case((Product.stock > 0, 1), else_=None)).label("in_stock"),
            func.count(case((Product.stock <= 0, 1), else_=None)).label("out_of_stock"),
            func.count(case((Product.is_digital.is_(True), 1), else_=None)).label("digital"),
            func.count(case((Product.is_digital.is_(False), 1), else_=None)).label("physical"),
            func.count(case((Product.is_featured.is_(True), 1), else_=None)).label("featured"),
        ).where(compile_predicate(predicate))
        async with self._session() as session:
            row = (await session.execute(stmt)).one()
        return InventoryBreakdown(
            in_stock=row.in_stock,
            out_of_stock=row.out_of_stock,
            digital=row.digital,
            physical=row.physical,
            featured=row.featured,
        )

    async def find_category_suggestions(
        self, text: str, limit: int
    ) -> list[tuple[CategoryRef, int]]:
        product_count = func.count(Product.id)
        stmt = (
            select(Category, product_count.label("product_count"))
            .outerjoin(Product, Product.category_id == Category.id)
            .where(Category.is_active.is_(True), _contains(Category.name, text))
            .group_by(Category.id)
            .order_by(product_count.desc(), Category.name)
            .limit(limit)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return [(_to_category_ref(row.Category), row.product_count) for row in rows]
