"""Pytest configuration and fixtures for the Shop Search test suite.

Provides:
- In-memory catalog store (no database needed)
- Recording analytics fake
- Disabled rate limiting
- Factory fixtures for categories, tags and products
- HTTP clients with the catalog and analytics dependencies overridden
"""

import itertools
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shopsearch.core.deps import get_catalog_store, get_search_analytics
from shopsearch.core.rate_limit import limiter
from shopsearch.main import app
from shopsearch.schemas.catalog import CategoryRef, ImageRef, ProductRecord, TagRef
from shopsearch.schemas.search import SearchEvent
from shopsearch.services.catalog.memory_store import InMemoryCatalogStore
from shopsearch.services.search_service import SearchService

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


def _slugify(text: str) -> str:
    return "-".join(text.lower().split())


# ---------------------------------------------------------------------------
# Analytics fake
# ---------------------------------------------------------------------------


class RecordingAnalytics:
    """Collects tracked events instead of publishing them."""

    def __init__(self) -> None:
        self.events: list[SearchEvent] = []

    def track(self, event: SearchEvent) -> None:
        self.events.append(event)


class FailingAnalytics:
    """Analytics collaborator that is down."""

    def track(self, event: SearchEvent) -> None:  # noqa: ARG002
        raise ConnectionError("broker unreachable")


@pytest.fixture
def analytics() -> RecordingAnalytics:
    return RecordingAnalytics()


@pytest.fixture
def failing_analytics() -> FailingAnalytics:
    return FailingAnalytics()


# ---------------------------------------------------------------------------
# Catalog + factories
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog() -> InMemoryCatalogStore:
    """Fresh, empty in-memory catalog per test."""
    return InMemoryCatalogStore()


@pytest.fixture
def category_factory(catalog: InMemoryCatalogStore) -> Callable[..., CategoryRef]:
    """Factory that registers categories in the in-memory catalog."""

    def _create(
        *,
        name: str = "Test Category",
        slug: str | None = None,
        is_active: bool = True,
    ) -> CategoryRef:
        category = CategoryRef(id=uuid.uuid4(), name=name, slug=slug or _slugify(name))
        return catalog.add_category(category, is_active=is_active)

    return _create


@pytest.fixture
def tag_factory() -> Callable[..., TagRef]:
    """Factory that builds tags (attached to products through ``product_factory``)."""

    def _create(*, name: str = "test-tag", slug: str | None = None) -> TagRef:
        return TagRef(id=uuid.uuid4(), name=name, slug=slug or _slugify(name))

    return _create


@pytest.fixture
def product_factory(catalog: InMemoryCatalogStore) -> Callable[..., ProductRecord]:
    """Factory that adds products to the in-memory catalog.

    Products get strictly increasing ``created_at`` values in creation order
    unless one is given, so "newest first" is deterministic.
    """
    counter = itertools.count()

    def _create(
        *,
        name: str = "Test Product",
        slug: str | None = None,
        price: float = 10.0,
        original_price: float | None = None,
        description: str | None = None,
        short_description: str | None = None,
        category: CategoryRef | None = None,
        tags: list[TagRef] | None = None,
        images: list[ImageRef] | None = None,
        average_rating: float = 0.0,
        review_count: int = 0,
        stock: int = 10,
        is_digital: bool = False,
        is_featured: bool = False,
        is_active: bool = True,
        track_inventory: bool = True,
        wishlist_count: int = 0,
        view_count: int = 0,
        download_count: int = 0,
        has_variants: bool = False,
        created_at: datetime | None = None,
    ) -> ProductRecord:
        product = ProductRecord(
            id=uuid.uuid4(),
            name=name,
            slug=slug or _slugify(name),
            description=description,
            short_description=short_description,
            price=price,
            original_price=original_price,
            average_rating=average_rating,
            review_count=review_count,
            stock=stock,
            is_digital=is_digital,
            is_featured=is_featured,
            is_active=is_active,
            track_inventory=track_inventory,
            wishlist_count=wishlist_count,
            view_count=view_count,
            download_count=download_count,
            created_at=created_at or BASE_TIME + timedelta(minutes=next(counter)),
            category=category,
            images=images or [],
            tags=tags or [],
            has_variants=has_variants,
        )
        return catalog.add_product(product)

    return _create


@pytest.fixture
def image_factory() -> Callable[..., ImageRef]:
    def _create(*, is_main: bool = True, url: str | None = None) -> ImageRef:
        image_id = uuid.uuid4()
        return ImageRef(
            id=image_id,
            url=url or f"https://cdn.example.com/{image_id}.jpg",
            alt_text="Product image",
            is_main=is_main,
        )

    return _create


@pytest.fixture
def search_service(
    catalog: InMemoryCatalogStore, analytics: RecordingAnalytics
) -> SearchService:
    return SearchService(catalog, analytics)


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    catalog: InMemoryCatalogStore,
    analytics: RecordingAnalytics,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client backed by the in-memory catalog and recording analytics."""
    app.dependency_overrides[get_catalog_store] = lambda: catalog
    app.dependency_overrides[get_search_analytics] = lambda: analytics

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
