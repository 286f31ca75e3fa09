"""Shared fixtures for database, cache, and service tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storefront.cache import CacheClient
from storefront.db.models import Base, Product
from storefront.db.repositories import ProductRepository
from storefront.services.featured_cache import FeaturedProductsCache
from storefront.services.product_service import ProductService
from tests.storefront.support.doubles import InMemoryRedis, RecordingImageHost


@pytest_asyncio.fixture
async def session() -> AsyncIterator[AsyncSession]:
    """Provide an in-memory SQLite session for integration-style tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(engine, expire_on_commit=False)
    async with async_session() as db_session:
        yield db_session
        if db_session.in_transaction():
            await db_session.rollback()
    await engine.dispose()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def cache_client(fake_redis: InMemoryRedis) -> CacheClient:
    return CacheClient(fake_redis)


@pytest.fixture
def repository(session: AsyncSession) -> ProductRepository:
    return ProductRepository(session)


@pytest.fixture
def image_host() -> RecordingImageHost:
    return RecordingImageHost()


@pytest.fixture
def featured_cache(
    repository: ProductRepository, cache_client: CacheClient
) -> FeaturedProductsCache:
    return FeaturedProductsCache(repository, cache_client)


@pytest.fixture
def product_service(
    repository: ProductRepository,
    featured_cache: FeaturedProductsCache,
    image_host: RecordingImageHost,
) -> ProductService:
    return ProductService(
        repository, featured_cache=featured_cache, image_host=image_host
    )


@pytest_asyncio.fixture
async def catalog(session: AsyncSession) -> dict[str, Product]:
    """Seed a small catalog: two featured products and three regular ones."""
    rows = [
        Product(
            id="p-jeans",
            name="Slim Jeans",
            description="Dark wash denim",
            price=59.0,
            category="jeans",
            is_featured=True,
            image="https://res.cloudinary.com/demo/image/upload/v1/products/jeans.jpg",
        ),
        Product(
            id="p-tee",
            name="Basic Tee",
            description="Cotton t-shirt",
            price=15.5,
            category="t-shirts",
            is_featured=True,
        ),
        Product(
            id="p-shoes",
            name="Runner",
            description="Lightweight sneaker",
            price=89.99,
            category="shoes",
        ),
        Product(id="p-bag", name="Tote", description="Canvas tote bag", price=25.0, category="bags"),
        Product(
            id="p-jacket",
            name="Denim Jacket",
            description="Classic trucker",
            price=99.0,
            category="jackets",
        ),
    ]
    session.add_all(rows)
    await session.commit()
    return {row.id: row for row in rows}
