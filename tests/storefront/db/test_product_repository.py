"""Integration tests for :class:`ProductRepository` against SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.models import Product
from storefront.db.repositories import ProductRepository
from storefront.schemas.product import ProductRecommendation


@pytest.mark.asyncio
async def test_find_featured_returns_only_flagged_products(
    repository: ProductRepository, catalog: dict[str, Product]
) -> None:
    featured = await repository.find_featured()

    assert [product.id for product in featured] == ["p-jeans", "p-tee"]


@pytest.mark.asyncio
async def test_find_by_category_matches_exactly(
    repository: ProductRepository, catalog: dict[str, Product]
) -> None:
    assert [p.id for p in await repository.find_by_category("shoes")] == ["p-shoes"]
    assert await repository.find_by_category("Shoes") == []


@pytest.mark.asyncio
async def test_create_product_assigns_id_and_defaults(
    repository: ProductRepository, session: AsyncSession
) -> None:
    product = await repository.create_product(
        name="Scarf", description="Wool scarf", price=19.0, category="accessories"
    )
    await repository.commit()

    assert len(product.id) == 32
    assert product.image == ""
    assert product.is_featured is False
    assert product.created_at is not None
    assert await session.get(Product, product.id) is product


@pytest.mark.asyncio
async def test_negative_price_violates_constraint(repository: ProductRepository) -> None:
    with pytest.raises(IntegrityError):
        await repository.create_product(
            name="Broken", description="Should fail", price=-1.0, category="misc"
        )


@pytest.mark.asyncio
async def test_save_product_persists_flag_change(
    repository: ProductRepository, session: AsyncSession, catalog: dict[str, Product]
) -> None:
    product = await repository.get_product("p-bag")
    assert product is not None
    product.is_featured = True

    await repository.save_product(product)
    await repository.commit()

    assert [p.id for p in await repository.find_featured()] == ["p-jeans", "p-tee", "p-bag"]


@pytest.mark.asyncio
async def test_delete_product_removes_row(
    repository: ProductRepository, catalog: dict[str, Product]
) -> None:
    product = await repository.get_product("p-shoes")
    assert product is not None

    await repository.delete_product(product)
    await repository.commit()

    assert await repository.get_product("p-shoes") is None
    assert len(await repository.list_products()) == len(catalog) - 1


@pytest.mark.asyncio
async def test_sample_products_returns_distinct_projection(
    repository: ProductRepository, catalog: dict[str, Product]
) -> None:
    sample = await repository.sample_products(4)

    assert len(sample) == 4
    assert len({item.id for item in sample}) == 4
    assert all(isinstance(item, ProductRecommendation) for item in sample)
    assert set(ProductRecommendation.model_fields) == {
        "id",
        "name",
        "description",
        "image",
        "price",
    }
    jeans = catalog["p-jeans"]
    for item in sample:
        if item.id == "p-jeans":
            assert item.image == jeans.image
            assert item.price == jeans.price


@pytest.mark.asyncio
async def test_sample_products_is_capped_by_catalog_size(
    repository: ProductRepository, catalog: dict[str, Product]
) -> None:
    sample = await repository.sample_products(10)

    assert sorted(item.id for item in sample) == sorted(catalog)


@pytest.mark.asyncio
async def test_sample_products_on_empty_catalog(repository: ProductRepository) -> None:
    assert await repository.sample_products(4) == []
