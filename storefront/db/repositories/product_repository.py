"""SQLAlchemy-backed persistence for the product catalog."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.models import Product
from storefront.schemas.product import ProductRecommendation

# Columns exposed by the recommendations projection.
_RECOMMENDATION_COLUMNS = (
    Product.id,
    Product.name,
    Product.description,
    Product.image,
    Product.price,
)


class ProductRepository:
    """Durable source of truth for product records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_products(self) -> Sequence[Product]:
        query = select(Product).order_by(Product.created_at, Product.id)
        result = await self._session.execute(query)
        return result.scalars().all()

    async def find_featured(self) -> Sequence[Product]:
        """Return every featured product in a stable order."""

        query = (
            select(Product)
            .where(Product.is_featured.is_(True))
            .order_by(Product.created_at, Product.id)
        )
        result = await self._session.execute(query)
        return result.scalars().all()

    async def find_by_category(self, category: str) -> Sequence[Product]:
        query = (
            select(Product)
            .where(Product.category == category)
            .order_by(Product.created_at, Product.id)
        )
        result = await self._session.execute(query)
        return result.scalars().all()

    async def get_product(self, product_id: str) -> Product | None:
        return await self._session.get(Product, product_id)

    async def create_product(
        self,
        *,
        name: str,
        description: str,
        price: float,
        category: str,
        image: str = "",
    ) -> Product:
        product = Product(
            name=name,
            description=description,
            price=price,
            category=category,
            image=image,
            is_featured=False,
        )
        self._session.add(product)
        await self._session.flush()
        await self._session.refresh(product)
        return product

    async def save_product(self, product: Product) -> Product:
        """Flush pending attribute changes on ``product`` and reload it."""

        self._session.add(product)
        await self._session.flush()
        await self._session.refresh(product)
        return product

    async def delete_product(self, product: Product) -> None:
        await self._session.delete(product)
        await self._session.flush()

    async def sample_products(self, size: int) -> list[ProductRecommendation]:
        """Return up to ``size`` distinct products chosen uniformly at random."""

        query = (
            select(*_RECOMMENDATION_COLUMNS).order_by(func.random()).limit(size)
        )
        result = await self._session.execute(query)
        return [ProductRecommendation.model_validate(row) for row in result.all()]

    async def commit(self) -> None:
        """Commit the unit of work so later side effects observe durable state."""

        await self._session.commit()
