"""Business logic powering the products API endpoints.

The service coordinates three collaborators:

* :class:`ProductRepository` – the durable source of truth.
* :class:`FeaturedProductsCache` – Redis snapshot of featured products.
* :class:`ImageHost` – external storage for product images.

Database failures propagate to the caller.  Failures of follow-up work that
happens after a commit (cache refreshes, image cleanup) are logged and
collected on the returned :class:`OperationResult` instead.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from storefront.db.models import Product as ProductModel
from storefront.schemas.product import Product, ProductCreate, ProductRecommendation
from storefront.services.featured_cache import FeaturedProductsCache
from storefront.services.image_host import ImageHost, public_id_from_url
from storefront.services.results import OperationResult

logger = logging.getLogger(__name__)


class ProductNotFoundError(LookupError):
    """Raised when a product id does not exist in the durable store."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ProductRepositoryProtocol(Protocol):
    """Repository surface required by :class:`ProductService`."""

    async def list_products(self) -> Sequence[ProductModel]: ...

    async def find_featured(self) -> Sequence[ProductModel]: ...

    async def find_by_category(self, category: str) -> Sequence[ProductModel]: ...

    async def get_product(self, product_id: str) -> ProductModel | None: ...

    async def create_product(
        self,
        *,
        name: str,
        description: str,
        price: float,
        category: str,
        image: str = "",
    ) -> ProductModel: ...

    async def save_product(self, product: ProductModel) -> ProductModel: ...

    async def delete_product(self, product: ProductModel) -> None: ...

    async def sample_products(self, size: int) -> list[ProductRecommendation]: ...

    async def commit(self) -> None: ...


class ProductService:
    """Orchestrates persistence, featured caching, and image hosting."""

    def __init__(
        self,
        repository: ProductRepositoryProtocol,
        *,
        featured_cache: FeaturedProductsCache,
        image_host: ImageHost,
        recommendation_size: int = 4,
    ) -> None:
        self._repository = repository
        self._featured_cache = featured_cache
        self._image_host = image_host
        self._recommendation_size = recommendation_size

    async def list_products(self) -> list[Product]:
        products = await self._repository.list_products()
        return [Product.model_validate(product) for product in products]

    async def get_featured_products(self) -> OperationResult[list[Product]]:
        return await self._featured_cache.get_featured()

    async def list_by_category(self, category: str) -> list[Product]:
        products = await self._repository.find_by_category(category)
        return [Product.model_validate(product) for product in products]

    async def recommend_products(self, size: int | None = None) -> list[ProductRecommendation]:
        return await self._repository.sample_products(size or self._recommendation_size)

    async def create_product(self, payload: ProductCreate) -> OperationResult[Product]:
        """Upload the optional image, then persist the product.

        An upload failure aborts creation: :class:`ImageHostError` propagates
        and nothing is written to the database.
        """

        image_url = ""
        if payload.image:
            upload = await self._image_host.upload(payload.image)
            image_url = upload.secure_url

        product = await self._repository.create_product(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            category=payload.category,
            image=image_url,
        )
        await self._repository.commit()
        logger.info("Created product %s in category %s", product.id, product.category)
        return OperationResult(Product.model_validate(product))

    async def toggle_featured(self, product_id: str) -> OperationResult[Product]:
        """Flip the featured flag, commit, then rebuild the featured snapshot."""

        product = await self._repository.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        product.is_featured = not product.is_featured
        product = await self._repository.save_product(product)
        await self._repository.commit()
        logger.info("Product %s featured flag set to %s", product.id, product.is_featured)

        result = OperationResult(Product.model_validate(product))
        result.merge(await self._featured_cache.refresh())
        return result

    async def delete_product(self, product_id: str) -> OperationResult[None]:
        """Delete a product, cleaning up its hosted image on a best-effort basis."""

        product = await self._repository.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        result: OperationResult[None] = OperationResult(None)
        public_id = public_id_from_url(product.image, self._image_host.folder)
        if public_id:
            try:
                await self._image_host.destroy(public_id)
            except Exception as exc:
                logger.warning(
                    "Failed to delete image %s for product %s: %s", public_id, product_id, exc
                )
                result.record_failure("image_destroy", exc)

        was_featured = product.is_featured
        await self._repository.delete_product(product)
        await self._repository.commit()
        logger.info("Deleted product %s", product_id)

        if was_featured:
            result.merge(await self._featured_cache.refresh())
        return result


__all__ = ["ProductNotFoundError", "ProductRepositoryProtocol", "ProductService"]
