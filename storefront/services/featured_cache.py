"""Read-through cache for the featured products listing."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from storefront.cache import FEATURED_PRODUCTS_KEY, CacheClient, CacheWriteError
from storefront.db.models import Product as ProductModel
from storefront.schemas.product import Product
from storefront.services.results import OperationResult

logger = logging.getLogger(__name__)


class FeaturedProductSource(Protocol):
    """Durable store surface required by :class:`FeaturedProductsCache`."""

    async def find_featured(self) -> Sequence[ProductModel]:
        """Return every product flagged as featured."""


def _to_schema(products: Sequence[ProductModel]) -> list[Product]:
    return [Product.model_validate(product) for product in products]


def _encode(products: Sequence[Product]) -> list[dict[str, Any]]:
    return [product.model_dump(mode="json", by_alias=True) for product in products]


class FeaturedProductsCache:
    """Keep the featured listing in Redis consistent with the product table.

    The cached entry lives under a single fixed key and is always a complete
    snapshot of ``is_featured = true`` rows; it is never patched in place.
    Reads fill the key on a miss, :meth:`refresh` overwrites it after writes.
    Cache failures never escape: they are logged and reported through the
    returned :class:`OperationResult` while the database result is served.
    """

    def __init__(
        self,
        source: FeaturedProductSource,
        client: CacheClient,
        *,
        key: str = FEATURED_PRODUCTS_KEY,
    ) -> None:
        self._source = source
        self._client = client
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def _read_cached(self) -> list[Product] | None:
        cached = await self._client.get_json(self._key)
        if cached is None:
            return None
        if not isinstance(cached, list):
            logger.warning("Ignoring malformed featured products cache entry")
            return None
        try:
            return [Product.model_validate(item) for item in cached]
        except ValidationError as exc:
            logger.warning("Ignoring featured products cache entry: %s", exc)
            return None

    async def _write(
        self, products: list[Product], result: OperationResult[Any], operation: str
    ) -> None:
        try:
            await self._client.set_json(self._key, _encode(products))
        except CacheWriteError as exc:
            logger.warning("Featured products cache %s failed: %s", operation, exc)
            result.record_failure(operation, exc)

    async def get_featured(self) -> OperationResult[list[Product]]:
        """Return featured products, consulting the cache before the database."""

        cached = await self._read_cached()
        if cached is not None:
            return OperationResult(cached)

        products = _to_schema(await self._source.find_featured())
        result = OperationResult(products)
        if not products:
            # Nothing to cache; the next read queries the database again.
            return result

        await self._write(products, result, "featured_cache_populate")
        return result

    async def refresh(self) -> OperationResult[list[Product]]:
        """Re-query featured products and overwrite the cached snapshot.

        Unlike :meth:`get_featured` this ignores whatever is cached and always
        writes, including an empty list once the last product is unfeatured.
        Database failures while re-querying are recorded rather than raised
        because callers run this after their own write has committed.
        """

        result: OperationResult[list[Product]] = OperationResult([])
        try:
            products = _to_schema(await self._source.find_featured())
        except Exception as exc:
            logger.warning("Featured products refresh query failed: %s", exc)
            result.record_failure("featured_cache_refresh", exc)
            return result

        result.value = products
        await self._write(products, result, "featured_cache_refresh")
        return result


__all__ = ["FeaturedProductSource", "FeaturedProductsCache"]
