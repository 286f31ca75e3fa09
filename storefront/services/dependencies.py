"""FastAPI dependency wiring for backend services.

Services never import FastAPI; the factories below resolve infrastructure
(database session, Redis-backed cache client, image host) per request and hand
them to the service constructors.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.cache import CacheClient, get_cache_client
from storefront.db.connection import get_db
from storefront.db.repositories import ProductRepository
from storefront.services.featured_cache import FeaturedProductsCache
from storefront.services.image_host import ImageHost, create_image_host
from storefront.services.product_service import ProductService
from storefront.settings import AppSettings, get_settings


@lru_cache(maxsize=1)
def get_image_host() -> ImageHost:
    """Return the process-wide image host built from the current settings."""

    return create_image_host()


def get_product_service(
    session: AsyncSession = Depends(get_db),
    cache: CacheClient = Depends(get_cache_client),
    image_host: ImageHost = Depends(get_image_host),
    settings: AppSettings = Depends(get_settings),
) -> ProductService:
    """Provide a fully-wired :class:`ProductService` instance."""

    repository = ProductRepository(session)
    return ProductService(
        repository,
        featured_cache=FeaturedProductsCache(repository, cache),
        image_host=image_host,
        recommendation_size=settings.recommendation_sample_size,
    )


__all__ = ["get_image_host", "get_product_service"]
