"""Startup warmup for database, Redis, and the featured products cache.

Every step degrades gracefully: a failure is logged and startup continues,
because the API can still serve requests straight from the database.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


async def warmup_database(resolve_engine: Callable[[], AsyncEngine] | None = None) -> None:
    """Open a pooled connection and issue ``SELECT 1``."""
    try:
        if resolve_engine is None:
            from storefront.db.connection import get_engine as resolve_engine

        start = time.time()
        engine = resolve_engine()
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        elapsed = (time.time() - start) * 1000
        logger.info("Database connection warmed up (%.0fms)", elapsed)
    except Exception as e:
        logger.warning("Database warmup failed: %s", e)


async def warmup_redis() -> None:
    """Establish the shared Redis connection."""
    from storefront.cache import get_redis

    try:
        start = time.time()
        redis = await get_redis()

        if redis is None:
            logger.info("Redis warmup skipped (connection unavailable)")
            return

        await redis.ping()
        elapsed = (time.time() - start) * 1000
        logger.info("Redis connection warmed up (%.0fms)", elapsed)
    except Exception as e:
        logger.warning("Redis warmup failed: %s", e)


async def warmup_featured_cache() -> None:
    """Fill the featured products cache so the first storefront visit is a hit."""
    from storefront.cache import get_cache_client
    from storefront.db.connection import get_async_session_context
    from storefront.db.repositories import ProductRepository
    from storefront.services.featured_cache import FeaturedProductsCache

    try:
        start = time.time()
        cache = await get_cache_client()
        if not cache.enabled:
            logger.info("Featured cache warmup skipped (Redis unavailable)")
            return

        async with get_async_session_context() as session:
            featured = FeaturedProductsCache(ProductRepository(session), cache)
            result = await featured.get_featured()

        elapsed = (time.time() - start) * 1000
        logger.info(
            "Featured cache warmed up with %d products (%.0fms)",
            len(result.value),
            elapsed,
        )
    except Exception as e:
        logger.warning("Featured cache warmup failed: %s", e)


async def warmup_all(resolve_engine: Callable[[], AsyncEngine] | None = None) -> None:
    """Run every warmup step in sequence and log the total time."""
    logger.info("Warming up backend connections...")
    start = time.time()

    await warmup_database(resolve_engine=resolve_engine)
    await warmup_redis()
    await warmup_featured_cache()

    total_elapsed = (time.time() - start) * 1000
    logger.info("Backend warmup complete (%.0fms)", total_elapsed)
