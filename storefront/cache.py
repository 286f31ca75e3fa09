from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from storefront.settings import get_settings

logger = logging.getLogger(__name__)

FEATURED_PRODUCTS_KEY = "featured_products"

_redis_client: Redis | None = None
_client_lock = asyncio.Lock()
_redis_disabled_until: float | None = None


class CacheWriteError(RuntimeError):
    """Raised when Redis rejects or cannot receive a write."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"Cache write failed for key {key}: {cause}")
        self.key = key
        self.cause = cause


def _monotonic() -> float:
    return time.monotonic()


def _redis_url() -> str:
    return get_settings().redis_url


def _retry_backoff_seconds() -> float:
    return get_settings().redis_retry_backoff_seconds


def _is_redis_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` originates from the Redis client."""

    return isinstance(exc, RedisError)


async def get_redis() -> Redis | None:
    """Get the shared Redis client, returning None while Redis is unreachable.

    A failed connection disables Redis for ``REDIS_RETRY_BACKOFF_SECONDS`` so a
    missing cache server does not add a connect timeout to every request.
    """
    global _redis_client, _redis_disabled_until

    if _redis_disabled_until is not None and _monotonic() < _redis_disabled_until:
        logger.debug("Redis connection in cooldown; skipping attempt.")
        return None

    # Acquire the lock before checking the singleton to avoid double connects.
    async with _client_lock:
        if _redis_client is not None:
            return _redis_client

        if _redis_disabled_until is not None and _monotonic() < _redis_disabled_until:
            return None

        client = Redis.from_url(_redis_url(), decode_responses=True, encoding="utf-8")
        try:
            await client.ping()
        except Exception as exc:
            if not _is_redis_error(exc):
                raise
            backoff = _retry_backoff_seconds()
            logger.warning(
                "Redis connection failed: %s. Caching disabled for %.0fs.", exc, backoff
            )
            _redis_disabled_until = _monotonic() + backoff
            await client.aclose()
            return None

        _redis_client = client
        _redis_disabled_until = None
        logger.info("Redis connection established successfully")
        return _redis_client


class CacheClient:
    """JSON-oriented facade over the Redis client.

    Reads degrade to a miss on any Redis failure. Writes raise
    :class:`CacheWriteError` so callers decide whether the failure matters.
    A client constructed without Redis behaves as an always-empty cache.
    """

    def __init__(self, redis: Redis | None) -> None:
        self._redis = redis

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def get_json(self, key: str) -> Any:
        if self._redis is None:
            return None
        try:
            payload = await self._redis.get(key)
        except Exception as exc:
            if _is_redis_error(exc):
                logger.warning("Redis get failed for key %s: %s", key, exc)
                return None
            raise
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache payload for key %s", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store ``value`` as JSON; ``ttl=None`` keeps the key until overwritten."""

        if self._redis is None:
            return
        encoded = json.dumps(value, default=str)
        try:
            if ttl is None:
                await self._redis.set(key, encoded)
            else:
                await self._redis.set(key, encoded, ex=ttl)
        except Exception as exc:
            if _is_redis_error(exc):
                raise CacheWriteError(key, exc) from exc
            raise

    async def delete(self, *keys: str) -> None:
        if self._redis is None or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception as exc:
            if _is_redis_error(exc):
                raise CacheWriteError(",".join(keys), exc) from exc
            raise


async def get_cache_client() -> CacheClient:
    redis = await get_redis()
    return CacheClient(redis)


async def close_redis() -> None:
    """Close the shared Redis connection and reset the cooldown state."""
    global _redis_client, _redis_disabled_until
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    _redis_disabled_until = None


__all__ = [
    "FEATURED_PRODUCTS_KEY",
    "CacheClient",
    "CacheWriteError",
    "close_redis",
    "get_cache_client",
    "get_redis",
]
