"""Revoked token registry backed by Redis.

Logged out and refreshed tokens are remembered by their ``jti`` claim until
they would have expired anyway. When Redis cannot be reached an in-process
cache is used instead.
"""

import time
from typing import Any

import redis.asyncio as redis

from .core import get_settings
from .logger import get_logger

logger = get_logger(__name__)


class MemoryCache:
    """Simple in-memory cache used when Redis is unavailable."""

    def __init__(self):
        self.store: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        """
        Retrieve a value from in-memory cache.

        Args:
            key (str): Cache key.

        Returns:
            str | None: Cached value if present and not expired.
        """
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self.store[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None):
        """
        Store a value in in-memory cache.

        Args:
            key (str): Cache key.
            value (str): Value to store.
            ex (int | None): Expiration time in seconds.
        """
        now = time.monotonic()
        # revoked ids are rarely read again, so expiry cannot wait for get()
        self.store = {
            k: entry
            for k, entry in self.store.items()
            if entry[1] is None or entry[1] > now
        }
        expires_at = now + ex if ex else None
        self.store[key] = (value, expires_at)


_cache_client: Any | None = None


async def get_cache_client():
    """
    Return a Redis client or an in-memory fallback cache.

    Returns:
        Redis | MemoryCache: Cache backend instance.
    """
    global _cache_client
    if _cache_client is not None:
        return _cache_client
    settings = get_settings()
    try:
        client = redis.from_url(
            settings.REDIS_URL, encoding="utf-8", decode_responses=True
        )
        await client.ping()
        _cache_client = client
    except Exception as exc:
        logger.warning("Redis unavailable (%s), revoked tokens kept in memory", exc)
        _cache_client = MemoryCache()
    return _cache_client


def set_cache_client(client) -> None:
    """Replace the cache backend, e.g. with a fake in tests."""
    global _cache_client
    _cache_client = client


async def revoke_token(jti: str, expires_in: int) -> None:
    """
    Remember a token id as revoked for the rest of its lifetime.

    Args:
        jti (str): Token identifier.
        expires_in (int): Seconds until the token expires on its own.
    """
    if expires_in <= 0:
        return
    client = await get_cache_client()
    await client.set(f"revoked:{jti}", "1", ex=expires_in)


async def is_token_revoked(jti: str) -> bool:
    client = await get_cache_client()
    return await client.get(f"revoked:{jti}") is not None
