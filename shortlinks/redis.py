"""Redis client management and the resolved-target cache.

This module provides singleton Redis clients and ``LinkCache``, a
read-through cache of ``code -> (link id, normalized target URL)`` for
the redirect hot path.

Flow Diagram — Cached Resolution
================================
::
    ┌─────────────┐
    │ GET /:code  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cache.get_  │
    │ target()    │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Store   │  │ Use     │
│ lookup, │  │ cached  │
│ cache it│  │ target  │
└────┬────┘  └────┬────┘
     └─────┬──────┘
           ▼
    ┌─────────────┐
    │ Count click │
    │ in store    │
    └─────────────┘

How to Use
===========
**Step 1 — Get clients**::
    writer = await get_redis()
    reader = await get_redis_read()

**Step 2 — Wrap them**::
    cache = LinkCache(writer, reader, ttl_seconds=3600, logger=logger)
    await cache.set_target("abc123", 42, "https://example.com")

**Step 3 — Cleanup on shutdown**::
    await close_redis()

Key Behaviours
===============
- Only targets that passed validation are cached.
- Deleting a link evicts its entry. A stale hit is caught by the click
  accountant, whose increment is pinned to the cached link id, so a code
  that was reallocated after a failed eviction never serves the old target.
- Redis failures are logged and treated as misses; the store stays the
  source of truth.
- Clients are created lazily and closed on application shutdown.

Classes:
    LinkCache:  Read-through cache of resolved targets.

Functions:
    get_redis():  Primary (write) client.
    get_redis_read():  Replica (read) client, falling back to the primary URL.
    close_redis():  Cleanup function for shutdown.
"""

import logging

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from shortlinks.config import get_settings
from shortlinks.schemas import CachedLinkTarget

__all__ = ["LinkCache", "close_redis", "get_redis", "get_redis_read"]

settings = get_settings()

redis_client: redis.Redis | None = None
redis_read_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def get_redis_read() -> redis.Redis:
    global redis_read_client
    if redis_read_client is None:
        replica_url = settings.REDIS_REPLICA_URL or settings.REDIS_URL
        redis_read_client = redis.from_url(
            replica_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_read_client


async def close_redis() -> None:
    global redis_client, redis_read_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_read_client is not None:
        await redis_read_client.aclose()
        redis_read_client = None


class LinkCache:
    """Resolved-target cache keyed by short code."""

    KEY_PREFIX = "link"

    def __init__(
        self,
        writer: redis.Redis,
        reader: redis.Redis | None = None,
        ttl_seconds: int = 3600,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._writer = writer
        self._reader = reader or writer
        self._ttl_seconds = ttl_seconds
        self._logger = logger or logging.getLogger("shortlinks")

    @classmethod
    def key_for(cls, code: str) -> str:
        return f"{cls.KEY_PREFIX}:{code}"

    async def get_target(self, code: str) -> CachedLinkTarget | None:
        try:
            cached = await self._reader.get(self.key_for(code))
        except redis.RedisError as exc:
            self._logger.warning(f"Cache read failed for {code}: {exc}")
            return None
        if not cached:
            return None

        try:
            payload = CachedLinkTarget.model_validate_json(cached)
        except PydanticValidationError as exc:
            self._logger.error(f"Cache deserialization error for {code}: {exc}")
            return None
        return payload

    async def set_target(self, code: str, link_id: int, target_url: str) -> None:
        payload = CachedLinkTarget(code=code, link_id=link_id, target_url=target_url)
        try:
            await self._writer.setex(self.key_for(code), self._ttl_seconds, payload.model_dump_json())
        except redis.RedisError as exc:
            self._logger.warning(f"Cache write failed for {code}: {exc}")

    async def evict(self, code: str) -> None:
        try:
            await self._writer.delete(self.key_for(code))
        except redis.RedisError as exc:
            self._logger.warning(f"Cache eviction failed for {code}: {exc}")

    async def ping(self) -> bool:
        return bool(await self._writer.ping())
