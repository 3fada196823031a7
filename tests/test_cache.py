"""LinkCache tests with a mocked Redis client."""

from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from shortlinks.redis import LinkCache
from shortlinks.schemas import CachedLinkTarget


@pytest.fixture
def mock_redis() -> AsyncMock:
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.fixture
def cache(mock_redis: AsyncMock) -> LinkCache:
    return LinkCache(mock_redis, ttl_seconds=600)


@pytest.mark.asyncio
async def test_miss(cache: LinkCache, mock_redis: AsyncMock) -> None:
    assert await cache.get_target("abc123") is None
    mock_redis.get.assert_awaited_once_with("link:abc123")


@pytest.mark.asyncio
async def test_hit(cache: LinkCache, mock_redis: AsyncMock) -> None:
    mock_redis.get.return_value = CachedLinkTarget(
        code="abc123", link_id=7, target_url="https://openai.com"
    ).model_dump_json()

    cached = await cache.get_target("abc123")
    assert cached.link_id == 7
    assert cached.target_url == "https://openai.com"


@pytest.mark.asyncio
async def test_corrupt_entry_is_a_miss(cache: LinkCache, mock_redis: AsyncMock) -> None:
    mock_redis.get.return_value = "{not json"
    assert await cache.get_target("abc123") is None


@pytest.mark.asyncio
async def test_redis_failure_is_a_miss(cache: LinkCache, mock_redis: AsyncMock) -> None:
    mock_redis.get.side_effect = redis.ConnectionError("down")
    assert await cache.get_target("abc123") is None


@pytest.mark.asyncio
async def test_set_target_uses_ttl(cache: LinkCache, mock_redis: AsyncMock) -> None:
    await cache.set_target("abc123", 7, "https://openai.com")

    key, ttl, payload = mock_redis.setex.await_args.args
    assert key == "link:abc123"
    assert ttl == 600
    assert CachedLinkTarget.model_validate_json(payload) == CachedLinkTarget(
        code="abc123", link_id=7, target_url="https://openai.com"
    )


@pytest.mark.asyncio
async def test_write_failures_are_swallowed(cache: LinkCache, mock_redis: AsyncMock) -> None:
    mock_redis.setex.side_effect = redis.ConnectionError("down")
    mock_redis.delete.side_effect = redis.ConnectionError("down")

    await cache.set_target("abc123", 7, "https://openai.com")
    await cache.evict("abc123")


@pytest.mark.asyncio
async def test_evict(cache: LinkCache, mock_redis: AsyncMock) -> None:
    await cache.evict("abc123")
    mock_redis.delete.assert_awaited_once_with("link:abc123")


@pytest.mark.asyncio
async def test_reads_go_to_replica(mock_redis: AsyncMock) -> None:
    replica = AsyncMock()
    replica.get = AsyncMock(return_value=None)
    cache = LinkCache(mock_redis, replica)

    await cache.get_target("abc123")

    replica.get.assert_awaited_once_with("link:abc123")
    mock_redis.get.assert_not_awaited()


@pytest.mark.asyncio
async def test_entry_without_link_id_is_a_miss(cache: LinkCache, mock_redis: AsyncMock) -> None:
    mock_redis.get.return_value = '{"code": "abc123", "target_url": "https://openai.com"}'
    assert await cache.get_target("abc123") is None
