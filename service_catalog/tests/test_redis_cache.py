"""
Unit tests for the Catalog product cache.
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.errors import CacheUnavailableError
from service_catalog.app.cache.availability import AvailabilityTracker, ConnectionEvent
from service_catalog.app.cache.connection import CacheConnection
from service_catalog.app.cache.redis_cache import CacheWriteStatus, LookupStatus, ProductCache
from service_catalog.app.models import Product


@pytest.fixture
def widget():
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Product(1, "Widget", 999, stamp, stamp)


@pytest.fixture
def broken_client():
    """Redis client whose every command fails at the connection level."""
    client = MagicMock()
    error = RedisConnectionError("connection reset")
    client.setex = AsyncMock(side_effect=error)
    client.delete = AsyncMock(side_effect=error)
    client.keys = AsyncMock(side_effect=error)
    client.pipeline = MagicMock(side_effect=error)
    return client


def _cache_over(client, available=True):
    tracker = AvailabilityTracker()
    connection = CacheConnection("redis://cache:6379/0", reconnect_interval=0, client=client)
    connection.add_listener(tracker.on_event)
    if available:
        tracker.on_event(ConnectionEvent.CONNECT)
    return ProductCache(connection, tracker, ttl_seconds=60), tracker


class TestProductCache:
    """Test cases for ProductCache against an in-process Redis."""

    @pytest.mark.asyncio
    async def test_miss(self, product_cache):
        lookup = await product_cache.get(1)
        assert lookup.status is LookupStatus.MISS
        assert lookup.product is None

    @pytest.mark.asyncio
    async def test_set_then_hit(self, product_cache, widget):
        assert await product_cache.set(widget) is CacheWriteStatus.APPLIED

        lookup = await product_cache.get(1)

        assert lookup.status is LookupStatus.HIT
        assert lookup.product == widget
        assert lookup.cached_at is not None
        assert (datetime.now(timezone.utc) - lookup.cached_at).total_seconds() < 5

    @pytest.mark.asyncio
    async def test_entry_is_json_under_product_key_with_ttl(self, product_cache, fake_redis, widget):
        await product_cache.set(widget)

        raw = await fake_redis.get("product:1")
        ttl = await fake_redis.ttl("product:1")

        assert json.loads(raw)["name"] == "Widget"
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, cache_connection, tracker, widget):
        cache = ProductCache(cache_connection, tracker, ttl_seconds=1)
        await cache.set(widget)
        assert (await cache.get(1)).status is LookupStatus.HIT

        await asyncio.sleep(1.2)

        assert (await cache.get(1)).status is LookupStatus.MISS

    @pytest.mark.asyncio
    async def test_invalidate_removes_entry(self, product_cache, widget):
        await product_cache.set(widget)

        assert await product_cache.invalidate(1) is CacheWriteStatus.APPLIED
        assert (await product_cache.get(1)).status is LookupStatus.MISS

    @pytest.mark.asyncio
    async def test_invalidate_absent_entry_is_applied(self, product_cache):
        assert await product_cache.invalidate(99) is CacheWriteStatus.APPLIED

    @pytest.mark.asyncio
    async def test_unreadable_entry_is_a_miss(self, product_cache, fake_redis):
        await fake_redis.set("product:1", "{not json")
        assert (await product_cache.get(1)).status is LookupStatus.MISS

    @pytest.mark.asyncio
    async def test_clear_cache_removes_only_product_keys(self, product_cache, fake_redis, widget):
        await product_cache.set(widget)
        await product_cache.set(Product(2, "Gadget", 10))
        await fake_redis.set("session:abc", "keep")

        assert await product_cache.clear_cache() == 2
        assert await fake_redis.get("session:abc") == "keep"
        assert await product_cache.clear_cache() == 0


class TestProductCacheDegradation:
    """Test cases for cache failure handling."""

    @pytest.mark.asyncio
    async def test_flag_down_skips_redis_entirely(self, broken_client, widget):
        cache, _ = _cache_over(broken_client, available=False)

        assert (await cache.get(1)).status is LookupStatus.UNAVAILABLE
        assert await cache.set(widget) is CacheWriteStatus.UNAVAILABLE
        assert await cache.invalidate(1) is CacheWriteStatus.UNAVAILABLE

        broken_client.pipeline.assert_not_called()
        broken_client.setex.assert_not_called()
        broken_client.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_failure_is_unavailable_and_flips_flag(self, broken_client):
        cache, tracker = _cache_over(broken_client)

        lookup = await cache.get(1)

        assert lookup.status is LookupStatus.UNAVAILABLE
        assert tracker.available is False

    @pytest.mark.asyncio
    async def test_write_failure_is_unavailable(self, broken_client, widget):
        cache, tracker = _cache_over(broken_client)

        assert await cache.set(widget) is CacheWriteStatus.UNAVAILABLE
        assert tracker.available is False

    @pytest.mark.asyncio
    async def test_invalidation_failure_is_unavailable(self, broken_client):
        cache, _ = _cache_over(broken_client)
        assert await cache.invalidate(1) is CacheWriteStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_stats_and_clear_raise_when_flag_down(self, broken_client):
        cache, _ = _cache_over(broken_client, available=False)

        with pytest.raises(CacheUnavailableError):
            await cache.get_cache_stats()
        with pytest.raises(CacheUnavailableError):
            await cache.clear_cache()

    @pytest.mark.asyncio
    async def test_stats_failure_raises_cache_unavailable(self, broken_client):
        cache, tracker = _cache_over(broken_client)

        with pytest.raises(CacheUnavailableError) as exc_info:
            await cache.get_cache_stats()

        assert exc_info.value.status_code == 503
        assert "connection reset" in exc_info.value.details["reason"]
        assert tracker.available is False


class TestProductCacheStats:
    """Test cases for cache statistics."""

    @pytest.mark.asyncio
    async def test_stats_report_keys_and_hit_rate(self):
        client = MagicMock()
        client.keys = AsyncMock(return_value=["product:2", "product:1"])
        client.info = AsyncMock(return_value={"keyspace_hits": 3, "keyspace_misses": 1})
        cache, _ = _cache_over(client)

        stats = await cache.get_cache_stats()

        assert stats["cached_count"] == 2
        assert stats["keys"] == ["product:1", "product:2"]
        assert stats["raw_stats"]["keyspace_hits"] == 3
        assert stats["hit_rate"] == 0.75
        client.keys.assert_awaited_once_with("product:*")
        client.info.assert_awaited_once_with("stats")

    @pytest.mark.asyncio
    async def test_hit_rate_without_traffic(self):
        client = MagicMock()
        client.keys = AsyncMock(return_value=[])
        client.info = AsyncMock(return_value={})
        cache, _ = _cache_over(client)

        assert (await cache.get_cache_stats())["hit_rate"] == 0.0
