"""
Redis caching layer for the Catalog Service.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Any, Optional

from shared.logging import get_logger
from shared.errors import CacheUnavailableError
from ..models import CACHE_KEY_PREFIX, Product, product_cache_key
from .availability import AvailabilityTracker
from .connection import CONNECTION_ERRORS, CacheConnection


DEFAULT_TTL_SECONDS = 60


class LookupStatus(str, Enum):
    """Outcome of a cache lookup."""
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


class CacheWriteStatus(str, Enum):
    """Outcome of a cache write or invalidation."""
    APPLIED = "applied"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class CacheLookup:
    """Result of reading one product from the cache."""
    status: LookupStatus
    product: Optional[Product] = None
    cached_at: Optional[datetime] = None


class ProductCache:
    """Cache-aside store for product point reads.

    Every call checks the availability flag first and then still handles its
    own failure; read and write failures come back as ``UNAVAILABLE`` results
    instead of exceptions. Connection-level failures are also reported to the
    connection so its listeners see the outage.
    """

    def __init__(
        self,
        connection: CacheConnection,
        tracker: AvailabilityTracker,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.connection = connection
        self.tracker = tracker
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("catalog.cache.redis")

    async def get(self, product_id: int) -> CacheLookup:
        """Look up a product; never raises."""
        if not self.tracker.available:
            return CacheLookup(LookupStatus.UNAVAILABLE)

        cache_key = product_cache_key(product_id)
        try:
            async with self.connection.client.pipeline(transaction=False) as pipe:
                pipe.get(cache_key)
                pipe.pttl(cache_key)
                cached_data, remaining_ms = await pipe.execute()
        except Exception as e:
            self._record_failure("Cache read error", cache_key, e)
            return CacheLookup(LookupStatus.UNAVAILABLE)

        if cached_data is None:
            return CacheLookup(LookupStatus.MISS)

        try:
            product = Product.from_dict(json.loads(cached_data))
        except (ValueError, KeyError, TypeError) as e:
            # The next populate overwrites the entry
            self.logger.warning("Discarding unreadable cache entry", cache_key=cache_key, error=str(e))
            return CacheLookup(LookupStatus.MISS)

        self.logger.debug("Cache hit", cache_key=cache_key)
        return CacheLookup(LookupStatus.HIT, product, self._written_at(remaining_ms))

    async def set(self, product: Product) -> CacheWriteStatus:
        """Populate the entry for a product with the fixed TTL; never raises."""
        if not self.tracker.available:
            return CacheWriteStatus.UNAVAILABLE

        cache_key = product_cache_key(product.id)
        try:
            await self.connection.client.setex(cache_key, self.ttl_seconds, json.dumps(product.to_dict()))
        except Exception as e:
            self._record_failure("Cache write error", cache_key, e)
            return CacheWriteStatus.UNAVAILABLE

        self.logger.debug("Cached product", cache_key=cache_key, ttl=self.ttl_seconds)
        return CacheWriteStatus.APPLIED

    async def invalidate(self, product_id: int) -> CacheWriteStatus:
        """Delete the entry for a product whether or not it exists; never raises."""
        if not self.tracker.available:
            return CacheWriteStatus.UNAVAILABLE

        cache_key = product_cache_key(product_id)
        try:
            await self.connection.client.delete(cache_key)
        except Exception as e:
            self._record_failure("Cache invalidation error", cache_key, e)
            return CacheWriteStatus.UNAVAILABLE

        self.logger.info("Cache invalidated", cache_key=cache_key)
        return CacheWriteStatus.APPLIED

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Get product cache statistics; raises CacheUnavailableError."""
        self._require_available()
        try:
            keys = await self.connection.client.keys(f"{CACHE_KEY_PREFIX}*")
            info = await self.connection.client.info("stats")
        except Exception as e:
            self._record_failure("Cache stats error", CACHE_KEY_PREFIX, e)
            raise CacheUnavailableError(details={"reason": str(e)}) from e

        return {
            "cached_count": len(keys),
            "keys": sorted(keys),
            "raw_stats": info,
            "hit_rate": self._calculate_hit_rate(info),
        }

    async def clear_cache(self) -> int:
        """Delete every product entry; returns the number removed."""
        self._require_available()
        try:
            keys = await self.connection.client.keys(f"{CACHE_KEY_PREFIX}*")
            deleted = await self.connection.client.delete(*keys) if keys else 0
        except Exception as e:
            self._record_failure("Cache clear error", CACHE_KEY_PREFIX, e)
            raise CacheUnavailableError(details={"reason": str(e)}) from e

        self.logger.info("Cache cleared", deleted_count=deleted)
        return deleted

    def _require_available(self) -> None:
        if not self.tracker.available:
            raise CacheUnavailableError()

    def _record_failure(self, message: str, cache_key: str, error: Exception) -> None:
        self.logger.warning(message, cache_key=cache_key, error=str(error))
        if isinstance(error, CONNECTION_ERRORS):
            self.connection.report_error(error)

    def _written_at(self, remaining_ms: Optional[int]) -> Optional[datetime]:
        """Derive the entry's write time from its remaining TTL."""
        if remaining_ms is None or remaining_ms < 0:
            return None
        age = timedelta(milliseconds=max(0, self.ttl_seconds * 1000 - remaining_ms))
        return datetime.now(timezone.utc) - age

    def _calculate_hit_rate(self, info: Dict[str, Any]) -> float:
        """Calculate cache hit rate."""
        hits = int(info.get("keyspace_hits", 0))
        misses = int(info.get("keyspace_misses", 0))
        total = hits + misses

        if total == 0:
            return 0.0

        return hits / total
