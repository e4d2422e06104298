"""
Read/write consistency protocol for products.

Reads go cache, then replica; writes go to the primary and then invalidate
the cache entry. There is no transaction spanning the primary write and the
invalidation, so a reader that repopulates the cache between them can leave
a stale entry behind until it expires.
"""

from typing import Any, Dict, Mapping, Optional

from shared.errors import NotFoundError, StoreError
from shared.logging import get_logger
from shared.metrics import MetricsCollector, measure_time
from shared.tracing import add_span_attributes, trace_function

from .cache.redis_cache import CacheWriteStatus, LookupStatus, ProductCache
from .models import (
    Product, ProductDraft, ProductUpdate, Provenance, ReadResult, WriteResult,
)
from .persistence.postgres import ProductReader, ProductWriter


class AccessCoordinator:
    """Decides which tiers serve each product operation."""

    def __init__(
        self,
        cache: ProductCache,
        replica: ProductReader,
        primary: ProductWriter,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.replica = replica
        self.primary = primary
        self.metrics = metrics
        self.logger = get_logger("catalog.coordinator")

    @trace_function("catalog.read_one")
    @measure_time("operation_duration_seconds", operation="read_one")
    async def read_one(self, product_id: int) -> ReadResult:
        add_span_attributes(product_id=product_id)

        lookup = await self.cache.get(product_id)
        self._count("cache_lookups_total", outcome=lookup.status.value)
        if lookup.status is LookupStatus.HIT:
            return ReadResult(lookup.product, Provenance.CACHE, lookup.cached_at)

        # MISS and UNAVAILABLE take the same path.
        product = await self._read_replica_one(product_id)
        if product is None:
            # Open question: the primary is not consulted for a point read,
            # unlike read_all. This keeps replica lag visible instead of
            # masking it; it is kept until that choice is settled.
            raise NotFoundError("Product not found", details={"id": product_id})

        await self.cache.set(product)
        return ReadResult(product, Provenance.REPLICA)

    @trace_function("catalog.read_all")
    @measure_time("operation_duration_seconds", operation="read_all")
    async def read_all(self) -> ReadResult:
        try:
            products = await self.replica.fetch_all()
            self._count("store_reads_total", tier="replica", outcome="ok")
            return ReadResult(products, Provenance.REPLICA)
        except StoreError as e:
            self._count("store_reads_total", tier="replica", outcome="error")
            self.logger.warning("Replica read failed, falling back to primary", error=e.message, details=e.details)

        self._count("read_fallbacks_total")
        try:
            products = await self.primary.fetch_all()
        except StoreError:
            self._count("store_reads_total", tier="primary", outcome="error")
            raise
        self._count("store_reads_total", tier="primary", outcome="ok")
        return ReadResult(products, Provenance.PRIMARY_FALLBACK)

    @trace_function("catalog.create")
    @measure_time("operation_duration_seconds", operation="create")
    async def create(self, attributes: Mapping[str, Any]) -> WriteResult:
        draft = ProductDraft.from_attributes(attributes)
        product = await self.primary.insert(draft)
        add_span_attributes(product_id=product.id)
        return WriteResult(product)

    @trace_function("catalog.update")
    @measure_time("operation_duration_seconds", operation="update")
    async def update(self, product_id: int, attributes: Mapping[str, Any]) -> WriteResult:
        add_span_attributes(product_id=product_id)
        update = ProductUpdate.from_attributes(attributes)

        product = await self.primary.update(product_id, update)
        if product is None:
            raise NotFoundError("Product not found", details={"id": product_id})

        return WriteResult(product, cache_invalidated=await self._invalidate(product_id))

    @trace_function("catalog.delete")
    @measure_time("operation_duration_seconds", operation="delete")
    async def delete(self, product_id: int) -> WriteResult:
        add_span_attributes(product_id=product_id)

        product = await self.primary.delete(product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"id": product_id})

        return WriteResult(product, cache_invalidated=await self._invalidate(product_id))

    async def cache_stats(self) -> Dict[str, Any]:
        return await self.cache.get_cache_stats()

    async def cache_clear(self) -> int:
        return await self.cache.clear_cache()

    async def health(self) -> Dict[str, str]:
        """Tier states as ``up``/``down``; never raises."""
        return {
            "cache": "up" if self.cache.tracker.available else "down",
            "store": "up" if await self.primary.health_check() else "down",
            "replica": "up" if await self.replica.health_check() else "down",
        }

    async def _read_replica_one(self, product_id: int) -> Optional[Product]:
        try:
            product = await self.replica.fetch_one(product_id)
        except StoreError:
            self._count("store_reads_total", tier="replica", outcome="error")
            raise
        self._count("store_reads_total", tier="replica", outcome="ok" if product else "not_found")
        return product

    async def _invalidate(self, product_id: int) -> bool:
        status = await self.cache.invalidate(product_id)
        self._count("cache_invalidations_total", outcome=status.value)
        if status is not CacheWriteStatus.APPLIED:
            self.logger.warning("Cache entry left in place until expiry", product_id=product_id)
        return status is CacheWriteStatus.APPLIED

    def _count(self, metric_name: str, **labels):
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)
