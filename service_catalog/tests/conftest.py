"""
Shared fixtures for Catalog service tests.
"""

import itertools
from datetime import datetime, timezone
from typing import Dict, List, Optional

import fakeredis
from fakeredis import aioredis as fake_aioredis
import pytest

from shared.errors import StoreError
from shared.metrics import MetricsCollector
from service_catalog.app.cache.availability import AvailabilityTracker, ConnectionEvent
from service_catalog.app.cache.connection import CacheConnection
from service_catalog.app.cache.redis_cache import ProductCache
from service_catalog.app.coordinator import AccessCoordinator
from service_catalog.app.models import Product, ProductDraft, ProductUpdate


class _Table:
    """Rows shared by the in-memory primary and its replica."""

    def __init__(self):
        self.rows: Dict[int, Product] = {}
        self.ids = itertools.count(1)


class InMemoryProductStore:
    """In-memory stand-in for a PostgreSQL product store.

    ``replica()`` returns a view over the same rows, i.e. a replica with no
    lag. Setting ``failing`` makes every call raise StoreError.
    """

    def __init__(self, tier: str = "primary", table: Optional[_Table] = None):
        self.tier = tier
        self.table = table or _Table()
        self.failing = False
        self.calls: List[str] = []

    def replica(self) -> "InMemoryProductStore":
        return InMemoryProductStore("replica", self.table)

    def _enter(self, operation: str):
        self.calls.append(operation)
        if self.failing:
            raise StoreError("Database error", details={"tier": self.tier, "operation": operation})

    async def fetch_all(self) -> List[Product]:
        self._enter("fetch_all")
        return [self.table.rows[key] for key in sorted(self.table.rows)]

    async def fetch_one(self, product_id: int) -> Optional[Product]:
        self._enter("fetch_one")
        return self.table.rows.get(product_id)

    async def insert(self, draft: ProductDraft) -> Product:
        self._enter("insert")
        now = datetime.now(timezone.utc)
        product = Product(next(self.table.ids), draft.name, draft.price, now, now)
        self.table.rows[product.id] = product
        return product

    async def update(self, product_id: int, update: ProductUpdate) -> Optional[Product]:
        self._enter("update")
        current = self.table.rows.get(product_id)
        if current is None:
            return None
        product = Product(
            current.id,
            update.name if update.name is not None else current.name,
            update.price if update.price is not None else current.price,
            current.created_at,
            datetime.now(timezone.utc),
        )
        self.table.rows[product_id] = product
        return product

    async def delete(self, product_id: int) -> Optional[Product]:
        self._enter("delete")
        return self.table.rows.pop(product_id, None)

    async def health_check(self) -> bool:
        return not self.failing


@pytest.fixture
def metrics():
    return MetricsCollector("catalog")


@pytest.fixture
def fake_redis():
    """Isolated in-process Redis."""
    return fake_aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def tracker(metrics):
    return AvailabilityTracker(metrics)


@pytest.fixture
def cache_connection(fake_redis, tracker):
    connection = CacheConnection("redis://fake:6379/0", reconnect_interval=0, client=fake_redis)
    connection.add_listener(tracker.on_event)
    # Equivalent of a successful startup connection
    tracker.on_event(ConnectionEvent.CONNECT)
    return connection


@pytest.fixture
def product_cache(cache_connection, tracker):
    return ProductCache(cache_connection, tracker, ttl_seconds=60)


@pytest.fixture
def primary():
    return InMemoryProductStore()


@pytest.fixture
def replica(primary):
    return primary.replica()


@pytest.fixture
def coordinator(product_cache, replica, primary, metrics):
    return AccessCoordinator(product_cache, replica, primary, metrics)
