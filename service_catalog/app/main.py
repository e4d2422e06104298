"""
Catalog service for the Catalog Access Layer.
"""

from typing import Optional

from fastapi import Path

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .cache.availability import AvailabilityTracker
from .cache.connection import CacheConnection
from .cache.redis_cache import ProductCache
from .coordinator import AccessCoordinator
from .models import (
    ProductCreateRequest, ProductUpdateRequest,
    ProductResponse, ProductWriteResponse, ProductListResponse,
)
from .persistence.postgres import ProductReader, ProductWriter


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        super().__init__("catalog", config)

        pool_options = dict(
            min_size=self.config.db_pool_min_size,
            max_size=self.config.db_pool_max_size,
            command_timeout=self.config.db_command_timeout,
            acquire_timeout=self.config.db_acquire_timeout,
        )
        self.primary = ProductWriter(self.config.primary_dsn, **pool_options)
        self.replica = ProductReader(self.config.replica_dsn, tier="replica", **pool_options)

        self.cache_connection = CacheConnection(
            self.config.redis_url,
            socket_timeout=self.config.cache_socket_timeout,
            reconnect_interval=self.config.cache_reconnect_interval,
        )
        self.availability = AvailabilityTracker(self.metrics)
        self.cache_connection.add_listener(self.availability.on_event)
        self.cache = ProductCache(self.cache_connection, self.availability, self.config.cache_ttl_seconds)

        self.coordinator = AccessCoordinator(self.cache, self.replica, self.primary, self.metrics)

        self._setup_catalog_routes()

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "catalog",
                "message": "Catalog Access Layer - Catalog Service",
                "version": "1.0.0",
                "capabilities": ["read_replica", "primary_fallback", "caching"]
            }

        @self.app.get("/products", response_model=ProductListResponse)
        async def list_products():
            """List all products, from the replica or the primary as fallback."""
            result = await self.coordinator.read_all()
            return ProductListResponse(
                source=result.source,
                count=len(result.data),
                data=[product.to_dict() for product in result.data]
            )

        @self.app.get("/products/{product_id}", response_model=ProductResponse, response_model_exclude_none=True)
        async def get_product(product_id: int = Path(..., description="Product ID")):
            """Get a product, from the cache when possible."""
            result = await self.coordinator.read_one(product_id)
            return ProductResponse(
                source=result.source,
                data=result.data.to_dict(),
                cached_at=result.cached_at
            )

        @self.app.post(
            "/products",
            status_code=201,
            response_model=ProductWriteResponse,
            response_model_exclude_none=True
        )
        async def create_product(request: ProductCreateRequest):
            """Create a product on the primary."""
            result = await self.coordinator.create(request.model_dump(exclude_none=True))
            return ProductWriteResponse(source=result.source, data=result.data.to_dict())

        @self.app.put("/products/{product_id}", response_model=ProductWriteResponse)
        async def update_product(request: ProductUpdateRequest, product_id: int = Path(..., description="Product ID")):
            """Update a product on the primary and invalidate its cache entry."""
            result = await self.coordinator.update(product_id, request.model_dump(exclude_none=True))
            return ProductWriteResponse(
                source=result.source,
                data=result.data.to_dict(),
                cache_invalidated=result.cache_invalidated
            )

        @self.app.delete("/products/{product_id}", response_model=ProductWriteResponse)
        async def delete_product(product_id: int = Path(..., description="Product ID")):
            """Delete a product on the primary and invalidate its cache entry."""
            result = await self.coordinator.delete(product_id)
            return ProductWriteResponse(
                source=result.source,
                data=result.data.to_dict(),
                cache_invalidated=result.cache_invalidated
            )

        @self.app.get("/cache/stats")
        async def cache_stats():
            """Get product cache statistics."""
            stats = await self.coordinator.cache_stats()
            return {"success": True, **stats}

        @self.app.delete("/cache")
        async def clear_cache():
            """Remove every product cache entry."""
            deleted = await self.coordinator.cache_clear()
            return {"success": True, "deleted_count": deleted}

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        return await self.coordinator.health()

    async def start(self):
        """Start catalog service components."""
        await self.primary.start()
        await self.replica.start()
        await self.cache_connection.start()

        self.logger.info(
            "Catalog service started",
            cache_available=self.availability.available,
            port=self.config.port
        )

    async def stop(self):
        """Stop catalog service components."""
        await self.cache_connection.stop()
        await self.replica.stop()
        await self.primary.stop()

        self.logger.info("Catalog service stopped")


def create_app():
    """Create catalog service application."""
    service = CatalogService()
    return service.app


def main():
    """Run the catalog service."""
    CatalogService().run()


if __name__ == "__main__":
    main()
