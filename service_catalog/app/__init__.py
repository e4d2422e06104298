"""
Catalog Service package for the Catalog Access Layer.

This package serves product records through a three-tier read path and a
single-authority write path. It provides:

- app.main: API surface for product reads, writes, cache admin and health.
- app.coordinator: The read/write consistency protocol.
- app.cache: Redis connection lifecycle, availability tracking and the
  cache-aside product cache.
- app.persistence: PostgreSQL stores for the replica and the primary.

Guidelines:
- The cache is an optimization only; its failures never fail an operation.
- Writes never update the cache in place; they invalidate.
- Point reads do not fall back to the primary; collection reads do, once.
"""
