"""
PostgreSQL persistence layer for the Catalog Service.

The replica is read through ``ProductReader``; the authority is written
through ``ProductWriter``, which can also serve reads when the replica is
down.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import StoreError
from ..models import Product, ProductDraft, ProductUpdate


PRODUCT_COLUMNS = "id, name, price, created_at, updated_at"

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class ProductReader:
    """Read access to a product store."""

    def __init__(
        self,
        dsn: str,
        *,
        tier: str = "replica",
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 10.0,
        acquire_timeout: float = 5.0,
    ):
        self.dsn = dsn
        self.tier = tier
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.acquire_timeout = acquire_timeout
        self.logger = get_logger(f"catalog.persistence.{tier}")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the store.

        An unreachable server is logged rather than raised; the pool is then
        created on first use and the health check reports the tier down.
        """
        try:
            await self._get_pool()
            self.logger.info("PostgreSQL store started", tier=self.tier)
        except STORE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL store", tier=self.tier, error=str(e))

    async def stop(self):
        """Stop the store."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL store stopped", tier=self.tier)

    async def _get_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )
            try:
                await self._prepare(pool)
            except BaseException:
                await pool.close()
                raise
            # A concurrent caller may have won the race
            if self.pool is None:
                self.pool = pool
            else:
                await pool.close()
        return self.pool

    async def _prepare(self, pool: asyncpg.Pool):
        """Hook run once on a freshly created pool."""

    async def _run(self, operation: str, query: Callable[[asyncpg.Connection], Awaitable[Any]]) -> Any:
        """Run one query on a pooled connection, mapping failures to StoreError."""
        try:
            pool = await self._get_pool()
            async with pool.acquire(timeout=self.acquire_timeout) as conn:
                return await query(conn)
        except STORE_ERRORS as e:
            self.logger.error("Store query failed", tier=self.tier, operation=operation, error=str(e))
            raise StoreError(
                "Database error",
                details={"tier": self.tier, "operation": operation, "reason": str(e)}
            ) from e

    async def fetch_all(self) -> List[Product]:
        """Load every product ordered by identity."""
        rows = await self._run(
            "fetch_all",
            lambda conn: conn.fetch(f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY id")
        )
        return [Product.from_row(row) for row in rows]

    async def fetch_one(self, product_id: int) -> Optional[Product]:
        """Load a product by identity."""
        row = await self._run(
            "fetch_one",
            lambda conn: conn.fetchrow(f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = $1", product_id)
        )
        return Product.from_row(row) if row else None

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            await self._run("health_check", lambda conn: conn.fetchval("SELECT 1"))
            return True
        except StoreError:
            return False


class ProductWriter(ProductReader):
    """The authority: the only store that accepts writes."""

    def __init__(self, dsn: str, **kwargs):
        kwargs.setdefault("tier", "primary")
        super().__init__(dsn, **kwargs)

    async def _prepare(self, pool: asyncpg.Pool):
        """Create the products table if it does not exist."""
        async with pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS products (
                    id SERIAL PRIMARY KEY,
                    name TEXT NOT NULL,
                    price INTEGER NOT NULL CHECK (price > 0),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

    async def insert(self, draft: ProductDraft) -> Product:
        """Insert a product; the authority assigns identity and timestamps."""
        row = await self._run(
            "insert",
            lambda conn: conn.fetchrow(
                f"INSERT INTO products (name, price) VALUES ($1, $2) RETURNING {PRODUCT_COLUMNS}",
                draft.name, draft.price
            )
        )
        product = Product.from_row(row)
        self.logger.info("Product created", product_id=product.id)
        return product

    async def update(self, product_id: int, update: ProductUpdate) -> Optional[Product]:
        """Apply a partial update; unset fields keep their stored value."""
        row = await self._run(
            "update",
            lambda conn: conn.fetchrow(
                f"""
                UPDATE products
                SET name = COALESCE($2, name),
                    price = COALESCE($3, price),
                    updated_at = NOW()
                WHERE id = $1
                RETURNING {PRODUCT_COLUMNS}
                """,
                product_id, update.name, update.price
            )
        )
        if not row:
            self.logger.warning("Product not found for update", product_id=product_id)
            return None

        self.logger.info("Product updated", product_id=product_id, fields=sorted(update.changes()))
        return Product.from_row(row)

    async def delete(self, product_id: int) -> Optional[Product]:
        """Delete a product, returning the removed record."""
        row = await self._run(
            "delete",
            lambda conn: conn.fetchrow(
                f"DELETE FROM products WHERE id = $1 RETURNING {PRODUCT_COLUMNS}",
                product_id
            )
        )
        if not row:
            self.logger.warning("Product not found for deletion", product_id=product_id)
            return None

        self.logger.info("Product deleted", product_id=product_id)
        return Product.from_row(row)
