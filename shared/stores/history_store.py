"""
PostgreSQL persistence for the history of requested indices.
"""

import asyncio
from typing import List, Optional

import asyncpg

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from shared.models import IndexRecord

STORE_NAME = "postgres"

# asyncpg surfaces transport problems through several unrelated hierarchies
DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class HistoryStore:
    """Append-only log of requested indices in the `values` table."""

    def __init__(self, dsn: str, pool: Optional[asyncpg.Pool] = None):
        self.dsn = dsn
        self.logger = get_logger("shared.stores.history_store")
        self.pool: Optional[asyncpg.Pool] = pool

    async def start(self):
        """Open the pool and make sure the table exists."""
        try:
            if self.pool is None:
                self.pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=10,
                    command_timeout=30
                )
            await self._create_tables()
        except DRIVER_ERRORS as e:
            self.logger.error("Failed to start history store", error=str(e))
            raise StoreUnavailableError(STORE_NAME, str(e))

        self.logger.info("History store started")

    async def stop(self):
        """Close the pool."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            self.logger.info("History store stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS "values" (
                    id BIGSERIAL PRIMARY KEY,
                    number INTEGER NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

    def _pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreUnavailableError(STORE_NAME, "history store not started")
        return self.pool

    async def append(self, record: IndexRecord) -> IndexRecord:
        """Insert a record and return it with its row id and timestamp."""
        try:
            async with self._pool().acquire() as conn:
                row = await conn.fetchrow(
                    'INSERT INTO "values" (number) VALUES ($1) RETURNING id, created_at',
                    record.index
                )
        except DRIVER_ERRORS as e:
            self.logger.error("Error appending history record", index=record.index, error=str(e))
            raise StoreUnavailableError(STORE_NAME, str(e))

        return IndexRecord(record.index, record_id=row["id"], created_at=row["created_at"])

    async def list_all(self, limit: Optional[int] = None, offset: int = 0) -> List[IndexRecord]:
        """Records in insertion order."""
        try:
            async with self._pool().acquire() as conn:
                rows = await conn.fetch(
                    'SELECT id, number, created_at FROM "values" ORDER BY id LIMIT $1 OFFSET $2',
                    limit, offset
                )
        except DRIVER_ERRORS as e:
            self.logger.error("Error listing history", error=str(e))
            raise StoreUnavailableError(STORE_NAME, str(e))

        return [
            IndexRecord(row["number"], record_id=row["id"], created_at=row["created_at"])
            for row in rows
        ]

    async def count(self) -> int:
        """Total number of accepted requests."""
        try:
            async with self._pool().acquire() as conn:
                count = await conn.fetchval('SELECT COUNT(*) FROM "values"')
        except DRIVER_ERRORS as e:
            raise StoreUnavailableError(STORE_NAME, str(e))
        return count or 0

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (StoreUnavailableError, *DRIVER_ERRORS):
            return False
