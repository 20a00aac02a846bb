"""
PostgreSQL Memory Store

asyncpg-backed storage collaborator. Each item is one JSONB document; the
store never interprets the document beyond the mirrored filter columns.
"""

import logging
from typing import List, Optional
from uuid import UUID

import asyncpg

from memory_rescue.database.base import ItemFilter, MemoryStore
from memory_rescue.errors import StoreUnavailable
from memory_rescue.models.memory_item import MemoryItem

logger = logging.getLogger("memory_rescue.store")

UPSERT_SQL = """
INSERT INTO rescue_items (id, document, archived, requires_intervention, last_accessed, updated_at)
VALUES ($1, $2::jsonb, $3, $4, $5, NOW())
ON CONFLICT (id) DO UPDATE SET
    document = EXCLUDED.document,
    archived = EXCLUDED.archived,
    requires_intervention = EXCLUDED.requires_intervention,
    last_accessed = EXCLUDED.last_accessed,
    updated_at = NOW()
"""

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _row_args(item: MemoryItem) -> tuple:
    return (
        item.id,
        item.model_dump_json(),
        item.archived,
        item.rescue_status.requires_intervention,
        item.decay_metrics.last_accessed,
    )


class PostgresMemoryStore(MemoryStore):
    """
    Repository for rescue item documents.

    Driver and network errors are translated into ``StoreUnavailable``.
    """

    def __init__(self, connection_string: str = None):
        self.connection_string = connection_string or "postgresql://127.0.0.1/memory_rescue"
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Initialize connection pool."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(self.connection_string, min_size=2, max_size=10)
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Cannot connect to PostgreSQL: {e}") from e

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StoreUnavailable("PostgreSQL store is not connected")
        return self._pool

    async def load(self, item_id: UUID) -> Optional[MemoryItem]:
        """Get an item document by ID."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT document FROM rescue_items WHERE id = $1",
                    item_id,
                )
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to load item: {e}", item_id=item_id) from e
        if row:
            return MemoryItem.model_validate_json(row["document"])
        return None

    async def list(self, item_filter: Optional[ItemFilter] = None) -> List[MemoryItem]:
        """List item documents, oldest access first."""
        item_filter = item_filter or ItemFilter()
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT document FROM rescue_items
                    WHERE ($1 OR archived = FALSE)
                      AND ($2::boolean IS NULL OR requires_intervention = $2)
                    ORDER BY last_accessed ASC
                    LIMIT $3
                    """,
                    item_filter.include_archived,
                    item_filter.requires_intervention,
                    item_filter.limit,
                )
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to list items: {e}") from e
        return [MemoryItem.model_validate_json(row["document"]) for row in rows]

    async def save(self, item: MemoryItem) -> None:
        """Upsert one item document."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(UPSERT_SQL, *_row_args(item))
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to save item: {e}", item_id=item.id) from e

    async def save_many(self, items: List[MemoryItem]) -> None:
        """Upsert a batch in one transaction so a failure persists nothing."""
        if not items:
            return
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(UPSERT_SQL, [_row_args(item) for item in items])
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to save batch of {len(items)}: {e}") from e
        logger.debug(f"Saved batch of {len(items)} items")

    async def count_items(self) -> int:
        """Get total number of items."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM rescue_items")
        except STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to count items: {e}") from e
