"""
Database Schema

Creates the PostgreSQL table holding one JSONB document per memory item.
The hot fields used for filtering are mirrored into plain columns.
"""

import asyncpg

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS rescue_items (
    id UUID PRIMARY KEY,
    document JSONB NOT NULL,                    -- Full MemoryItem as JSON
    archived BOOLEAN DEFAULT FALSE,
    requires_intervention BOOLEAN DEFAULT FALSE,
    last_accessed TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_rescue_items_archived ON rescue_items (archived);
CREATE INDEX IF NOT EXISTS idx_rescue_items_intervention ON rescue_items (requires_intervention)
    WHERE requires_intervention = TRUE;
CREATE INDEX IF NOT EXISTS idx_rescue_items_last_accessed ON rescue_items (last_accessed);
"""


class DatabaseSchema:
    """
    Manages PostgreSQL schema creation.
    """

    def __init__(self, connection_string: str = None):
        self.connection_string = connection_string or "postgresql://localhost/memory_rescue"
        self._initialized = False

    async def initialize(self) -> None:
        """
        Create the table and indexes if they don't exist.
        """
        if self._initialized:
            return

        conn = await asyncpg.connect(self.connection_string)
        try:
            await conn.execute(SCHEMA_SQL)
        finally:
            await conn.close()

        self._initialized = True

    async def drop_all(self) -> None:
        """
        Drop all tables. USE WITH CAUTION - this destroys all data.
        """
        conn = await asyncpg.connect(self.connection_string)
        try:
            await conn.execute("DROP TABLE IF EXISTS rescue_items CASCADE;")
        finally:
            await conn.close()
