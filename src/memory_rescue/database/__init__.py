"""Database package - storage collaborators for the rescue engine."""

from memory_rescue.database.base import ItemFilter, MemoryStore
from memory_rescue.database.memory_store import InMemoryStore
from memory_rescue.database.repository import PostgresMemoryStore
from memory_rescue.database.schema import DatabaseSchema

__all__ = ["DatabaseSchema", "InMemoryStore", "ItemFilter", "MemoryStore", "PostgresMemoryStore"]
