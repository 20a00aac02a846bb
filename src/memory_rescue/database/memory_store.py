"""
In-memory store for development and tests.

Items are deep-copied on the way in and out so callers can never mutate
stored state without an explicit save.
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from memory_rescue.database.base import ItemFilter, MemoryStore
from memory_rescue.errors import StoreUnavailable
from memory_rescue.models.memory_item import MemoryItem

logger = logging.getLogger("memory_rescue.store")


class InMemoryStore(MemoryStore):
    """
    Dictionary-backed store.

    Setting ``available = False`` makes every operation raise
    ``StoreUnavailable``, which is how outages are simulated.
    """

    def __init__(self, items: Optional[List[MemoryItem]] = None):
        self._items: Dict[UUID, MemoryItem] = {}
        self.available = True
        for item in items or []:
            self._items[item.id] = item.model_copy(deep=True)

    def _check(self, operation: str, item_id: Optional[UUID] = None) -> None:
        if not self.available:
            raise StoreUnavailable(f"In-memory store offline during {operation}", item_id=item_id)

    async def load(self, item_id: UUID) -> Optional[MemoryItem]:
        self._check("load", item_id)
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def list(self, item_filter: Optional[ItemFilter] = None) -> List[MemoryItem]:
        self._check("list")
        item_filter = item_filter or ItemFilter()
        items = [item.model_copy(deep=True) for item in self._items.values() if item_filter.matches(item)]
        if item_filter.limit is not None:
            items = items[:item_filter.limit]
        return items

    async def save(self, item: MemoryItem) -> None:
        self._check("save", item.id)
        self._items[item.id] = item.model_copy(deep=True)

    async def save_many(self, items: List[MemoryItem]) -> None:
        self._check("save_many")
        for item in items:
            self._items[item.id] = item.model_copy(deep=True)
        logger.debug(f"Saved {len(items)} items")

    async def delete(self, item_id: UUID) -> bool:
        self._check("delete", item_id)
        return self._items.pop(item_id, None) is not None

    def __len__(self) -> int:
        return len(self._items)
