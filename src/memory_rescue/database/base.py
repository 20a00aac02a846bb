"""
Memory Store - Abstract Base Class

The storage collaborator the engine depends on. Items are created upstream;
the engine only loads, lists and saves them back with updated decay and
rescue state.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from memory_rescue.models.memory_item import MemoryItem


class ItemFilter(BaseModel):
    """Selection criteria for ``MemoryStore.list``."""
    include_archived: bool = False
    requires_intervention: Optional[bool] = None
    limit: Optional[int] = None

    def matches(self, item: MemoryItem) -> bool:
        if item.archived and not self.include_archived:
            return False
        if (
            self.requires_intervention is not None
            and item.rescue_status.requires_intervention != self.requires_intervention
        ):
            return False
        return True


class MemoryStore(ABC):
    """
    Key/value document store for memory items.

    Implementations raise ``StoreUnavailable`` for any backend failure.
    """

    async def connect(self) -> None:
        """Open backend resources. No-op by default."""

    async def disconnect(self) -> None:
        """Release backend resources. No-op by default."""

    @abstractmethod
    async def load(self, item_id: UUID) -> Optional[MemoryItem]:
        """Load one item, or None if it was deleted upstream."""
        pass

    @abstractmethod
    async def list(self, item_filter: Optional[ItemFilter] = None) -> List[MemoryItem]:
        """List items matching the filter (non-archived by default)."""
        pass

    @abstractmethod
    async def save(self, item: MemoryItem) -> None:
        """Persist one item."""
        pass

    @abstractmethod
    async def save_many(self, items: List[MemoryItem]) -> None:
        """Persist several items atomically: all of them or none."""
        pass
