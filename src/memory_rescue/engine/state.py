"""
Shared rescue state.

The watchdog and the scheduler coordinate only through this object: the
pending request table, the set of items currently dispatched, and one lock
per item guarding every read-modify-write of that item's rescue state.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from memory_rescue.models.memory_item import UrgencyTier
from memory_rescue.models.rescue import RescueRequest

logger = logging.getLogger("memory_rescue.state")


class RescueState:
    """Pending requests keyed by item id plus per-item locks."""

    def __init__(self):
        self._pending: Dict[UUID, RescueRequest] = {}
        self._locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._in_flight: Set[UUID] = set()

    def lock_for(self, item_id: UUID) -> asyncio.Lock:
        return self._locks[item_id]

    # ========== Pending Requests ==========

    def submit(self, request: RescueRequest) -> Optional[RescueRequest]:
        """
        Record a request, replacing any earlier one for the same item.

        An item may be promoted to a more urgent tier but never demoted:
        a resubmission at a lower tier keeps the existing tier. Requests for
        an item that is currently dispatched are refused and None is returned.
        """
        if request.item_id in self._in_flight:
            logger.debug(f"Item {request.item_id} is in flight, request refused")
            return None
        existing = self._pending.get(request.item_id)
        if existing is not None and existing.tier.rank > request.tier.rank:
            request = request.model_copy(update={"tier": existing.tier})
        elif existing is not None and existing.tier != request.tier:
            logger.info(
                f"Item {request.item_id} promoted from {existing.tier.value} to {request.tier.value}"
            )
        self._pending[request.item_id] = request
        return request

    def pending(self, tier: Optional[UrgencyTier] = None) -> List[RescueRequest]:
        requests = list(self._pending.values())
        if tier is not None:
            requests = [r for r in requests if r.tier == tier]
        return requests

    def get(self, item_id: UUID) -> Optional[RescueRequest]:
        return self._pending.get(item_id)

    def is_pending(self, item_id: UUID) -> bool:
        return item_id in self._pending

    def claim(self, requests: Iterable[RescueRequest]) -> List[RescueRequest]:
        """Remove requests from the pending table and mark them in flight."""
        claimed = []
        for request in requests:
            if self._pending.pop(request.item_id, None) is not None:
                self._in_flight.add(request.item_id)
                claimed.append(request)
        return claimed

    def restore(self, requests: Iterable[RescueRequest]) -> None:
        """Put claimed requests back after an aborted batch."""
        for request in requests:
            self._in_flight.discard(request.item_id)
            self._pending[request.item_id] = request

    def release(self, item_id: UUID) -> None:
        self._in_flight.discard(item_id)

    def discard(self, item_id: UUID) -> None:
        self._pending.pop(item_id, None)

    # ========== In-flight Tracking ==========

    def mark_in_flight(self, item_id: UUID) -> bool:
        """Returns False when the item was already in flight."""
        if item_id in self._in_flight:
            return False
        self._in_flight.add(item_id)
        return True

    def is_in_flight(self, item_id: UUID) -> bool:
        return item_id in self._in_flight

    def pending_counts(self) -> Dict[str, int]:
        counts = {tier.value: 0 for tier in UrgencyTier}
        for request in self._pending.values():
            counts[request.tier.value] += 1
        return counts

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)
