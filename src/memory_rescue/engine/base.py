"""
Decay-Prevention Engine - Abstract Base Class

Defines the operations the rest of the system (API, scripts, the narrative
layer) uses to drive decay monitoring and rescue.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from memory_rescue.models.memory_item import UrgencyTier
from memory_rescue.models.rescue import BatchSummary, RescueOutcome, WatchdogStats


class DecayPreventionEngine(ABC):
    """
    Abstract Base Class for the decay-prevention engine.

    Implements three loops:
    1. assess() - Watchdog pass over every tracked item
    2. run_cycle() - One tier's capped rescue batch
    3. rescue() - Immediate rescue of explicit items
    """

    @abstractmethod
    async def assess(self) -> WatchdogStats:
        """
        Monitoring Pipeline: evaluate decay for every item and queue
        rescue requests for those needing intervention.

        Returns:
            WatchdogStats for the pass
        """
        pass

    @abstractmethod
    async def run_cycle(self, tier: UrgencyTier) -> BatchSummary:
        """
        Rescue Pipeline: dispatch one batch for the given tier.

        Args:
            tier: Urgency tier whose cycle should run

        Returns:
            BatchSummary with success count, mean effectiveness and deferrals
        """
        pass

    @abstractmethod
    async def rescue(self, item_ids: List[UUID]) -> List[RescueOutcome]:
        """
        Emergency Pipeline: rescue specific items now.

        Args:
            item_ids: Items to prime immediately

        Returns:
            One outcome per dispatched item
        """
        pass

    @abstractmethod
    async def decay_report(self, item_id: UUID) -> Optional[dict]:
        """
        Current decay state and forward prediction for one item.

        Returns:
            Report dict, or None if the item does not exist
        """
        pass
