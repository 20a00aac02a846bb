"""
Decay Watchdog

Periodically evaluates every tracked item against the decay model and emits
rescue requests for items that need intervention. It never primes items
itself. Completed sessions flow back through ``apply_feedback``, which
adjusts an item's decay resistance and pushes its next check time out.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from memory_rescue.config import WatchdogConfig
from memory_rescue.database.base import ItemFilter, MemoryStore
from memory_rescue.engine.decay import TIER_BOUNDARIES, DecayEvaluation, DecayModel
from memory_rescue.engine.priming import DEFAULT_STRATEGIES
from memory_rescue.engine.state import RescueState
from memory_rescue.errors import StoreUnavailable
from memory_rescue.models.memory_item import TIER_ORDER, MemoryItem, UrgencyTier
from memory_rescue.models.priming import PrimingStrategy
from memory_rescue.models.rescue import (
    DecayStageCounts,
    RescueOutcome,
    RescueOutcomeKind,
    RescueRequest,
    WatchdogStats,
)

logger = logging.getLogger("memory_rescue.watchdog")


StrategySelector = Callable[[UrgencyTier, int], PrimingStrategy]


def default_strategy(tier: UrgencyTier, escalation: int = 0) -> PrimingStrategy:
    index = min(tier.rank + escalation, len(TIER_ORDER) - 1)
    return DEFAULT_STRATEGIES[TIER_ORDER[index]]


def next_tier_boundary(item: MemoryItem, now: Optional[datetime] = None) -> Optional[datetime]:
    """When the item will cross into the next urgency tier, or None if already critical."""
    elapsed = ((now or datetime.now()) - item.decay_metrics.last_accessed).total_seconds()
    for _, upper_bound in TIER_BOUNDARIES:
        if elapsed < upper_bound:
            return item.decay_metrics.last_accessed + timedelta(seconds=upper_bound)
    return None


def last_outcome(item: MemoryItem) -> Optional[str]:
    history = item.decay_metrics.intervention_history
    return history[-1].outcome if history else None


class DecayWatchdog:
    """
    Polls the store and feeds rescue requests into the shared state.

    Args:
        store: Storage collaborator
        state: Shared pending/in-flight state, also read by the scheduler
        decay_model: Strength and tier calculations
        config: Poll interval, thresholds and feedback learning rate
        strategy_selector: Resolves (tier, escalation) to the strategy the
            scheduler will run, so the stamped ``rescue_strategy`` matches it
    """

    def __init__(
        self,
        store: MemoryStore,
        state: RescueState,
        decay_model: Optional[DecayModel] = None,
        config: Optional[WatchdogConfig] = None,
        strategy_selector: Optional[StrategySelector] = None,
    ):
        self.store = store
        self.state = state
        self.config = config or WatchdogConfig()
        self.decay_model = decay_model or DecayModel(thresholds=self.config.thresholds)
        self.strategy_selector = strategy_selector or default_strategy
        self.last_stats: Optional[WatchdogStats] = None

    @property
    def thresholds(self):
        return self.config.thresholds

    def needs_intervention(
        self,
        item: MemoryItem,
        evaluation: DecayEvaluation,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Due when strength has fallen below the medium threshold or the
        scheduled next check has passed. A next check still in the future
        holds the item back unless its strength is already critical.

        A critical item whose last session found no fragments or cues has no
        further tier to be deferred to, so it waits until signal is added.
        """
        now = now or datetime.now()
        if (
            evaluation.tier == UrgencyTier.CRITICAL
            and not item.has_signal
            and last_outcome(item) == RescueOutcomeKind.INSUFFICIENT_SIGNAL.value
        ):
            return False
        next_check = item.rescue_status.next_intervention_time
        if next_check is not None and next_check > now:
            return evaluation.strength < self.thresholds.critical and item.has_signal
        if next_check is not None and next_check <= now:
            return True
        return evaluation.strength < self.thresholds.medium

    async def tick(self, now: Optional[datetime] = None) -> WatchdogStats:
        """
        Run one monitoring pass.

        Store outages are reported in the returned stats; the tick itself
        never raises, so the poll loop keeps running.
        """
        now = now or datetime.now()
        stats = WatchdogStats(
            tick_at=now,
            next_tick_at=now + timedelta(seconds=self.config.poll_interval_seconds),
        )

        try:
            items = await self.store.list(ItemFilter())
        except StoreUnavailable as e:
            logger.error(f"Watchdog tick skipped, store unavailable: {e}")
            stats.error = str(e)
            self.last_stats = stats
            return stats

        stats.total_monitored = len(items)
        stage_counts = DecayStageCounts()
        effectiveness_values = []

        for item in items:
            evaluation = self.decay_model.evaluate(item, now)
            setattr(stage_counts, evaluation.stage, getattr(stage_counts, evaluation.stage) + 1)
            stats.by_tier[evaluation.tier] += 1
            effectiveness_values.extend(
                record.effectiveness for record in item.decay_metrics.intervention_history
            )

            if self.state.is_in_flight(item.id):
                stats.skipped_in_flight += 1
                continue
            if not self.needs_intervention(item, evaluation, now):
                continue

            try:
                if await self._emit(item.id, now):
                    stats.requests_emitted += 1
            except StoreUnavailable as e:
                logger.error(f"Could not flag item {item.id} for rescue: {e}")
                stats.item_errors += 1

        stats.by_stage = stage_counts
        if effectiveness_values:
            stats.average_intervention_effectiveness = sum(effectiveness_values) / len(effectiveness_values)

        logger.info(
            f"Watchdog tick: {stats.total_monitored} monitored, {stats.requests_emitted} requests emitted, "
            f"{stats.skipped_in_flight} in flight"
        )
        self.last_stats = stats
        return stats

    async def _emit(self, item_id, now: datetime) -> bool:
        """Flag the item and queue a request, under the item's lock."""
        async with self.state.lock_for(item_id):
            if self.state.is_in_flight(item_id):
                return False
            # Re-read under the lock; the listed copy may be stale
            item = await self.store.load(item_id)
            if item is None or item.archived:
                return False

            evaluation = self.decay_model.evaluate(item, now)
            if not self.needs_intervention(item, evaluation, now):
                return False
            # The scheduler may have claimed the item while it was loading
            request = self.state.submit(RescueRequest(
                item_id=item.id,
                tier=evaluation.tier,
                urgency_score=evaluation.urgency_score,
                time_since_access=evaluation.elapsed_seconds,
                strength=evaluation.strength,
                priority=evaluation.priority,
                requested_at=now,
            ))
            if request is None:
                return False

            status = item.rescue_status
            status.requires_intervention = True
            status.urgency_tier = request.tier
            status.intervention_priority = evaluation.priority
            status.rescue_strategy = self.strategy_selector(request.tier, status.escalation_level).name
            await self.store.save(item)
            logger.debug(
                f"Rescue requested for {item.id}: tier={request.tier.value} "
                f"strength={evaluation.strength:.3f} urgency={request.urgency_score:.3f}"
            )
            return True

    def apply_feedback(self, item: MemoryItem, outcome: RescueOutcome, now: Optional[datetime] = None) -> None:
        """
        Fold a session's effectiveness into the item's decay resistance and
        schedule its next check. Higher resistance pushes the check later.

        Items without any signal are deferred to their next tier boundary.
        """
        now = now or datetime.now()
        metrics = item.decay_metrics
        rate = self.config.resistance_learning_rate
        metrics.decay_resistance = min(
            1.0, max(0.0, metrics.decay_resistance * (1 - rate) + outcome.effectiveness * rate)
        )

        if outcome.kind == RescueOutcomeKind.INSUFFICIENT_SIGNAL:
            item.rescue_status.next_intervention_time = next_tier_boundary(item, now)
            return
        if outcome.kind == RescueOutcomeKind.TIMEOUT:
            # Retried on the next tick with an escalated strategy
            item.rescue_status.next_intervention_time = now
            return

        spacing = item.recall_profile.optimal_spacing_seconds * (1 + metrics.decay_resistance)
        item.rescue_status.next_intervention_time = now + timedelta(seconds=spacing)

    def get_status(self) -> dict:
        return {
            "poll_interval_seconds": self.config.poll_interval_seconds,
            "last_stats": self.last_stats.model_dump(mode="json") if self.last_stats else None,
        }
