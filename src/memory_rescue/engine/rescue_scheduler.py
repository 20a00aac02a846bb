"""
Memory Rescue Scheduler

Owns four tier-keyed rescue cycles. Each cycle run collects the tier's
pending requests, ranks them by urgency, truncates to the batch cap and
dispatches the selection to the priming engine through a bounded worker
pool. Requests beyond the cap stay pending for the next tick.

Persistence is all-or-nothing per batch: results are written with one
``save_many`` call, and a store failure restores every claimed request.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from memory_rescue.config import DecayConfig, SchedulerConfig
from memory_rescue.database.base import MemoryStore
from memory_rescue.engine.decay import DecayModel
from memory_rescue.engine.priming import SelectivePrimingEngine, update_recall_profile
from memory_rescue.engine.state import RescueState
from memory_rescue.errors import (
    ConcurrentSessionConflict,
    InsufficientSignalError,
    ResponderError,
    SessionTimeout,
    StoreUnavailable,
)
from memory_rescue.models.memory_item import InterventionRecord, MemoryItem, UrgencyTier
from memory_rescue.models.priming import PrimingSession, PrimingStrategy
from memory_rescue.models.rescue import (
    BatchSummary,
    RescueOutcome,
    RescueOutcomeKind,
    RescueRequest,
)
from memory_rescue.monitoring.rescue_metrics import RescueMetricsSink

logger = logging.getLogger("memory_rescue.scheduler")

MIN_BATCH_SIZE = 5


def rank_requests(requests: List[RescueRequest]) -> List[RescueRequest]:
    """Descending urgency; ties go to the item untouched the longest."""
    return sorted(requests, key=lambda r: (-r.urgency_score, -r.time_since_access))


class MemoryRescueScheduler:
    """
    Batch dispatcher for rescue requests.

    Args:
        store: Storage collaborator
        state: Shared pending/in-flight state fed by the watchdog
        priming: Engine running the individual sessions
        config: Worker pool size and the four cycle definitions
        decay_model: Used to measure strength before and after a rescue
        decay_config: Supplies the reinstatement strength
        feedback: Receives every outcome (the watchdog)
        metrics: Reporting surface for batch summaries
    """

    def __init__(
        self,
        store: MemoryStore,
        state: RescueState,
        priming: SelectivePrimingEngine,
        config: Optional[SchedulerConfig] = None,
        decay_model: Optional[DecayModel] = None,
        decay_config: Optional[DecayConfig] = None,
        feedback=None,
        metrics: Optional[RescueMetricsSink] = None,
    ):
        self.store = store
        self.state = state
        self.priming = priming
        self.config = config or SchedulerConfig()
        self.decay_config = decay_config or DecayConfig()
        self.decay_model = decay_model or DecayModel(self.decay_config)
        self.feedback = feedback
        self.metrics = metrics

        self.batch_sizes: Dict[UrgencyTier, int] = {
            tier: cycle.max_batch_size for tier, cycle in self.config.cycles.items()
        }
        self.last_runs: Dict[UrgencyTier, Optional[datetime]] = {tier: None for tier in UrgencyTier}
        self.last_summaries: Dict[UrgencyTier, Optional[BatchSummary]] = {tier: None for tier in UrgencyTier}

    def submit(self, request: RescueRequest) -> Optional[RescueRequest]:
        return self.state.submit(request)

    def strategy_for(self, tier: UrgencyTier, escalation: int = 0) -> PrimingStrategy:
        """The strategy a session for ``tier`` will start with, honouring the cycle's preference."""
        return self.priming.select_strategy(
            tier, escalation, preference=self.config.cycles[tier].strategy_preference
        )

    def eligible(self, tier: UrgencyTier) -> List[RescueRequest]:
        """Pending requests for a tier that clear its priority threshold, ranked."""
        threshold = self.config.cycles[tier].priority_threshold
        return rank_requests([r for r in self.state.pending(tier) if r.urgency_score >= threshold])

    # ========== Cycle Execution ==========

    async def run_cycle(self, tier: UrgencyTier, now: Optional[datetime] = None) -> BatchSummary:
        """
        Run one batch for ``tier``.

        Never raises for store outages: the batch is aborted, claimed
        requests are restored and the error is reported in the summary.
        """
        now = now or datetime.now()
        summary = BatchSummary(tier=tier, started_at=now)

        eligible = self.eligible(tier)
        cap = self.batch_sizes[tier]
        selected = eligible[:cap]
        summary.eligible = len(eligible)
        summary.deferred = len(eligible) - len(selected)

        claimed = self.state.claim(selected)
        outcomes: List[RescueOutcome] = []
        try:
            outcomes = await self._process(claimed, now, summary)
        except StoreUnavailable as e:
            logger.error(f"Rescue batch {summary.batch_id} ({tier.value}) aborted: {e}")
            self.state.restore(claimed)
            summary.aborted = True
            summary.error = str(e)
            outcomes = []
        finally:
            for request in claimed:
                self.state.release(request.item_id)

        summary.finished_at = datetime.now()
        self.last_runs[tier] = now
        self.last_summaries[tier] = summary
        if self.metrics:
            self.metrics.record_batch(summary, outcomes)

        logger.info(
            f"Rescue batch {summary.batch_id} ({tier.value}): {summary.attempted} attempted, "
            f"{summary.successes} recovered, {summary.deferred} deferred"
        )
        return summary

    async def rescue_now(self, item_ids: List[UUID], now: Optional[datetime] = None) -> List[RescueOutcome]:
        """
        Immediately rescue specific items, bypassing the cycle timers.

        Same locking, timeout and persistence rules as a cycle. Items already
        in flight come back as conflicts.

        Raises:
            StoreUnavailable: Loading or saving failed; nothing was persisted
        """
        now = now or datetime.now()
        # Load everything before marking anything in flight, so a failed
        # load leaves no item stuck
        items = []
        for item_id in item_ids:
            item = await self.store.load(item_id)
            if item is not None:
                items.append(item)

        requests = []
        conflicts = []
        for item in items:
            evaluation = self.decay_model.evaluate(item, now)
            request = RescueRequest(
                item_id=item.id,
                tier=evaluation.tier,
                urgency_score=evaluation.urgency_score,
                time_since_access=evaluation.elapsed_seconds,
                strength=evaluation.strength,
                priority=evaluation.priority,
                requested_at=now,
            )
            if not self.state.mark_in_flight(item.id):
                conflicts.append(RescueOutcome(
                    item_id=item.id, tier=evaluation.tier, kind=RescueOutcomeKind.CONFLICT
                ))
                continue
            requests.append(request)

        superseded = [self.state.get(r.item_id) for r in requests]
        for request in requests:
            self.state.discard(request.item_id)
        try:
            outcomes = await self._process(requests, now, BatchSummary(tier=UrgencyTier.CRITICAL))
        except StoreUnavailable:
            self.state.restore([r for r in superseded if r is not None])
            raise
        finally:
            for request in requests:
                self.state.release(request.item_id)

        logger.info(f"Immediate rescue of {len(item_ids)} items: {len(outcomes)} dispatched")
        return outcomes + conflicts

    async def _process(
        self,
        requests: List[RescueRequest],
        now: datetime,
        summary: BatchSummary,
    ) -> List[RescueOutcome]:
        if not requests:
            return []

        items: Dict[UUID, MemoryItem] = {}
        for request in requests:
            # Waits out a watchdog write in progress for the same item
            async with self.state.lock_for(request.item_id):
                item = await self.store.load(request.item_id)
            if item is None or item.archived:
                logger.info(f"Item {request.item_id} retired upstream, dropping request")
                summary.skipped += 1
                continue
            items[request.item_id] = item

        dispatchable = [r for r in requests if r.item_id in items]
        semaphore = asyncio.Semaphore(self.config.worker_pool_size)

        async def worker(request: RescueRequest):
            async with semaphore:
                return await self._rescue_one(request, items[request.item_id])

        results: List[Tuple[RescueOutcome, Optional[PrimingSession]]] = await asyncio.gather(
            *(worker(request) for request in dispatchable)
        )

        changed: List[MemoryItem] = []
        outcomes: List[RescueOutcome] = []
        async with AsyncExitStack() as stack:
            for request in sorted(dispatchable, key=lambda r: str(r.item_id)):
                await stack.enter_async_context(self.state.lock_for(request.item_id))

            for outcome, session in results:
                outcomes.append(outcome)
                if outcome.kind == RescueOutcomeKind.CONFLICT:
                    continue
                item = items[outcome.item_id]
                self._apply_outcome(item, outcome, session, now)
                changed.append(item)

            await self.store.save_many(changed)

        for outcome in outcomes:
            if outcome.kind == RescueOutcomeKind.CONFLICT:
                summary.skipped += 1
                continue
            summary.attempted += 1
            if outcome.kind == RescueOutcomeKind.SUCCESS:
                summary.successes += 1
            elif outcome.kind == RescueOutcomeKind.TIMEOUT:
                summary.timeouts += 1
            else:
                summary.failures += 1

        attempted = [o for o in outcomes if o.kind != RescueOutcomeKind.CONFLICT]
        if attempted:
            summary.mean_effectiveness = sum(o.effectiveness for o in attempted) / len(attempted)
        return outcomes

    async def _rescue_one(
        self,
        request: RescueRequest,
        item: MemoryItem,
    ) -> Tuple[RescueOutcome, Optional[PrimingSession]]:
        """Run one session, translating per-item failures into outcomes."""
        strength_before = self.decay_model.strength(item)
        base = dict(item_id=item.id, tier=request.tier, strength_before=strength_before,
                    strength_after=strength_before)
        try:
            session = await self.priming.run_session(
                item,
                tier=request.tier,
                escalation=item.rescue_status.escalation_level,
                preference=self.config.cycles[request.tier].strategy_preference,
            )
        except ConcurrentSessionConflict:
            logger.debug(f"Session already in flight for {item.id}, dropping request")
            return RescueOutcome(kind=RescueOutcomeKind.CONFLICT, **base), None
        except InsufficientSignalError as e:
            logger.warning(f"{e}; deferring to next tier escalation")
            return RescueOutcome(kind=RescueOutcomeKind.INSUFFICIENT_SIGNAL, error=str(e), **base), None
        except SessionTimeout as e:
            logger.warning(str(e))
            return RescueOutcome(kind=RescueOutcomeKind.TIMEOUT, error=str(e), **base), None
        except ResponderError as e:
            logger.error(f"Responder failed for {item.id}: {e}")
            return RescueOutcome(kind=RescueOutcomeKind.ERROR, error=str(e), **base), None
        except Exception as e:
            # One item's failure must not abort the rest of the batch
            logger.error(f"Rescue of {item.id} failed: {e}", exc_info=True)
            return RescueOutcome(kind=RescueOutcomeKind.ERROR, error=str(e), **base), None

        if session.recall_achieved:
            base["strength_after"] = self.decay_config.reinstatement_strength
        return RescueOutcome(
            kind=RescueOutcomeKind.SUCCESS if session.recall_achieved else RescueOutcomeKind.FAILURE,
            strategy=session.strategy.name,
            session_id=session.session_id,
            effectiveness=session.effectiveness,
            **base,
        ), session

    def _apply_outcome(
        self,
        item: MemoryItem,
        outcome: RescueOutcome,
        session: Optional[PrimingSession],
        now: datetime,
    ) -> None:
        metrics = item.decay_metrics
        status = item.rescue_status

        if outcome.kind == RescueOutcomeKind.SUCCESS:
            # A successful rescue resets the decay clock
            metrics.initial_strength = self.decay_config.reinstatement_strength
            metrics.last_accessed = now
            metrics.retrieval_count += 1
            status.escalation_level = 0
            status.requires_intervention = False
        elif outcome.kind == RescueOutcomeKind.FAILURE:
            metrics.failed_retrievals += 1
        elif outcome.kind == RescueOutcomeKind.TIMEOUT:
            status.escalation_level += 1

        metrics.last_intervention = now
        metrics.intervention_history.append(InterventionRecord(
            timestamp=now,
            strategy=outcome.strategy,
            outcome=outcome.kind.value,
            effectiveness=outcome.effectiveness,
            retrieval_success=outcome.kind == RescueOutcomeKind.SUCCESS,
            strength_before=outcome.strength_before,
            strength_after=outcome.strength_after,
            session_id=outcome.session_id,
        ))
        if outcome.strategy:
            status.rescue_strategy = outcome.strategy
        if session is not None:
            item.recall_profile = update_recall_profile(item.recall_profile, session)
        if self.feedback is not None:
            self.feedback.apply_feedback(item, outcome, now)

    # ========== Optimisation & Status ==========

    def optimize_cycles(self) -> Dict[UrgencyTier, int]:
        """
        Adjust each tier's effective batch size from its success rate:
        shrink when well under the effectiveness target, grow (up to the
        configured cap) when comfortably above it.
        """
        if self.metrics is None:
            return dict(self.batch_sizes)

        for tier, cycle in self.config.cycles.items():
            tier_metrics = self.metrics.tier_metrics(tier)
            if tier_metrics.attempted == 0:
                continue
            current = self.batch_sizes[tier]
            rate = tier_metrics.success_rate
            if rate < cycle.effectiveness_target * 0.8:
                self.batch_sizes[tier] = max(MIN_BATCH_SIZE, int(current * 0.8))
            elif rate > cycle.effectiveness_target * 1.1:
                self.batch_sizes[tier] = min(cycle.max_batch_size, int(current * 1.2))
            if self.batch_sizes[tier] != current:
                logger.info(
                    f"Batch size for {tier.value} adjusted {current} -> {self.batch_sizes[tier]} "
                    f"(success rate {rate:.2f}, target {cycle.effectiveness_target:.2f})"
                )
        return dict(self.batch_sizes)

    def get_status(self) -> dict:
        return {
            "worker_pool_size": self.config.worker_pool_size,
            "pending": self.state.pending_counts(),
            "in_flight": self.state.in_flight_count,
            "cycles": {
                tier.value: {
                    "interval_seconds": cycle.interval_seconds,
                    "max_batch_size": cycle.max_batch_size,
                    "effective_batch_size": self.batch_sizes[tier],
                    "priority_threshold": cycle.priority_threshold,
                    "strategy_preference": list(cycle.strategy_preference),
                    "effectiveness_target": cycle.effectiveness_target,
                    "last_run": self.last_runs[tier].isoformat() if self.last_runs[tier] else None,
                    "last_batch": (
                        self.last_summaries[tier].to_record() if self.last_summaries[tier] else None
                    ),
                }
                for tier, cycle in self.config.cycles.items()
            },
        }
