"""
Temporal Rescue Engine - Main Engine Implementation

Wires the decay model, watchdog, priming engine and rescue scheduler around
one shared state object and drives them from a periodic scheduler.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from memory_rescue.config import RescueConfig, load_config
from memory_rescue.database.base import MemoryStore
from memory_rescue.database.memory_store import InMemoryStore
from memory_rescue.database.repository import PostgresMemoryStore
from memory_rescue.database.schema import DatabaseSchema
from memory_rescue.engine.base import DecayPreventionEngine
from memory_rescue.engine.decay import DecayModel
from memory_rescue.engine.priming import SelectivePrimingEngine
from memory_rescue.engine.rescue_scheduler import MemoryRescueScheduler
from memory_rescue.engine.state import RescueState
from memory_rescue.engine.watchdog import DecayWatchdog
from memory_rescue.models.memory_item import MemoryItem, UrgencyTier
from memory_rescue.models.rescue import BatchSummary, RescueOutcome, WatchdogStats
from memory_rescue.monitoring.rescue_metrics import RescueMetricsSink
from memory_rescue.pipelines.fragments import FragmentExtractor, build_memory_item
from memory_rescue.responders.base import ResponseProvider
from memory_rescue.responders.llm import LLMResponder
from memory_rescue.responders.simulated import SimulatedResponder
from memory_rescue.scheduling.jobs import job_cycle_optimization, job_decay_watchdog, job_rescue_cycle
from memory_rescue.scheduling.scheduler import PeriodicScheduler

logger = logging.getLogger("memory_rescue.engine")

OPTIMIZATION_INTERVAL_SECONDS = 24 * 3600


def cycle_job_name(tier: UrgencyTier) -> str:
    return f"rescue_cycle_{tier.value}"


class TemporalRescueEngine(DecayPreventionEngine):
    """
    Main implementation of the decay-prevention engine.

    Usage:
        engine = TemporalRescueEngine()
        await engine.initialize()

        # Run a watchdog pass and the due-tier cycle by hand
        await engine.assess()
        await engine.run_cycle(UrgencyTier.DUE)

        await engine.close()
    """

    def __init__(
        self,
        config: Optional[RescueConfig] = None,
        store: Optional[MemoryStore] = None,
        responder: Optional[ResponseProvider] = None,
        metrics: Optional[RescueMetricsSink] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Configuration object. Loads from ./config if not provided.
            store: Storage collaborator. Built from config.database if not provided.
            responder: User-response collaborator. Built from config.responder if not provided.
            metrics: Reporting surface. Built from config.metrics if not provided.
        """
        self.config = config or load_config()

        self.schema: Optional[DatabaseSchema] = None
        if store is None:
            store = self._build_store()
        self.store = store

        self.responder = responder or self._build_responder()
        self.metrics = metrics or RescueMetricsSink(
            log_dir=self.config.metrics.log_dir,
            max_recent=self.config.metrics.max_recent,
            enabled=self.config.metrics.enabled,
        )

        self.state = RescueState()
        self.decay_model = DecayModel(self.config.decay, self.config.watchdog.thresholds)
        self.priming = SelectivePrimingEngine(self.responder, self.config.priming)
        self.watchdog = DecayWatchdog(
            self.store,
            self.state,
            self.decay_model,
            self.config.watchdog,
            strategy_selector=lambda tier, escalation: self.scheduler.strategy_for(tier, escalation),
        )
        self.scheduler = MemoryRescueScheduler(
            self.store,
            self.state,
            self.priming,
            config=self.config.scheduler,
            decay_model=self.decay_model,
            decay_config=self.config.decay,
            feedback=self.watchdog,
            metrics=self.metrics,
        )
        self.extractor = FragmentExtractor()
        self.jobs = PeriodicScheduler()

        self._initialized = False

    def _build_store(self) -> MemoryStore:
        if self.config.database.backend == "postgres":
            connection_string = self.config.database.connection_string
            self.schema = DatabaseSchema(connection_string)
            return PostgresMemoryStore(connection_string)
        return InMemoryStore()

    def _build_responder(self) -> ResponseProvider:
        settings = self.config.responder
        if settings.kind == "llm":
            return LLMResponder(
                content_lookup=self._content_for,
                api_key=settings.api_key,
                base_url=settings.base_url,
                model=settings.model,
            )
        return SimulatedResponder(seed=settings.seed)

    async def _content_for(self, item_id: str) -> Optional[str]:
        item = await self.store.load(UUID(item_id))
        return item.content if item else None

    async def initialize(self, start_jobs: bool = True) -> None:
        """
        Initialize all components.

        - Creates database schema (PostgreSQL backend)
        - Connects the store
        - Registers the watchdog, the four rescue cycles and optimisation
        - Starts the periodic scheduler
        """
        if self._initialized:
            return
        self._initialized = True

        if self.schema is not None:
            await self.schema.initialize()
        await self.store.connect()

        self.jobs.add_job(
            name="decay_watchdog",
            interval_seconds=self.config.watchdog.poll_interval_seconds,
            func=lambda: job_decay_watchdog(self),
            job_type="decay_watchdog",
            is_system=True,
        )
        for tier, cycle in self.config.scheduler.cycles.items():
            self.jobs.add_job(
                name=cycle_job_name(tier),
                interval_seconds=cycle.interval_seconds,
                func=lambda tier=tier: job_rescue_cycle(self, tier),
                job_type="rescue_cycle",
                is_system=True,
                run_on_start=False,
            )
        self.jobs.add_job(
            name="cycle_optimization",
            interval_seconds=OPTIMIZATION_INTERVAL_SECONDS,
            func=lambda: job_cycle_optimization(self),
            job_type="cycle_optimization",
            is_system=True,
            run_on_start=False,
        )

        if start_jobs:
            await self.jobs.start()
        logger.info(f"Rescue engine initialized ({self.config.database.backend} store)")

    async def close(self) -> None:
        """Stop background jobs and release the store."""
        await self.jobs.stop()
        await self.store.disconnect()
        self._initialized = False

    # ========== Operations ==========

    async def assess(self) -> WatchdogStats:
        return await self.watchdog.tick()

    async def run_cycle(self, tier: UrgencyTier) -> BatchSummary:
        return await self.scheduler.run_cycle(tier)

    async def rescue(self, item_ids: List[UUID]) -> List[RescueOutcome]:
        return await self.scheduler.rescue_now(item_ids)

    async def track(self, item: MemoryItem) -> MemoryItem:
        """Hand an upstream-created item to the engine for monitoring."""
        await self.store.save(item)
        return item

    async def remember(
        self,
        content: str,
        importance: float = 0.5,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryItem:
        """Annotate raw content with fragments and cues and start monitoring it."""
        item = build_memory_item(
            content,
            importance=importance,
            metadata=metadata,
            extractor=self.extractor,
            decay_rate=self.config.decay.default_decay_rate,
        )
        return await self.track(item)

    async def decay_report(self, item_id: UUID) -> Optional[dict]:
        item = await self.store.load(item_id)
        if item is None:
            return None
        now = datetime.now()
        evaluation = self.decay_model.evaluate(item, now)
        pending = self.state.get(item.id)
        return {
            "item_id": str(item.id),
            "evaluation": evaluation.model_dump(mode="json"),
            "prediction": self.decay_model.predict(item, now).model_dump(mode="json"),
            "rescue_status": item.rescue_status.model_dump(mode="json"),
            "decay_resistance": item.decay_metrics.decay_resistance,
            "retrieval_count": item.decay_metrics.retrieval_count,
            "failed_retrievals": item.decay_metrics.failed_retrievals,
            "interventions": len(item.decay_metrics.intervention_history),
            "pending_request": pending.model_dump(mode="json") if pending else None,
            "in_flight": self.state.is_in_flight(item.id),
        }

    def get_cycles(self) -> dict:
        """Cycle configuration and state merged with job timing."""
        cycles = self.scheduler.get_status()["cycles"]
        for tier in UrgencyTier:
            job = self.jobs.get_job(cycle_job_name(tier))
            cycles[tier.value]["next_run_in"] = job["next_run_in"] if job else None
            cycles[tier.value]["enabled"] = job["enabled"] if job else False
        return cycles

    def get_status(self) -> dict:
        scheduler_status = self.scheduler.get_status()
        scheduler_status["cycles"] = self.get_cycles()
        return {
            "initialized": self._initialized,
            "jobs_running": self.jobs.running,
            "watchdog": self.watchdog.get_status(),
            "scheduler": scheduler_status,
            "metrics": self.metrics.get_summary(),
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
