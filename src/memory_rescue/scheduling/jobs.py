"""
Standard Rescue Jobs

Defines the background tasks run by the rescue engine's scheduler.
"""

import logging
from typing import TYPE_CHECKING

from memory_rescue.models.memory_item import UrgencyTier

if TYPE_CHECKING:
    from memory_rescue.engine.rescue_engine import TemporalRescueEngine

logger = logging.getLogger("memory_rescue.jobs")


# ========== Job Registry ==========
# Maps job_type strings to coroutine functions taking the engine

JOB_REGISTRY = {}


def register_job(name: str):
    """Decorator to register a job function."""
    def decorator(func):
        JOB_REGISTRY[name] = func
        return func
    return decorator


@register_job("decay_watchdog")
async def job_decay_watchdog(engine: "TemporalRescueEngine"):
    """
    Decay Watchdog Job.

    Evaluates every tracked item and queues rescue requests.
    """
    stats = await engine.watchdog.tick()
    if stats.error:
        logger.warning(f"Watchdog tick reported an error: {stats.error}")


@register_job("rescue_cycle")
async def job_rescue_cycle(engine: "TemporalRescueEngine", tier: UrgencyTier):
    """
    Rescue Cycle Job.

    Dispatches one capped, priority-ordered batch for a tier.
    """
    summary = await engine.scheduler.run_cycle(tier)
    if summary.aborted:
        logger.warning(f"Rescue cycle '{tier.value}' aborted: {summary.error}")


@register_job("cycle_optimization")
async def job_cycle_optimization(engine: "TemporalRescueEngine"):
    """
    Cycle Optimisation Job.

    Retunes per-tier batch sizes from observed success rates and writes a
    metrics snapshot.
    """
    logger.info("Executing cycle optimisation...")
    sizes = engine.scheduler.optimize_cycles()
    if engine.metrics is not None:
        path = await engine.metrics.write_snapshot()
        if path:
            logger.info(f"Rescue metrics snapshot written to {path}")
    logger.info(f"Cycle optimisation complete: {({t.value: s for t, s in sizes.items()})}")
