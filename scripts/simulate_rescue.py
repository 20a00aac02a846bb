#!/usr/bin/env python3
"""
Simulation Script: Decay and Rescue Walkthrough

Seeds an in-memory store with items of varying age, runs one watchdog pass
and every rescue cycle with the simulated responder, then prints the batch
summaries.

Usage:
    cd /path/to/memory_rescue
    pip install -e .
    python scripts/simulate_rescue.py --items 40 --seed 7

Options:
    --items  Number of items to seed (default: 40)
    --seed   Responder RNG seed (default: 7)
"""

import argparse
import asyncio
import random
from datetime import datetime, timedelta

from memory_rescue.config import RescueConfig, configure_logging
from memory_rescue.database.memory_store import InMemoryStore
from memory_rescue.engine.rescue_engine import TemporalRescueEngine
from memory_rescue.models.memory_item import UrgencyTier
from memory_rescue.responders.simulated import SimulatedResponder

SAMPLE_CONTENT = [
    "Quarterly review moved to Thursday after the board meeting. Important to prepare the budget slides.",
    "Met Dana at the harbour cafe yesterday. She was excited about the new sailing club.",
    "The staging database password rotates every Monday. Critical before deploying.",
    "Grandmother's lemon cake uses brown butter. Bake it when the family visits.",
    "Worried about the lease renewal. The landlord wants an answer before the end of the month.",
]


async def simulate(item_count: int, seed: int):
    print("=" * 60)
    print("Decay and Rescue Simulation")
    print("=" * 60)

    config = RescueConfig()
    config.metrics.enabled = False
    configure_logging(config.logging)

    rng = random.Random(seed)
    store = InMemoryStore()
    engine = TemporalRescueEngine(config, store=store, responder=SimulatedResponder(seed=seed))
    await engine.initialize(start_jobs=False)

    now = datetime.now()
    for index in range(item_count):
        item = await engine.remember(
            SAMPLE_CONTENT[index % len(SAMPLE_CONTENT)],
            importance=round(rng.uniform(0.2, 1.0), 2),
            metadata={"topic": f"sample-{index % len(SAMPLE_CONTENT)}", "emotion": "curious"},
        )
        # Spread last access between a few minutes and ten days ago
        item.decay_metrics.last_accessed = now - timedelta(hours=rng.uniform(0.1, 240))
        await engine.track(item)

    try:
        stats = await engine.assess()
        print(f"\nMonitored: {stats.total_monitored}  Requests: {stats.requests_emitted}")
        print(f"By tier: { {t.value: c for t, c in stats.by_tier.items()} }")

        for tier in UrgencyTier:
            summary = await engine.run_cycle(tier)
            print(
                f"  {tier.value:<9} eligible={summary.eligible:<3} attempted={summary.attempted:<3} "
                f"recovered={summary.successes:<3} deferred={summary.deferred:<3} "
                f"effectiveness={summary.mean_effectiveness:.2f}"
            )

        sizes = engine.scheduler.optimize_cycles()
        print(f"\nOptimised batch sizes: { {t.value: s for t, s in sizes.items()} }")
    finally:
        await engine.close()


def main():
    parser = argparse.ArgumentParser(
        description="Simulate decay monitoring and rescue cycles"
    )
    parser.add_argument(
        "--items",
        type=int,
        default=40,
        help="Number of items to seed (default: 40)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=7,
        help="Responder RNG seed (default: 7)"
    )

    args = parser.parse_args()

    asyncio.run(simulate(item_count=args.items, seed=args.seed))


if __name__ == "__main__":
    main()
