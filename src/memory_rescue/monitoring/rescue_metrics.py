"""
Rescue Metrics

Collects batch summaries and per-tier rescue metrics. Every batch summary is
written as one JSON line to a dedicated metrics logger and kept in memory
for the status surface.
"""

import json
import logging
import statistics
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from memory_rescue.models.memory_item import UrgencyTier
from memory_rescue.models.rescue import BatchSummary, RescueOutcome, RescueOutcomeKind, TierMetrics


class RescueMetricsSink:
    """
    Reporting surface for rescue batches.

    Features:
    - JSON-lines batch log (rescue_YYYYMMDD.jsonl)
    - In-memory recent summaries
    - Per-tier running metrics
    - JSON snapshot of the tier metrics
    """

    def __init__(self, log_dir: str = "logs", max_recent: int = 100, enabled: bool = True):
        """
        Initialize the metrics sink.

        Args:
            log_dir: Directory for log files
            max_recent: Max number of recent summaries to keep in memory
            enabled: When False nothing is written to disk
        """
        self.log_dir = Path(log_dir)
        self.enabled = enabled
        if self.enabled:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.recent: deque = deque(maxlen=max_recent)
        self.tiers: Dict[UrgencyTier, TierMetrics] = {tier: TierMetrics() for tier in UrgencyTier}

        self._setup_logger()

    def _setup_logger(self):
        """Setup JSON logger for batch summaries."""
        self.logger = logging.getLogger("memory_rescue.metrics")
        self.logger.setLevel(logging.INFO)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()
        self.logger.propagate = False

        if not self.enabled:
            self.logger.addHandler(logging.NullHandler())
            return

        log_file = self.log_dir / f"rescue_{datetime.now().strftime('%Y%m%d')}.jsonl"
        handler = logging.FileHandler(log_file)
        handler.setLevel(logging.INFO)

        # No formatting - we write JSON directly
        handler.setFormatter(logging.Formatter('%(message)s'))
        self.logger.addHandler(handler)

    def record_batch(self, summary: BatchSummary, outcomes: Optional[List[RescueOutcome]] = None) -> None:
        """Record a finished (or aborted) batch."""
        record = summary.to_record()
        self.recent.append(record)
        self.logger.info(json.dumps(record))

        metrics = self.tiers[summary.tier]
        metrics.batches += 1
        metrics.deferred += summary.deferred
        if summary.aborted:
            metrics.failures_by_cause["store-unavailable"] = (
                metrics.failures_by_cause.get("store-unavailable", 0) + 1
            )
            return

        for outcome in outcomes or []:
            if outcome.kind == RescueOutcomeKind.CONFLICT:
                continue
            metrics.attempted += 1
            metrics.total_effectiveness += outcome.effectiveness
            if outcome.kind == RescueOutcomeKind.SUCCESS:
                metrics.successful += 1
            else:
                metrics.failures_by_cause[outcome.kind.value] = (
                    metrics.failures_by_cause.get(outcome.kind.value, 0) + 1
                )

    def tier_metrics(self, tier: UrgencyTier) -> TierMetrics:
        return self.tiers[tier]

    def get_recent(self, limit: Optional[int] = None) -> List[Dict]:
        """Get recent batch summaries from memory."""
        records = list(self.recent)
        if limit:
            records = records[-limit:]
        return records

    def get_summary(self) -> Dict[str, Any]:
        """Aggregated metrics per tier plus recent batch figures."""
        recent = [r for r in self.recent if not r.get("aborted")]
        effectiveness = [r["mean_effectiveness"] for r in recent if r.get("attempted")]
        return {
            "tiers": {
                tier.value: {
                    "batches": m.batches,
                    "attempted": m.attempted,
                    "successful": m.successful,
                    "success_rate": round(m.success_rate, 3),
                    "mean_effectiveness": round(m.mean_effectiveness, 3),
                    "avg_batch_size": round(m.avg_batch_size, 2),
                    "deferred": m.deferred,
                    "failures_by_cause": dict(m.failures_by_cause),
                }
                for tier, m in self.tiers.items()
            },
            "recent_count": len(self.recent),
            "avg_batch_effectiveness": round(statistics.mean(effectiveness), 3) if effectiveness else 0,
        }

    async def write_snapshot(self, filename: str = "rescue_metrics.json") -> Optional[Path]:
        """Persist the current summary as a JSON file."""
        if not self.enabled:
            return None
        path = self.log_dir / filename
        payload = {"generated_at": datetime.now().isoformat(), **self.get_summary()}
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, indent=2))
        return path

    def get_log_files(self) -> List[str]:
        """Get list of available batch log files."""
        if not self.log_dir.exists():
            return []
        return sorted([f.name for f in self.log_dir.glob("rescue_*.jsonl")], reverse=True)

    def read_log_file(self, filename: str, limit: Optional[int] = None) -> List[Dict]:
        """Read batch summaries from a log file."""
        log_file = self.log_dir / filename
        if not log_file.exists():
            return []

        records = []
        with open(log_file, 'r') as f:
            for line in f:
                try:
                    records.append(json.loads(line.strip()))
                except json.JSONDecodeError:
                    continue

        if limit:
            records = records[-limit:]
        return records
