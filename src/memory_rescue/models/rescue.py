"""
Rescue Data Models

Requests flowing from the watchdog to the scheduler, per-item outcomes,
batch summaries and monitoring statistics.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from memory_rescue.models.memory_item import InterventionPriority, UrgencyTier


class RescueRequest(BaseModel):
    """Emitted by the watchdog for an item that needs intervention."""
    item_id: UUID
    tier: UrgencyTier
    urgency_score: float = Field(..., ge=0.0, le=1.0)
    time_since_access: float = Field(..., ge=0.0, description="Seconds")
    strength: float
    priority: InterventionPriority = InterventionPriority.LOW
    requested_at: datetime = Field(default_factory=datetime.now)


class RescueOutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    INSUFFICIENT_SIGNAL = "insufficient-signal"
    CONFLICT = "conflict"
    ERROR = "error"


class RescueOutcome(BaseModel):
    """Result of one dispatched rescue."""
    item_id: UUID
    tier: UrgencyTier
    kind: RescueOutcomeKind
    strategy: Optional[str] = None
    session_id: Optional[str] = None
    effectiveness: float = 0.0
    strength_before: float = 0.0
    strength_after: float = 0.0
    error: Optional[str] = None


class BatchSummary(BaseModel):
    """Structured summary emitted after every batch."""
    batch_id: str = Field(default_factory=lambda: f"batch-{uuid4().hex[:10]}")
    tier: UrgencyTier
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    eligible: int = 0
    attempted: int = 0
    successes: int = 0
    failures: int = 0
    timeouts: int = 0
    skipped: int = 0
    mean_effectiveness: float = 0.0
    deferred: int = 0
    aborted: bool = False
    error: Optional[str] = None

    def to_record(self) -> dict:
        """Flatten for the metrics/log sink."""
        record = self.model_dump(mode="json")
        record["type"] = "rescue_batch"
        return record


class DecayStageCounts(BaseModel):
    healthy: int = 0
    at_risk: int = 0
    decaying: int = 0
    critical: int = 0


class WatchdogStats(BaseModel):
    """Result of one watchdog tick."""
    tick_at: datetime = Field(default_factory=datetime.now)
    total_monitored: int = 0
    requests_emitted: int = 0
    skipped_in_flight: int = 0
    item_errors: int = 0
    by_stage: DecayStageCounts = Field(default_factory=DecayStageCounts)
    by_tier: Dict[UrgencyTier, int] = Field(
        default_factory=lambda: {tier: 0 for tier in UrgencyTier}
    )
    average_intervention_effectiveness: float = 0.0
    next_tick_at: Optional[datetime] = None
    error: Optional[str] = None


class DecayPrediction(BaseModel):
    """Projected strength if the item is not accessed again."""
    predicted_4h_strength: float
    predicted_24h_strength: float
    predicted_3d_strength: float
    predicted_7d_strength: float
    critical_intervention_time: datetime


class TierMetrics(BaseModel):
    """Running rescue metrics for one tier."""
    batches: int = 0
    attempted: int = 0
    successful: int = 0
    deferred: int = 0
    total_effectiveness: float = 0.0
    failures_by_cause: Dict[str, int] = Field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return self.successful / self.attempted if self.attempted else 0.0

    @property
    def mean_effectiveness(self) -> float:
        return self.total_effectiveness / self.attempted if self.attempted else 0.0

    @property
    def avg_batch_size(self) -> float:
        return self.attempted / self.batches if self.batches else 0.0
