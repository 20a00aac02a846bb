"""Decay scoring for memory items.

Implements the exponential forgetting curve with an asymptotic floor:

    strength(t) = max(floor, initial_strength * e^(-decay_rate * t))

where t is the time since last access in ``time_unit_seconds`` units
(hours by default, so a decay rate of ln 2 gives a one-hour half-life).

Everything here is stateless; ``DecayModel`` only binds the configured
floor and time unit so callers do not have to thread them through.
"""

import math
from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel

from memory_rescue.config import HOUR, DAY, DecayConfig, InterventionThresholds
from memory_rescue.models.memory_item import (
    InterventionPriority,
    MemoryItem,
    UrgencyTier,
)
from memory_rescue.models.rescue import DecayPrediction

# Upper bounds (exclusive) of each tier over time-since-access, in seconds.
# Anything at or beyond the last bound is CRITICAL.
TIER_BOUNDARIES = [
    (UrgencyTier.IMMINENT, 4 * HOUR),
    (UrgencyTier.DUE, 24 * HOUR),
    (UrgencyTier.OVERDUE, 3 * DAY),
]

# Planning heuristic only, not a guarantee.
TIER_TARGET_EFFECTIVENESS: Dict[UrgencyTier, float] = {
    UrgencyTier.IMMINENT: 0.70,
    UrgencyTier.DUE: 0.59,
    UrgencyTier.OVERDUE: 0.45,
    UrgencyTier.CRITICAL: 0.25,
}

PREDICTION_HORIZONS = {
    "predicted_4h_strength": 4 * HOUR,
    "predicted_24h_strength": 24 * HOUR,
    "predicted_3d_strength": 3 * DAY,
    "predicted_7d_strength": 7 * DAY,
}


def compute_strength(
    initial_strength: float,
    decay_rate: float,
    elapsed_seconds: float,
    floor: float = 0.1,
    time_unit_seconds: float = HOUR,
) -> float:
    """Retention strength after ``elapsed_seconds`` without access."""
    t = max(elapsed_seconds, 0.0) / time_unit_seconds
    return max(floor, initial_strength * math.exp(-decay_rate * t))


def classify_tier(elapsed_seconds: float) -> UrgencyTier:
    """Map time-since-access onto an urgency tier. Non-decreasing in elapsed time."""
    for tier, upper_bound in TIER_BOUNDARIES:
        if elapsed_seconds < upper_bound:
            return tier
    return UrgencyTier.CRITICAL


def classify_priority(strength: float, thresholds: InterventionThresholds) -> InterventionPriority:
    """Map current strength onto an intervention priority."""
    if strength < thresholds.critical:
        return InterventionPriority.CRITICAL
    if strength < thresholds.high:
        return InterventionPriority.HIGH
    if strength < thresholds.medium:
        return InterventionPriority.MEDIUM
    return InterventionPriority.LOW


def decay_stage(strength: float, thresholds: InterventionThresholds) -> str:
    """Coarse health label used for watchdog statistics."""
    if strength >= thresholds.low:
        return "healthy"
    if strength >= thresholds.medium:
        return "at_risk"
    if strength >= thresholds.critical:
        return "decaying"
    return "critical"


def urgency_score(
    strength: float,
    importance: float,
    elapsed_seconds: float,
    floor: float = 0.1,
) -> float:
    """
    Rank items for rescue. Blends how far the item has decayed towards the
    floor (0.5), its importance (0.3) and how long it has gone untouched,
    saturating at one week (0.2).
    """
    pressure = (1.0 - strength) / (1.0 - floor) if floor < 1.0 else 0.0
    pressure = min(1.0, max(0.0, pressure))
    time_factor = min(1.0, max(elapsed_seconds, 0.0) / (7 * DAY))
    score = pressure * 0.5 + importance * 0.3 + time_factor * 0.2
    return min(1.0, max(0.0, score))


class DecayEvaluation(BaseModel):
    """Snapshot of an item's decay state at one instant."""
    elapsed_seconds: float
    strength: float
    tier: UrgencyTier
    priority: InterventionPriority
    stage: str
    urgency_score: float


class DecayModel:
    """Binds the configured floor and time unit to the pure decay functions."""

    def __init__(
        self,
        config: Optional[DecayConfig] = None,
        thresholds: Optional[InterventionThresholds] = None,
    ):
        self.config = config or DecayConfig()
        self.thresholds = thresholds or InterventionThresholds()

    @property
    def floor(self) -> float:
        return self.config.strength_floor

    def time_since_access(self, item: MemoryItem, now: Optional[datetime] = None) -> float:
        now = now or datetime.now()
        return max((now - item.decay_metrics.last_accessed).total_seconds(), 0.0)

    def strength(self, item: MemoryItem, now: Optional[datetime] = None) -> float:
        """Current strength, recomputed on every call."""
        metrics = item.decay_metrics
        return compute_strength(
            metrics.initial_strength,
            metrics.decay_rate,
            self.time_since_access(item, now),
            floor=self.config.strength_floor,
            time_unit_seconds=self.config.time_unit_seconds,
        )

    def tier(self, item: MemoryItem, now: Optional[datetime] = None) -> UrgencyTier:
        return classify_tier(self.time_since_access(item, now))

    def evaluate(self, item: MemoryItem, now: Optional[datetime] = None) -> DecayEvaluation:
        now = now or datetime.now()
        elapsed = self.time_since_access(item, now)
        strength = self.strength(item, now)
        return DecayEvaluation(
            elapsed_seconds=elapsed,
            strength=strength,
            tier=classify_tier(elapsed),
            priority=classify_priority(strength, self.thresholds),
            stage=decay_stage(strength, self.thresholds),
            urgency_score=urgency_score(strength, item.importance, elapsed, self.floor),
        )

    def predict(self, item: MemoryItem, now: Optional[datetime] = None) -> DecayPrediction:
        """Project strength forward assuming no further access."""
        now = now or datetime.now()
        elapsed = self.time_since_access(item, now)
        metrics = item.decay_metrics
        predictions = {
            name: compute_strength(
                metrics.initial_strength,
                metrics.decay_rate,
                elapsed + horizon,
                floor=self.floor,
                time_unit_seconds=self.config.time_unit_seconds,
            )
            for name, horizon in PREDICTION_HORIZONS.items()
        }

        # Solve initial * e^(-rate * t) = critical for t, measured from last access
        critical = self.thresholds.critical
        if metrics.initial_strength <= critical:
            crossing = metrics.last_accessed
        else:
            units = math.log(metrics.initial_strength / critical) / metrics.decay_rate
            crossing = metrics.last_accessed + timedelta(
                seconds=units * self.config.time_unit_seconds
            )

        return DecayPrediction(critical_intervention_time=crossing, **predictions)
