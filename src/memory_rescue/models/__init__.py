"""Data models package."""

from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    DecayMetrics,
    FragmentType,
    InterventionPriority,
    InterventionRecord,
    MemoryFragment,
    MemoryItem,
    RecallProfile,
    RescueStatus,
    TIER_ORDER,
    UrgencyTier,
)
from memory_rescue.models.priming import (
    PrimingSession,
    PrimingStrategy,
    RevelationStage,
    RevelationType,
    Stimulus,
    StimulusResponse,
    SuccessCriteria,
)
from memory_rescue.models.rescue import (
    BatchSummary,
    RescueOutcome,
    RescueOutcomeKind,
    RescueRequest,
    WatchdogStats,
)

__all__ = [
    "BatchSummary",
    "ContextualCue",
    "CueType",
    "DecayMetrics",
    "FragmentType",
    "InterventionPriority",
    "InterventionRecord",
    "MemoryFragment",
    "MemoryItem",
    "PrimingSession",
    "PrimingStrategy",
    "RecallProfile",
    "RescueOutcome",
    "RescueOutcomeKind",
    "RescueRequest",
    "RescueStatus",
    "RevelationStage",
    "RevelationType",
    "Stimulus",
    "StimulusResponse",
    "SuccessCriteria",
    "TIER_ORDER",
    "UrgencyTier",
    "WatchdogStats",
]
