"""
Memory Item Data Model

Defines the MemoryItem managed by the decay-prevention engine together with
its fragments, contextual cues, decay metrics, rescue status and the learned
per-item recall profile.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class FragmentType(str, Enum):
    """Kind of partial cue extracted from an item's payload."""
    KEYWORD = "keyword"
    PHRASE = "phrase"
    EMOTIONAL_MARKER = "emotional-marker"
    CONTEXTUAL_ANCHOR = "contextual-anchor"


class CueType(str, Enum):
    """Modality of a contextual cue."""
    TEMPORAL = "temporal"
    SEMANTIC = "semantic"
    EMOTIONAL = "emotional"
    ENVIRONMENTAL = "environmental"


class UrgencyTier(str, Enum):
    """Fixed bands over time-since-access, least to most urgent."""
    IMMINENT = "imminent"
    DUE = "due"
    OVERDUE = "overdue"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER = [UrgencyTier.IMMINENT, UrgencyTier.DUE, UrgencyTier.OVERDUE, UrgencyTier.CRITICAL]


class InterventionPriority(str, Enum):
    """Priority derived from current strength against the watchdog thresholds."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MemoryFragment(BaseModel):
    """A ranked partial excerpt of an item's content. Immutable once extracted."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"frag-{uuid4().hex[:12]}")
    content: str
    type: FragmentType
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    activation_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


class ContextualCue(BaseModel):
    """A typed, scored signal associated with an item."""
    id: str = Field(default_factory=lambda: f"cue-{uuid4().hex[:12]}")
    type: CueType
    strength: float = Field(..., ge=0.0, le=1.0)
    content: str
    associations: List[str] = Field(default_factory=list)


class InterventionRecord(BaseModel):
    """One completed (or aborted) intervention attempt."""
    timestamp: datetime = Field(default_factory=datetime.now)
    strategy: Optional[str] = None
    outcome: str
    effectiveness: float = 0.0
    retrieval_success: bool = False
    strength_before: float
    strength_after: float
    session_id: Optional[str] = None


class DecayMetrics(BaseModel):
    """
    Inputs to the forgetting curve.

    Current strength is deliberately not stored: it is recomputed from
    ``last_accessed`` on every read so that it can never go stale.
    """
    initial_strength: float = Field(default=1.0, gt=0.0, le=1.0)
    last_accessed: datetime = Field(default_factory=datetime.now)
    retrieval_count: int = Field(default=0, ge=0)
    failed_retrievals: int = Field(default=0, ge=0)
    decay_rate: float = Field(default=0.693, gt=0.0)
    decay_resistance: float = Field(default=0.0, ge=0.0, le=1.0)
    last_intervention: Optional[datetime] = None
    intervention_history: List[InterventionRecord] = Field(default_factory=list)


class RescueStatus(BaseModel):
    """Rescue-state fields shared between the watchdog and the scheduler."""
    requires_intervention: bool = False
    next_intervention_time: Optional[datetime] = None
    urgency_tier: UrgencyTier = UrgencyTier.IMMINENT
    intervention_priority: InterventionPriority = InterventionPriority.LOW
    rescue_strategy: Optional[str] = None
    escalation_level: int = Field(default=0, ge=0)


class RecallProfile(BaseModel):
    """Per-item learned preferences, updated after every priming session."""
    preferred_cue_types: List[CueType] = Field(
        default_factory=lambda: [CueType.SEMANTIC, CueType.TEMPORAL]
    )
    effective_intervention_types: List[str] = Field(default_factory=list)
    recall_success_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    optimal_spacing_seconds: float = Field(default=4 * 3600, gt=0.0)


class MemoryItem(BaseModel):
    """
    The unit under decay management.

    Items are created by the storage layer and handed to the engine by id;
    the engine only annotates decay and rescue state, never the content.
    """

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=datetime.now)
    content: str = Field(..., description="Opaque payload")
    importance: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Salience/importance score (0.0-1.0)"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)
    fragments: List[MemoryFragment] = Field(default_factory=list)
    contextual_cues: List[ContextualCue] = Field(default_factory=list)
    decay_metrics: DecayMetrics = Field(default_factory=DecayMetrics)
    rescue_status: RescueStatus = Field(default_factory=RescueStatus)
    recall_profile: RecallProfile = Field(default_factory=RecallProfile)
    archived: bool = False

    @property
    def has_signal(self) -> bool:
        """True when there is at least one fragment or cue to prime with."""
        return bool(self.fragments or self.contextual_cues)

    def rerank_cues(self, ordered_ids: List[str]) -> None:
        """Reorder cues by id. Cues missing from ``ordered_ids`` keep their relative order at the end."""
        position = {cue_id: index for index, cue_id in enumerate(ordered_ids)}
        self.contextual_cues.sort(key=lambda cue: position.get(cue.id, len(position)))

    def purge_cue(self, cue_id: str) -> bool:
        """Explicitly delete a cue. Returns True if a cue was removed."""
        before = len(self.contextual_cues)
        self.contextual_cues = [cue for cue in self.contextual_cues if cue.id != cue_id]
        return len(self.contextual_cues) < before
