"""
Priming Data Models

Strategies, revelation stages, stimuli/responses and session records used by
the selective priming engine.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    FragmentType,
    MemoryFragment,
    UrgencyTier,
)


class RevelationType(str, Enum):
    """The four progressive revelation stages, in presentation order."""
    MINIMAL_CUE = "minimal-cue"
    PARTIAL_FRAGMENT = "partial-fragment"
    CONTEXTUAL_HINT = "contextual-hint"
    DIRECT_PROMPT = "direct-prompt"


class SuccessCriteria(BaseModel):
    """All three conditions must hold for a response to count as recall."""

    model_config = ConfigDict(frozen=True)

    recognition_threshold: float = Field(..., ge=0.0, le=1.0)
    response_time_limit: float = Field(..., gt=0.0, description="Seconds")
    confidence_minimum: float = Field(..., ge=0.0, le=1.0)


class PrimingStrategy(BaseModel):
    """A named intervention strategy keyed by urgency tier."""

    model_config = ConfigDict(frozen=True)

    name: str
    tier: UrgencyTier
    effectiveness_rating: float = Field(..., ge=0.0, le=1.0)
    fragment_types: List[FragmentType]
    cue_modalities: List[CueType]
    success_criteria: SuccessCriteria


class RevelationStage(BaseModel):
    """One stage of a progressive revelation sequence."""

    model_config = ConfigDict(frozen=True)

    stage_number: int = Field(..., ge=1, le=4)
    revelation_type: RevelationType
    content: str
    expected_effectiveness: float
    time_budget: float = Field(..., gt=0.0, description="Seconds")
    success_criteria: SuccessCriteria
    cue_ids: List[str] = Field(default_factory=list)
    fragment_ids: List[str] = Field(default_factory=list)


class Stimulus(BaseModel):
    """What is presented to the user-response collaborator."""
    session_id: str
    item_id: str
    stage_number: int
    revelation_type: RevelationType
    content: str
    time_budget: float
    expected_effectiveness: float


class StimulusResponse(BaseModel):
    """The user's (or a stub's) reaction to a stimulus."""
    recognition_score: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    response_time: float = Field(..., ge=0.0, description="Seconds")
    interference: bool = False


class StageResult(BaseModel):
    """A presented stage and the response it received."""
    stage: RevelationStage
    response: StimulusResponse
    succeeded: bool
    early_terminated: bool = False


class SessionOutcome(str, Enum):
    RECALLED = "recalled"
    EXHAUSTED = "exhausted"
    TERMINATED_EARLY = "terminated-early"


class PrimingSession(BaseModel):
    """A completed priming session."""
    session_id: str
    item_id: str
    strategy: PrimingStrategy
    started_at: datetime = Field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None
    fragments_used: List[MemoryFragment] = Field(default_factory=list)
    cues_presented: List[ContextualCue] = Field(default_factory=list)
    results: List[StageResult] = Field(default_factory=list)
    effectiveness: float = 0.0
    recall_achieved: bool = False
    outcome: SessionOutcome = SessionOutcome.EXHAUSTED

    @property
    def stages_presented(self) -> List[int]:
        return [result.stage.stage_number for result in self.results]


class FragmentAnalysis(BaseModel):
    """Four-axis score of a fragment and its resulting presentation order."""
    fragment_id: str
    semantic_strength: float
    emotional_resonance: float
    temporal_anchoring: float
    uniqueness_score: float
    activation_probability: float
    presentation_order: int = 0


class CueEffectivenessProfile(BaseModel):
    """Population-level behaviour of a cue modality."""
    cue_type: CueType
    historical_success_rate: float = 0.5
    optimal_strength_level: float = 0.6
    interference_susceptibility: float = 0.5
    user_preference_score: float = 0.5
    contextual_dependencies: List[str] = Field(default_factory=list)


class FragmentCueCombination(BaseModel):
    fragment: MemoryFragment
    cue: ContextualCue
    synergy_score: float


class EffectivenessReport(BaseModel):
    """Post-session analysis of what worked."""
    session_summary: Dict[str, Any]
    fragment_performance: List[Dict[str, Any]] = Field(default_factory=list)
    cue_performance: List[Dict[str, Any]] = Field(default_factory=list)
    temporal_analysis: Dict[str, float] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
