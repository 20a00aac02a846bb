"""
Selective Priming Engine

Restores an item's accessibility through a progressive revelation sequence:
a single cue, then a partial fragment, then cue + larger fragment, then the
full cue set with complete fragments. The sequence stops at the first stage
whose response meets its success criteria.

Stage adaptation is a pure fold: each response maps the next stage's
parameters to new ones (``adapt_stage``), so the revelation logic can be
tested without a running session.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
from uuid import uuid4

from memory_rescue.config import DAY, HOUR, PrimingConfig
from memory_rescue.errors import ConcurrentSessionConflict, InsufficientSignalError, SessionTimeout
from memory_rescue.models.memory_item import (
    TIER_ORDER,
    ContextualCue,
    CueType,
    FragmentType,
    MemoryFragment,
    MemoryItem,
    RecallProfile,
    UrgencyTier,
)
from memory_rescue.models.priming import (
    CueEffectivenessProfile,
    EffectivenessReport,
    FragmentAnalysis,
    FragmentCueCombination,
    PrimingSession,
    PrimingStrategy,
    RevelationStage,
    RevelationType,
    SessionOutcome,
    StageResult,
    Stimulus,
    StimulusResponse,
    SuccessCriteria,
)
from memory_rescue.responders.base import ResponseProvider

logger = logging.getLogger("memory_rescue.priming")

EMOTIONAL_TERMS = {"important", "critical", "urgent", "concerned", "excited", "worried"}
TEMPORAL_TERMS = {"today", "yesterday", "tomorrow", "now", "then", "when", "after", "before"}

# Fragment activation weights: semantic, emotional, temporal, uniqueness
ACTIVATION_WEIGHTS = (0.3, 0.25, 0.2, 0.25)

EARLY_TERMINATION_RECOGNITION = 0.1
POOR_RESPONSE = 0.3
STRONG_RESPONSE = 0.7

DEFAULT_STRATEGIES: Dict[UrgencyTier, PrimingStrategy] = {
    UrgencyTier.IMMINENT: PrimingStrategy(
        name="gentle-contextual",
        tier=UrgencyTier.IMMINENT,
        effectiveness_rating=0.70,
        fragment_types=[FragmentType.CONTEXTUAL_ANCHOR],
        cue_modalities=[CueType.TEMPORAL, CueType.ENVIRONMENTAL],
        success_criteria=SuccessCriteria(
            recognition_threshold=0.6, response_time_limit=3.0, confidence_minimum=0.6
        ),
    ),
    UrgencyTier.DUE: PrimingStrategy(
        name="fragment-intensive",
        tier=UrgencyTier.DUE,
        effectiveness_rating=0.59,
        fragment_types=[FragmentType.KEYWORD, FragmentType.PHRASE, FragmentType.EMOTIONAL_MARKER],
        cue_modalities=[CueType.SEMANTIC, CueType.EMOTIONAL],
        success_criteria=SuccessCriteria(
            recognition_threshold=0.5, response_time_limit=4.0, confidence_minimum=0.5
        ),
    ),
    UrgencyTier.OVERDUE: PrimingStrategy(
        name="multimodal-reconstruction",
        tier=UrgencyTier.OVERDUE,
        effectiveness_rating=0.45,
        fragment_types=list(FragmentType),
        cue_modalities=list(CueType),
        success_criteria=SuccessCriteria(
            recognition_threshold=0.4, response_time_limit=5.0, confidence_minimum=0.4
        ),
    ),
    UrgencyTier.CRITICAL: PrimingStrategy(
        name="comprehensive-recovery",
        tier=UrgencyTier.CRITICAL,
        effectiveness_rating=0.25,
        fragment_types=list(FragmentType),
        cue_modalities=list(CueType),
        success_criteria=SuccessCriteria(
            recognition_threshold=0.3, response_time_limit=6.0, confidence_minimum=0.3
        ),
    ),
}

DEFAULT_CUE_PROFILES: Dict[CueType, CueEffectivenessProfile] = {
    CueType.TEMPORAL: CueEffectivenessProfile(
        cue_type=CueType.TEMPORAL,
        historical_success_rate=0.65,
        optimal_strength_level=0.7,
        interference_susceptibility=0.3,
        user_preference_score=0.8,
        contextual_dependencies=["episodic", "sequential"],
    ),
    CueType.SEMANTIC: CueEffectivenessProfile(
        cue_type=CueType.SEMANTIC,
        historical_success_rate=0.72,
        optimal_strength_level=0.8,
        interference_susceptibility=0.4,
        user_preference_score=0.9,
        contextual_dependencies=["conceptual", "categorical"],
    ),
    CueType.EMOTIONAL: CueEffectivenessProfile(
        cue_type=CueType.EMOTIONAL,
        historical_success_rate=0.68,
        optimal_strength_level=0.6,
        interference_susceptibility=0.5,
        user_preference_score=0.7,
        contextual_dependencies=["affective", "motivational"],
    ),
    CueType.ENVIRONMENTAL: CueEffectivenessProfile(
        cue_type=CueType.ENVIRONMENTAL,
        historical_success_rate=0.58,
        optimal_strength_level=0.5,
        interference_susceptibility=0.6,
        user_preference_score=0.6,
        contextual_dependencies=["spatial", "contextual"],
    ),
}

# (type, share of strategy effectiveness, time budget seconds, base criteria)
STAGE_BLUEPRINTS: List[Tuple[RevelationType, float, float, SuccessCriteria]] = [
    (RevelationType.MINIMAL_CUE, 0.3, 2.0, SuccessCriteria(
        recognition_threshold=0.4, response_time_limit=2.0, confidence_minimum=0.3)),
    (RevelationType.PARTIAL_FRAGMENT, 0.5, 3.0, SuccessCriteria(
        recognition_threshold=0.4, response_time_limit=3.0, confidence_minimum=0.4)),
    (RevelationType.CONTEXTUAL_HINT, 0.7, 4.0, SuccessCriteria(
        recognition_threshold=0.6, response_time_limit=4.0, confidence_minimum=0.5)),
    (RevelationType.DIRECT_PROMPT, 0.9, 5.0, SuccessCriteria(
        recognition_threshold=0.8, response_time_limit=5.0, confidence_minimum=0.6)),
]

FRAGMENT_CUE_SYNERGY: Dict[FragmentType, Dict[CueType, float]] = {
    FragmentType.KEYWORD: {
        CueType.SEMANTIC: 0.9, CueType.TEMPORAL: 0.5, CueType.EMOTIONAL: 0.6, CueType.ENVIRONMENTAL: 0.4,
    },
    FragmentType.PHRASE: {
        CueType.SEMANTIC: 0.8, CueType.TEMPORAL: 0.7, CueType.EMOTIONAL: 0.7, CueType.ENVIRONMENTAL: 0.5,
    },
    FragmentType.EMOTIONAL_MARKER: {
        CueType.SEMANTIC: 0.6, CueType.TEMPORAL: 0.4, CueType.EMOTIONAL: 0.9, CueType.ENVIRONMENTAL: 0.3,
    },
    FragmentType.CONTEXTUAL_ANCHOR: {
        CueType.SEMANTIC: 0.5, CueType.TEMPORAL: 0.8, CueType.EMOTIONAL: 0.5, CueType.ENVIRONMENTAL: 0.9,
    },
}


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z0-9']+", text.lower())


# ========== Fragment Scoring ==========

def semantic_strength(fragment: MemoryFragment) -> float:
    """Lexical diversity: unique words over total words, boosted and capped at 1."""
    words = _words(fragment.content)
    if not words:
        return 0.0
    return min(1.0, (len(set(words)) / len(words)) * 1.5)


def emotional_resonance(fragment: MemoryFragment) -> float:
    hits = len(EMOTIONAL_TERMS.intersection(_words(fragment.content)))
    return min(1.0, hits / len(EMOTIONAL_TERMS) * 2)


def temporal_anchoring(fragment: MemoryFragment) -> float:
    hits = len(TEMPORAL_TERMS.intersection(_words(fragment.content)))
    return min(1.0, hits / len(TEMPORAL_TERMS) * 2)


def uniqueness_score(fragment: MemoryFragment, siblings: List[MemoryFragment]) -> float:
    """One minus the mean lexical overlap against every sibling fragment."""
    own = set(_words(fragment.content))
    others = [f for f in siblings if f.id != fragment.id]
    if not others:
        return 1.0
    overlap_sum = 0.0
    for other in others:
        theirs = set(_words(other.content))
        largest = max(len(own), len(theirs))
        if largest:
            overlap_sum += len(own & theirs) / largest
    return max(0.0, 1.0 - overlap_sum / len(others))


def rank_fragments(fragments: List[MemoryFragment]) -> List[FragmentAnalysis]:
    """Score fragments on four axes and order them by activation probability."""
    analyses = []
    for fragment in fragments:
        semantic = semantic_strength(fragment)
        emotional = emotional_resonance(fragment)
        temporal = temporal_anchoring(fragment)
        unique = uniqueness_score(fragment, fragments)
        w_sem, w_emo, w_tmp, w_unq = ACTIVATION_WEIGHTS
        analyses.append(FragmentAnalysis(
            fragment_id=fragment.id,
            semantic_strength=semantic,
            emotional_resonance=emotional,
            temporal_anchoring=temporal,
            uniqueness_score=unique,
            activation_probability=(
                semantic * w_sem + emotional * w_emo + temporal * w_tmp + unique * w_unq
            ),
        ))

    analyses.sort(key=lambda a: a.activation_probability, reverse=True)
    for order, analysis in enumerate(analyses, start=1):
        analysis.presentation_order = order
    return analyses


# ========== Stage Evaluation (pure) ==========

def meets_criteria(response: StimulusResponse, criteria: SuccessCriteria) -> bool:
    return (
        response.recognition_score >= criteria.recognition_threshold
        and response.response_time <= criteria.response_time_limit
        and response.confidence >= criteria.confidence_minimum
    )


def is_early_termination(response: StimulusResponse, stage: RevelationStage) -> bool:
    """Very weak recognition that also blew the time budget ends the session.

    Confidence plays no part in this rule.
    """
    return (
        response.recognition_score < EARLY_TERMINATION_RECOGNITION
        and response.response_time > stage.time_budget
    )


def adapt_stage(stage: RevelationStage, response: StimulusResponse) -> RevelationStage:
    """
    Derive the next stage's parameters from the previous response.

    Poor recognition raises intensity (+20% expected effectiveness, +30% time,
    -20% recognition threshold); strong recognition lightens the stimulus
    (-10% expected effectiveness, -20% time). Responses between the two
    bands leave the stage untouched.
    """
    criteria = stage.success_criteria
    if response.recognition_score < POOR_RESPONSE:
        budget = stage.time_budget * 1.3
        return stage.model_copy(update={
            "expected_effectiveness": stage.expected_effectiveness * 1.2,
            "time_budget": budget,
            "success_criteria": criteria.model_copy(update={
                "recognition_threshold": criteria.recognition_threshold * 0.8,
                "response_time_limit": budget,
            }),
        })
    if response.recognition_score > STRONG_RESPONSE:
        budget = stage.time_budget * 0.8
        return stage.model_copy(update={
            "expected_effectiveness": stage.expected_effectiveness * 0.9,
            "time_budget": budget,
            "success_criteria": criteria.model_copy(update={"response_time_limit": budget}),
        })
    return stage


def session_effectiveness(results: List[StageResult], response_time_normalizer: float = 5.0) -> float:
    """0.4 mean recognition + 0.4 success-stage ratio + 0.2 (1 - normalised mean response time)."""
    if not results:
        return 0.0
    count = len(results)
    mean_recognition = sum(r.response.recognition_score for r in results) / count
    success_ratio = sum(1 for r in results if r.succeeded) / count
    mean_response_time = sum(r.response.response_time for r in results) / count
    normalized_time = min(1.0, mean_response_time / response_time_normalizer)
    effectiveness = mean_recognition * 0.4 + success_ratio * 0.4 + (1.0 - normalized_time) * 0.2
    return max(0.0, min(1.0, effectiveness))


def adapt_strategy(strategy: PrimingStrategy, session: PrimingSession) -> PrimingStrategy:
    """Ease a strategy's criteria after a poor session, tighten after a strong one."""
    if not session.results:
        return strategy
    count = len(session.results)
    avg_recognition = sum(r.response.recognition_score for r in session.results) / count
    avg_time = sum(r.response.response_time for r in session.results) / count
    criteria = strategy.success_criteria

    if avg_recognition < POOR_RESPONSE and avg_time > criteria.response_time_limit:
        threshold = criteria.recognition_threshold * 0.8
    elif avg_recognition > STRONG_RESPONSE and avg_time < criteria.response_time_limit * 0.5:
        threshold = min(1.0, criteria.recognition_threshold * 1.1)
    else:
        return strategy

    return strategy.model_copy(update={
        "success_criteria": criteria.model_copy(update={"recognition_threshold": threshold}),
    })


def update_recall_profile(profile: RecallProfile, session: PrimingSession) -> RecallProfile:
    """Fold one session into the item's learned recall preferences."""
    success = session.recall_achieved
    preferred = list(profile.preferred_cue_types)
    effective = list(profile.effective_intervention_types)
    spacing = profile.optimal_spacing_seconds

    if success:
        winning_stage = session.results[-1].stage
        for cue in session.cues_presented:
            if cue.id in winning_stage.cue_ids and cue.type not in preferred:
                preferred.insert(0, cue.type)
        if session.strategy.name not in effective:
            effective.append(session.strategy.name)
        # Spacing effect: each successful recall widens the next interval
        spacing = min(spacing * 1.5, 7 * DAY)
    else:
        spacing = max(spacing * 0.7, HOUR)

    return profile.model_copy(update={
        "preferred_cue_types": preferred,
        "effective_intervention_types": effective,
        "recall_success_rate": profile.recall_success_rate * 0.8 + (0.2 if success else 0.0),
        "optimal_spacing_seconds": spacing,
    })


class SelectivePrimingEngine:
    """
    Runs priming sessions against a user-response collaborator.

    At most one session per item may be in flight; a second request raises
    ``ConcurrentSessionConflict``. Every session runs under a hard
    wall-clock ceiling enforced by cancellation.
    """

    def __init__(
        self,
        responder: ResponseProvider,
        config: Optional[PrimingConfig] = None,
        strategies: Optional[Dict[UrgencyTier, PrimingStrategy]] = None,
        cue_profiles: Optional[Dict[CueType, CueEffectivenessProfile]] = None,
    ):
        self.responder = responder
        self.config = config or PrimingConfig()
        self.strategies = dict(strategies or DEFAULT_STRATEGIES)
        self.cue_profiles = {
            cue_type: profile.model_copy()
            for cue_type, profile in (cue_profiles or DEFAULT_CUE_PROFILES).items()
        }
        self._active_items: Set[str] = set()
        self._strategy_overrides: Dict[Tuple[str, str], PrimingStrategy] = {}

    # ========== Selection ==========

    def select_strategy(
        self,
        tier: UrgencyTier,
        escalation: int = 0,
        item_id: Optional[str] = None,
        preference: Optional[List[str]] = None,
    ) -> PrimingStrategy:
        """
        Pick the strategy for a tier, shifted harder by ``escalation`` steps.

        ``preference`` names the strategies a rescue cycle favours; the first
        known name replaces the tier's own strategy as the starting point
        before escalation is applied.
        """
        base = tier.rank
        if preference:
            ranks = {strategy.name: key.rank for key, strategy in self.strategies.items()}
            known = [name for name in preference if name in ranks]
            if known:
                base = ranks[known[0]]
            else:
                logger.warning(f"No known strategy in preference {preference}, using the {tier.value} default")
        index = min(base + max(escalation, 0), len(TIER_ORDER) - 1)
        strategy = self.strategies[TIER_ORDER[index]]
        if item_id is not None:
            return self._strategy_overrides.get((item_id, strategy.name), strategy)
        return strategy

    def _cue_profile(self, cue_type: CueType) -> CueEffectivenessProfile:
        return self.cue_profiles.get(cue_type) or CueEffectivenessProfile(cue_type=cue_type)

    def rank_cues(self, cues: List[ContextualCue], profile: Optional[RecallProfile] = None) -> List[ContextualCue]:
        """Order cues by strength, historical success and the item's preferences."""
        preferred = set(profile.preferred_cue_types) if profile else set()
        scored = []
        for cue in cues:
            cue_profile = self._cue_profile(cue.type)
            preference = 1.0 if cue.type in preferred else cue_profile.user_preference_score
            score = (
                cue.strength * 0.4
                + cue_profile.historical_success_rate * 0.3
                + preference * 0.2
                + (1 - cue_profile.interference_susceptibility) * 0.1
            )
            scored.append((score, cue))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [cue for _, cue in scored]

    def order_fragments(self, fragments: List[MemoryFragment]) -> List[MemoryFragment]:
        by_id = {fragment.id: fragment for fragment in fragments}
        return [by_id[analysis.fragment_id] for analysis in rank_fragments(fragments)]

    def fragment_cue_combinations(
        self,
        fragments: List[MemoryFragment],
        cues: List[ContextualCue],
        limit: int = 5,
    ) -> List[FragmentCueCombination]:
        """Best fragment/cue pairings by content similarity and type synergy."""
        combinations = []
        for fragment in fragments:
            fragment_words = set(_words(fragment.content))
            for cue in cues:
                cue_words = set(_words(cue.content))
                union = fragment_words | cue_words
                similarity = len(fragment_words & cue_words) / len(union) if union else 0.0
                type_synergy = FRAGMENT_CUE_SYNERGY.get(fragment.type, {}).get(cue.type, 0.5)
                combinations.append(FragmentCueCombination(
                    fragment=fragment,
                    cue=cue,
                    synergy_score=similarity * 0.6 + type_synergy * 0.4,
                ))
        combinations.sort(key=lambda c: c.synergy_score, reverse=True)
        return combinations[:limit]

    def _select_material(
        self,
        item: MemoryItem,
        strategy: PrimingStrategy,
    ) -> Tuple[List[MemoryFragment], List[ContextualCue]]:
        ordered = self.order_fragments(item.fragments)
        preferred_fragments = [f for f in ordered if f.type in strategy.fragment_types]
        fragments = (preferred_fragments or ordered)[:max(1, len(strategy.fragment_types))]

        ranked = self.rank_cues(item.contextual_cues, item.recall_profile)
        preferred_cues = [c for c in ranked if c.type in strategy.cue_modalities]
        cues = (preferred_cues or ranked)[:self.config.max_cues]
        return fragments, cues

    # ========== Stage Construction ==========

    def build_stages(
        self,
        strategy: PrimingStrategy,
        fragments: List[MemoryFragment],
        cues: List[ContextualCue],
    ) -> List[RevelationStage]:
        """
        Lay out the revelation sequence. The partial-fragment stage is omitted
        when there are no fragments; stage numbers keep their positions.
        """
        top_fragment = fragments[0] if fragments else None
        if cues:
            lead_content = cues[0].content
            lead_cue_ids = [cues[0].id]
        else:
            # Without cues the first word of the best fragment stands in
            lead_content = top_fragment.content.split()[0] if top_fragment.content.split() else top_fragment.content
            lead_cue_ids = []

        def fragment_slice(share: float) -> str:
            text = top_fragment.content
            return text[:max(1, int(len(text) * share))]

        contents = {
            RevelationType.MINIMAL_CUE: (lead_content, lead_cue_ids, []),
            RevelationType.CONTEXTUAL_HINT: (
                " + ".join(part for part in (
                    cues[0].content if cues else "",
                    fragment_slice(0.5) if top_fragment else "",
                ) if part),
                lead_cue_ids,
                [top_fragment.id] if top_fragment else [],
            ),
            RevelationType.DIRECT_PROMPT: (
                " + ".join([c.content for c in cues] + [f.content for f in fragments]),
                [c.id for c in cues],
                [f.id for f in fragments],
            ),
        }
        if top_fragment:
            contents[RevelationType.PARTIAL_FRAGMENT] = (fragment_slice(0.3), [], [top_fragment.id])

        cap = strategy.success_criteria
        stages = []
        for number, (revelation_type, share, budget, base) in enumerate(STAGE_BLUEPRINTS, start=1):
            if revelation_type not in contents:
                continue
            content, cue_ids, fragment_ids = contents[revelation_type]
            # The strategy's criteria cap how strict any single stage may be
            criteria = SuccessCriteria(
                recognition_threshold=min(base.recognition_threshold, cap.recognition_threshold),
                response_time_limit=budget,
                confidence_minimum=min(base.confidence_minimum, cap.confidence_minimum),
            )
            stages.append(RevelationStage(
                stage_number=number,
                revelation_type=revelation_type,
                content=content,
                expected_effectiveness=strategy.effectiveness_rating * share,
                time_budget=budget,
                success_criteria=criteria,
                cue_ids=cue_ids,
                fragment_ids=fragment_ids,
            ))
        return stages

    # ========== Session Execution ==========

    async def run_session(
        self,
        item: MemoryItem,
        tier: Optional[UrgencyTier] = None,
        escalation: Optional[int] = None,
        adaptive: Optional[bool] = None,
        preference: Optional[List[str]] = None,
    ) -> PrimingSession:
        """
        Prime one item.

        ``preference`` is the dispatching cycle's favoured strategies; see
        ``select_strategy``.

        Raises:
            InsufficientSignalError: The item has no fragments and no cues
            ConcurrentSessionConflict: A session for this item is already running
            SessionTimeout: The hard wall-clock ceiling was exceeded
        """
        item_key = str(item.id)
        if not item.has_signal:
            raise InsufficientSignalError(item_key)
        if item_key in self._active_items:
            raise ConcurrentSessionConflict(item_key)

        tier = tier or item.rescue_status.urgency_tier
        if escalation is None:
            escalation = item.rescue_status.escalation_level
        if adaptive is None:
            adaptive = self.config.adaptive_mode

        strategy = self.select_strategy(tier, escalation, item_key, preference)
        fragments, cues = self._select_material(item, strategy)

        self._active_items.add(item_key)
        try:
            session = await asyncio.wait_for(
                self._execute(item_key, strategy, fragments, cues, adaptive),
                timeout=self.config.session_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Priming session for {item_key} aborted after {self.config.session_timeout_seconds}s"
            )
            raise SessionTimeout(item_key, self.config.session_timeout_seconds) from None
        finally:
            self._active_items.discard(item_key)

        self._learn_from(item_key, session)
        return session

    def is_active(self, item_id) -> bool:
        return str(item_id) in self._active_items

    async def _execute(
        self,
        item_key: str,
        strategy: PrimingStrategy,
        fragments: List[MemoryFragment],
        cues: List[ContextualCue],
        adaptive: bool,
    ) -> PrimingSession:
        session = PrimingSession(
            session_id=f"priming-{uuid4().hex[:12]}",
            item_id=item_key,
            strategy=strategy,
            fragments_used=fragments,
            cues_presented=cues,
        )
        logger.info(f"Priming session {session.session_id} for {item_key} using {strategy.name}")

        planned = self.build_stages(strategy, fragments, cues)
        stage = planned[0]
        for index in range(len(planned)):
            stimulus = Stimulus(
                session_id=session.session_id,
                item_id=item_key,
                stage_number=stage.stage_number,
                revelation_type=stage.revelation_type,
                content=stage.content,
                time_budget=stage.time_budget,
                expected_effectiveness=stage.expected_effectiveness,
            )
            response = await self.responder.respond(stimulus)

            succeeded = meets_criteria(response, stage.success_criteria)
            terminated = not succeeded and is_early_termination(response, stage)
            session.results.append(StageResult(
                stage=stage,
                response=response,
                succeeded=succeeded,
                early_terminated=terminated,
            ))
            logger.debug(
                f"Stage {stage.stage_number} ({stage.revelation_type.value}) for {item_key}: "
                f"recognition={response.recognition_score:.2f} succeeded={succeeded}"
            )

            if succeeded:
                session.recall_achieved = True
                session.outcome = SessionOutcome.RECALLED
                break
            if terminated:
                session.outcome = SessionOutcome.TERMINATED_EARLY
                break
            if index + 1 < len(planned):
                upcoming = planned[index + 1]
                stage = adapt_stage(upcoming, response) if adaptive else upcoming

        session.ended_at = datetime.now()
        session.effectiveness = session_effectiveness(
            session.results, self.config.response_time_normalizer
        )
        logger.info(
            f"Priming session {session.session_id} finished: {session.outcome.value}, "
            f"effectiveness {session.effectiveness:.2f}"
        )
        return session

    def _learn_from(self, item_key: str, session: PrimingSession) -> None:
        """Update cue-type success rates and the per-item strategy override."""
        presented_types = {cue.type for cue in session.cues_presented}
        for cue_type in presented_types:
            profile = self._cue_profile(cue_type)
            rate = profile.historical_success_rate * 0.9 + (0.1 if session.recall_achieved else 0.0)
            self.cue_profiles[cue_type] = profile.model_copy(update={"historical_success_rate": rate})

        adapted = adapt_strategy(session.strategy, session)
        if adapted is not session.strategy:
            self._strategy_overrides[(item_key, adapted.name)] = adapted

    # ========== Reporting ==========

    def effectiveness_report(self, session: PrimingSession) -> EffectivenessReport:
        """Break down which fragments and cues helped, with recommendations."""
        results = session.results
        duration = (
            (session.ended_at - session.started_at).total_seconds() if session.ended_at else 0.0
        )
        summary = {
            "session_id": session.session_id,
            "memory_id": session.item_id,
            "strategy_used": session.strategy.name,
            "duration": duration,
            "stages_presented": session.stages_presented,
            "recall_achieved": session.recall_achieved,
            "outcome": session.outcome.value,
            "final_effectiveness": session.effectiveness,
        }
        if not results:
            return EffectivenessReport(session_summary=summary)

        def performance(matching: List[StageResult]) -> Dict[str, float]:
            if not matching:
                return {"presentations": 0, "avg_recognition": 0.0, "avg_response_time": 0.0}
            return {
                "presentations": len(matching),
                "avg_recognition": sum(r.response.recognition_score for r in matching) / len(matching),
                "avg_response_time": sum(r.response.response_time for r in matching) / len(matching),
            }

        fragment_performance = [
            {
                "fragment_id": fragment.id,
                "fragment_type": fragment.type.value,
                "relevance_score": fragment.relevance_score,
                **performance([r for r in results if fragment.id in r.stage.fragment_ids]),
            }
            for fragment in session.fragments_used
        ]
        cue_performance = [
            {
                "cue_id": cue.id,
                "cue_type": cue.type.value,
                "cue_strength": cue.strength,
                **performance([r for r in results if cue.id in r.stage.cue_ids]),
            }
            for cue in session.cues_presented
        ]

        first, last = results[0].response, results[-1].response
        temporal_analysis = {
            "recognition_trend": last.recognition_score - first.recognition_score,
            "response_time_trend": first.response_time - last.response_time,
            "confidence_progression": last.confidence - first.confidence,
            "interference_incidents": float(sum(1 for r in results if r.response.interference)),
        }

        return EffectivenessReport(
            session_summary=summary,
            fragment_performance=fragment_performance,
            cue_performance=cue_performance,
            temporal_analysis=temporal_analysis,
            recommendations=self._recommendations(session),
        )

    def _recommendations(self, session: PrimingSession) -> List[str]:
        results = session.results
        count = len(results)
        avg_recognition = sum(r.response.recognition_score for r in results) / count
        avg_time = sum(r.response.response_time for r in results) / count
        interference_rate = sum(1 for r in results if r.response.interference) / count

        recommendations = []
        if avg_recognition < 0.4:
            recommendations.append("Consider stronger priming stimuli or alternative fragment types")
        if avg_time > session.strategy.success_criteria.response_time_limit * 1.5:
            recommendations.append("Response times suggest memory decay - schedule more frequent interventions")
        if interference_rate > 0.3:
            recommendations.append("High interference detected - consider single-modality priming")
        if session.recall_achieved:
            recommendations.append("Memory successfully restored - schedule maintenance at optimal spacing interval")
        else:
            recommendations.append("Memory not fully restored - consider deep reconstruction intervention")
        return recommendations
