"""
Tests for the Selective Priming Engine

Covers strategy selection, fragment/cue ranking, progressive revelation,
stage adaptation, early termination and session-level errors.
"""

import asyncio

import pytest

from conftest import response
from memory_rescue.config import PrimingConfig
from memory_rescue.engine.priming import (
    DEFAULT_STRATEGIES,
    SelectivePrimingEngine,
    adapt_stage,
    adapt_strategy,
    is_early_termination,
    meets_criteria,
    rank_fragments,
    session_effectiveness,
    update_recall_profile,
)
from memory_rescue.errors import ConcurrentSessionConflict, InsufficientSignalError, SessionTimeout
from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    FragmentType,
    MemoryFragment,
    RecallProfile,
    UrgencyTier,
)
from memory_rescue.models.priming import (
    RevelationStage,
    RevelationType,
    SessionOutcome,
    StageResult,
    SuccessCriteria,
)
from memory_rescue.responders.base import ResponseProvider
from memory_rescue.responders.scripted import ScriptedResponder


class SlowResponder(ResponseProvider):
    """Never answers within the session ceiling."""

    async def respond(self, stimulus):
        await asyncio.sleep(5)


def stage(recognition=0.4, budget=3.0, expected=0.3):
    return RevelationStage(
        stage_number=2,
        revelation_type=RevelationType.PARTIAL_FRAGMENT,
        content="quarterly",
        expected_effectiveness=expected,
        time_budget=budget,
        success_criteria=SuccessCriteria(
            recognition_threshold=recognition, response_time_limit=budget, confidence_minimum=0.4
        ),
    )


class TestStageRules:
    """Pure stage evaluation helpers."""

    def test_meets_criteria_requires_all_three(self):
        criteria = SuccessCriteria(recognition_threshold=0.4, response_time_limit=3.0, confidence_minimum=0.4)
        assert meets_criteria(response(0.5, 0.5, 2.0), criteria)
        assert not meets_criteria(response(0.3, 0.5, 2.0), criteria)
        assert not meets_criteria(response(0.5, 0.3, 2.0), criteria)
        assert not meets_criteria(response(0.5, 0.5, 3.5), criteria)

    def test_early_termination_ignores_confidence(self):
        current = stage(budget=3.0)
        assert is_early_termination(response(0.05, 0.9, 4.0), current)
        assert is_early_termination(response(0.05, 0.0, 4.0), current)

    def test_early_termination_needs_slow_response(self):
        current = stage(budget=3.0)
        assert not is_early_termination(response(0.05, 0.1, 2.0), current)
        assert not is_early_termination(response(0.2, 0.1, 4.0), current)

    def test_poor_response_intensifies_next_stage(self):
        upcoming = stage(recognition=0.4, budget=3.0, expected=0.3)
        adapted = adapt_stage(upcoming, response(0.2))

        assert adapted.expected_effectiveness == pytest.approx(0.36)
        assert adapted.time_budget == pytest.approx(3.9)
        assert adapted.success_criteria.recognition_threshold == pytest.approx(0.32)
        assert adapted.success_criteria.response_time_limit == pytest.approx(3.9)

    def test_strong_response_lightens_next_stage(self):
        upcoming = stage(recognition=0.4, budget=3.0, expected=0.3)
        adapted = adapt_stage(upcoming, response(0.8))

        assert adapted.expected_effectiveness == pytest.approx(0.27)
        assert adapted.time_budget == pytest.approx(2.4)
        assert adapted.success_criteria.recognition_threshold == pytest.approx(0.4)

    def test_middle_response_leaves_stage_unchanged(self):
        upcoming = stage()
        assert adapt_stage(upcoming, response(0.5)) is upcoming

    def test_session_effectiveness_formula(self):
        results = [
            StageResult(stage=stage(), response=response(0.2, 0.3, 1.0), succeeded=False),
            StageResult(stage=stage(), response=response(0.55, 0.6, 1.5), succeeded=True),
        ]
        # 0.4 * 0.375 + 0.4 * 0.5 + 0.2 * (1 - 1.25 / 5)
        assert session_effectiveness(results) == pytest.approx(0.5)

    def test_session_effectiveness_empty(self):
        assert session_effectiveness([]) == 0.0


class TestRanking:
    """Fragment and cue ranking."""

    def test_rank_fragments_orders_by_activation(self):
        fragments = [
            MemoryFragment(content="the the the the", type=FragmentType.KEYWORD),
            MemoryFragment(content="important meeting tomorrow before lunch", type=FragmentType.PHRASE),
        ]
        analyses = rank_fragments(fragments)

        assert [a.presentation_order for a in analyses] == [1, 2]
        assert analyses[0].fragment_id == fragments[1].id
        assert analyses[0].activation_probability > analyses[1].activation_probability
        assert analyses[0].emotional_resonance > 0
        assert analyses[0].temporal_anchoring > 0

    def test_rank_cues_prefers_profile_types(self):
        engine = SelectivePrimingEngine(ScriptedResponder())
        weak_semantic = ContextualCue(type=CueType.SEMANTIC, strength=0.3, content="a")
        strong_environmental = ContextualCue(type=CueType.ENVIRONMENTAL, strength=0.9, content="b")

        ranked = engine.rank_cues([weak_semantic, strong_environmental])
        assert ranked[0] is strong_environmental

        profile = RecallProfile(preferred_cue_types=[CueType.SEMANTIC])
        ranked = engine.rank_cues([ContextualCue(type=CueType.SEMANTIC, strength=0.8, content="a"),
                                   ContextualCue(type=CueType.ENVIRONMENTAL, strength=0.8, content="b")], profile)
        assert ranked[0].type == CueType.SEMANTIC

    def test_fragment_cue_combinations_top_five(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder())
        item = make_item()
        combinations = engine.fragment_cue_combinations(item.fragments, item.contextual_cues)

        assert len(combinations) == 5
        scores = [c.synergy_score for c in combinations]
        assert scores == sorted(scores, reverse=True)

    def test_select_strategy_by_tier_and_escalation(self):
        engine = SelectivePrimingEngine(ScriptedResponder())
        assert engine.select_strategy(UrgencyTier.IMMINENT).name == "gentle-contextual"
        assert engine.select_strategy(UrgencyTier.DUE).name == "fragment-intensive"
        assert engine.select_strategy(UrgencyTier.DUE, escalation=1).name == "multimodal-reconstruction"
        assert engine.select_strategy(UrgencyTier.CRITICAL, escalation=3).name == "comprehensive-recovery"

    def test_select_strategy_honours_cycle_preference(self):
        engine = SelectivePrimingEngine(ScriptedResponder())
        preference = ["gentle-contextual"]

        assert engine.select_strategy(UrgencyTier.CRITICAL, preference=preference).name == "gentle-contextual"
        assert engine.select_strategy(
            UrgencyTier.CRITICAL, escalation=1, preference=preference
        ).name == "fragment-intensive"

    def test_unknown_preference_falls_back_to_tier(self):
        engine = SelectivePrimingEngine(ScriptedResponder())
        strategy = engine.select_strategy(UrgencyTier.OVERDUE, preference=["no-such-strategy"])
        assert strategy.name == "multimodal-reconstruction"


class TestBuildStages:
    """Progressive revelation layout."""

    @pytest.fixture
    def engine(self):
        return SelectivePrimingEngine(ScriptedResponder())

    def test_four_stages_in_order(self, engine, make_item):
        item = make_item()
        strategy = DEFAULT_STRATEGIES[UrgencyTier.OVERDUE]
        stages = engine.build_stages(strategy, item.fragments, item.contextual_cues)

        assert [s.stage_number for s in stages] == [1, 2, 3, 4]
        assert [s.revelation_type for s in stages] == [
            RevelationType.MINIMAL_CUE,
            RevelationType.PARTIAL_FRAGMENT,
            RevelationType.CONTEXTUAL_HINT,
            RevelationType.DIRECT_PROMPT,
        ]
        budgets = [s.time_budget for s in stages]
        assert budgets == sorted(budgets)

    def test_stage_criteria_capped_by_strategy(self, engine, make_item):
        item = make_item()
        strategy = DEFAULT_STRATEGIES[UrgencyTier.CRITICAL]
        stages = engine.build_stages(strategy, item.fragments, item.contextual_cues)
        assert all(s.success_criteria.recognition_threshold <= 0.3 for s in stages)

    def test_partial_fragment_stage_skipped_without_fragments(self, engine, make_item):
        item = make_item(with_fragments=False)
        strategy = DEFAULT_STRATEGIES[UrgencyTier.DUE]
        stages = engine.build_stages(strategy, [], item.contextual_cues)
        assert [s.stage_number for s in stages] == [1, 3, 4]

    def test_fragment_word_stands_in_for_missing_cues(self, engine, make_item):
        item = make_item(with_cues=False)
        strategy = DEFAULT_STRATEGIES[UrgencyTier.DUE]
        stages = engine.build_stages(strategy, item.fragments, [])
        assert stages[0].content == item.fragments[0].content.split()[0]
        assert stages[0].cue_ids == []


class TestRunSession:
    """End-to-end priming sessions against scripted responders."""

    @pytest.mark.asyncio
    async def test_recall_at_stage_two(self, make_item):
        """Stage 1 misses at 0.2 without terminating; stage 2 recalls at 0.55."""
        responder = ScriptedResponder([response(0.2, 0.3, 1.0), response(0.55, 0.6, 1.5)])
        engine = SelectivePrimingEngine(responder)
        item = make_item(hours_ago=4)

        session = await engine.run_session(item, tier=UrgencyTier.DUE)

        assert session.strategy.name == "fragment-intensive"
        assert session.stages_presented == [1, 2]
        assert session.recall_achieved is True
        assert session.outcome == SessionOutcome.RECALLED
        assert session.results[0].early_terminated is False
        assert session.effectiveness == pytest.approx(0.5)
        assert [s.revelation_type for s in responder.presented] == [
            RevelationType.MINIMAL_CUE,
            RevelationType.PARTIAL_FRAGMENT,
        ]

    @pytest.mark.asyncio
    async def test_strategy_filters_cue_modalities(self, make_item):
        responder = ScriptedResponder(default=response(0.9, 0.9, 0.5))
        engine = SelectivePrimingEngine(responder)

        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        assert {cue.type for cue in session.cues_presented} <= {CueType.SEMANTIC, CueType.EMOTIONAL}

    @pytest.mark.asyncio
    async def test_early_termination_stops_session(self, make_item):
        responder = ScriptedResponder([response(0.05, 0.5, 10.0)], default=response(0.9))
        engine = SelectivePrimingEngine(responder)

        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        assert session.stages_presented == [1]
        assert session.outcome == SessionOutcome.TERMINATED_EARLY
        assert session.recall_achieved is False
        assert session.results[0].early_terminated is True

    @pytest.mark.asyncio
    async def test_exhausted_after_four_stages(self, make_item):
        responder = ScriptedResponder(default=response(0.35, 0.2, 1.0))
        engine = SelectivePrimingEngine(responder)

        session = await engine.run_session(make_item(), tier=UrgencyTier.OVERDUE)

        assert session.stages_presented == [1, 2, 3, 4]
        assert session.outcome == SessionOutcome.EXHAUSTED
        assert session.recall_achieved is False

    @pytest.mark.asyncio
    async def test_non_adaptive_mode_keeps_thresholds(self, make_item):
        """Without adaptation stage 2 keeps its 0.4 threshold, so 0.35 fails."""
        responder = ScriptedResponder([response(0.2, 0.5, 1.0), response(0.35, 0.5, 1.0)],
                                      default=response(0.0, 0.0, 1.0))
        engine = SelectivePrimingEngine(responder, PrimingConfig(adaptive_mode=False))

        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        assert session.results[1].succeeded is False
        assert session.results[1].stage.success_criteria.recognition_threshold == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_insufficient_signal(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder())
        item = make_item(with_fragments=False, with_cues=False)

        with pytest.raises(InsufficientSignalError):
            await engine.run_session(item)

    @pytest.mark.asyncio
    async def test_concurrent_session_conflict(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder(default=response(0.9)))
        item = make_item()
        engine._active_items.add(str(item.id))

        with pytest.raises(ConcurrentSessionConflict):
            await engine.run_session(item)

    @pytest.mark.asyncio
    async def test_session_timeout_releases_item(self, make_item):
        engine = SelectivePrimingEngine(SlowResponder(), PrimingConfig(session_timeout_seconds=0.05))
        item = make_item()

        with pytest.raises(SessionTimeout):
            await engine.run_session(item)
        assert engine.is_active(item.id) is False

    @pytest.mark.asyncio
    async def test_cue_profiles_learn_from_sessions(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder(default=response(0.9, 0.9, 0.5)))
        before = engine.cue_profiles[CueType.SEMANTIC].historical_success_rate

        await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        after = engine.cue_profiles[CueType.SEMANTIC].historical_success_rate
        assert after == pytest.approx(before * 0.9 + 0.1)

    @pytest.mark.asyncio
    async def test_effectiveness_report(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder([response(0.2, 0.3, 1.0), response(0.55, 0.6, 1.5)]))
        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        report = engine.effectiveness_report(session)

        assert report.session_summary["stages_presented"] == [1, 2]
        assert report.temporal_analysis["recognition_trend"] == pytest.approx(0.35)
        assert any("successfully restored" in r for r in report.recommendations)
        assert any("stronger priming" in r for r in report.recommendations)


class TestLearning:
    """Recall profile and strategy adaptation."""

    @pytest.mark.asyncio
    async def test_recall_profile_after_success(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder(default=response(0.9, 0.9, 0.5)))
        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        profile = update_recall_profile(RecallProfile(), session)

        assert profile.recall_success_rate == pytest.approx(0.84)
        assert profile.optimal_spacing_seconds == pytest.approx(4 * 3600 * 1.5)
        assert "fragment-intensive" in profile.effective_intervention_types

    @pytest.mark.asyncio
    async def test_recall_profile_after_failure(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder(default=response(0.35, 0.2, 1.0)))
        session = await engine.run_session(make_item(), tier=UrgencyTier.DUE)

        profile = update_recall_profile(RecallProfile(), session)

        assert profile.recall_success_rate == pytest.approx(0.64)
        assert profile.optimal_spacing_seconds == pytest.approx(4 * 3600 * 0.7)

    @pytest.mark.asyncio
    async def test_strategy_eased_after_poor_session(self, make_item):
        engine = SelectivePrimingEngine(ScriptedResponder(default=response(0.15, 0.1, 5.0)))
        item = make_item()
        session = await engine.run_session(item, tier=UrgencyTier.DUE)

        adapted = adapt_strategy(session.strategy, session)

        assert adapted.success_criteria.recognition_threshold == pytest.approx(0.4)
        assert engine.select_strategy(UrgencyTier.DUE, item_id=str(item.id)).success_criteria.recognition_threshold \
            == pytest.approx(0.4)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
