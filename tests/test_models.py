"""
Tests for Data Models

Tests MemoryItem, its nested state, and the rescue request/outcome models.
"""

import uuid
from datetime import datetime

import pytest
from pydantic import ValidationError

from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    FragmentType,
    InterventionPriority,
    MemoryFragment,
    MemoryItem,
    TIER_ORDER,
    UrgencyTier,
)
from memory_rescue.models.priming import SuccessCriteria
from memory_rescue.models.rescue import BatchSummary, RescueRequest, TierMetrics


class TestMemoryItem:
    """Tests for MemoryItem model."""

    def test_create_default(self):
        """Test creating MemoryItem with defaults."""
        item = MemoryItem(content="Dentist appointment moved to Tuesday")

        assert item.importance == 0.5
        assert item.id is not None
        assert isinstance(item.created_at, datetime)
        assert item.decay_metrics.initial_strength == 1.0
        assert item.decay_metrics.decay_rate == pytest.approx(0.693)
        assert item.rescue_status.requires_intervention is False
        assert item.rescue_status.urgency_tier == UrgencyTier.IMMINENT
        assert item.recall_profile.recall_success_rate == 0.8
        assert item.archived is False

    def test_importance_bounds(self):
        with pytest.raises(ValidationError):
            MemoryItem(content="x", importance=1.5)

    def test_has_signal(self):
        item = MemoryItem(content="x")
        assert item.has_signal is False

        item.contextual_cues.append(ContextualCue(type=CueType.SEMANTIC, strength=0.8, content="dentist"))
        assert item.has_signal is True

    def test_rerank_cues_keeps_unlisted_at_end(self):
        cues = [ContextualCue(type=CueType.SEMANTIC, strength=0.5, content=str(i)) for i in range(3)]
        item = MemoryItem(content="x", contextual_cues=cues)

        item.rerank_cues([cues[2].id])

        assert [c.content for c in item.contextual_cues] == ["2", "0", "1"]

    def test_purge_cue(self):
        cue = ContextualCue(type=CueType.TEMPORAL, strength=0.7, content="Tuesday")
        item = MemoryItem(content="x", contextual_cues=[cue])

        assert item.purge_cue(cue.id) is True
        assert item.purge_cue(cue.id) is False
        assert item.contextual_cues == []

    def test_json_round_trip_preserves_state(self):
        item = MemoryItem(
            content="x",
            fragments=[MemoryFragment(content="dentist", type=FragmentType.KEYWORD)],
        )
        item.rescue_status.escalation_level = 2

        restored = MemoryItem.model_validate_json(item.model_dump_json())

        assert restored == item
        assert restored.fragments[0].type == FragmentType.KEYWORD


class TestFragmentsAndCues:
    """Tests for fragment and cue models."""

    def test_fragment_is_immutable(self):
        fragment = MemoryFragment(content="dentist", type=FragmentType.KEYWORD)
        with pytest.raises(ValidationError):
            fragment.content = "changed"

    def test_ids_are_prefixed(self):
        assert MemoryFragment(content="a", type=FragmentType.PHRASE).id.startswith("frag-")
        assert ContextualCue(type=CueType.EMOTIONAL, strength=0.6, content="calm").id.startswith("cue-")

    def test_cue_strength_bounds(self):
        with pytest.raises(ValidationError):
            ContextualCue(type=CueType.SEMANTIC, strength=1.2, content="x")

    def test_success_criteria_requires_positive_time_limit(self):
        with pytest.raises(ValidationError):
            SuccessCriteria(recognition_threshold=0.5, response_time_limit=0, confidence_minimum=0.5)


class TestTiers:
    """Tests for tier ordering."""

    def test_tier_rank_matches_order(self):
        assert [tier.rank for tier in TIER_ORDER] == [0, 1, 2, 3]
        assert UrgencyTier.CRITICAL.rank > UrgencyTier.IMMINENT.rank

    def test_enum_values(self):
        assert UrgencyTier("overdue") == UrgencyTier.OVERDUE
        assert InterventionPriority.CRITICAL.value == "critical"


class TestRescueModels:
    """Tests for requests, summaries and metrics."""

    def test_request_urgency_bounds(self):
        with pytest.raises(ValidationError):
            RescueRequest(item_id=uuid.uuid4(), tier=UrgencyTier.DUE, urgency_score=1.2,
                          time_since_access=0, strength=0.5)

    def test_batch_summary_record(self):
        summary = BatchSummary(tier=UrgencyTier.DUE, attempted=3)
        record = summary.to_record()

        assert record["type"] == "rescue_batch"
        assert record["tier"] == "due"
        assert record["batch_id"].startswith("batch-")

    def test_tier_metrics_rates(self):
        metrics = TierMetrics(batches=2, attempted=4, successful=3, total_effectiveness=2.0)

        assert metrics.success_rate == 0.75
        assert metrics.mean_effectiveness == 0.5
        assert metrics.avg_batch_size == 2.0
        assert TierMetrics().success_rate == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
