"""
Shared fixtures for the rescue engine tests.
"""

from datetime import datetime, timedelta

import pytest

from memory_rescue.config import RescueConfig
from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    FragmentType,
    MemoryFragment,
    MemoryItem,
)
from memory_rescue.models.priming import StimulusResponse


def build_item(
    hours_ago: float = 0.0,
    importance: float = 0.5,
    with_fragments: bool = True,
    with_cues: bool = True,
    now: datetime = None,
) -> MemoryItem:
    """A primable item whose last access was ``hours_ago`` before ``now``."""
    now = now or datetime.now()
    fragments = []
    cues = []
    if with_fragments:
        fragments = [
            MemoryFragment(content="budget slides quarterly review", type=FragmentType.KEYWORD, relevance_score=0.8),
            MemoryFragment(
                content="Quarterly review moved to Thursday after the board meeting",
                type=FragmentType.PHRASE,
                relevance_score=0.7,
            ),
            MemoryFragment(
                content="Important to prepare the budget slides before Thursday",
                type=FragmentType.EMOTIONAL_MARKER,
                relevance_score=0.6,
            ),
        ]
    if with_cues:
        cues = [
            ContextualCue(type=CueType.SEMANTIC, strength=0.8, content="quarterly review"),
            ContextualCue(type=CueType.EMOTIONAL, strength=0.6, content="anxious"),
            ContextualCue(type=CueType.TEMPORAL, strength=0.7, content="last Thursday"),
        ]
    item = MemoryItem(
        content="Quarterly review moved to Thursday after the board meeting. Important to prepare the budget slides.",
        importance=importance,
        fragments=fragments,
        contextual_cues=cues,
    )
    item.decay_metrics.last_accessed = now - timedelta(hours=hours_ago)
    return item


def response(recognition: float, confidence: float = None, response_time: float = 1.0, interference: bool = False):
    return StimulusResponse(
        recognition_score=recognition,
        confidence=recognition if confidence is None else confidence,
        response_time=response_time,
        interference=interference,
    )


@pytest.fixture
def make_item():
    """Factory fixture for primable items."""
    return build_item


@pytest.fixture
def quiet_config():
    """Default config with metrics files disabled."""
    config = RescueConfig()
    config.metrics.enabled = False
    return config


@pytest.fixture
def strong_response():
    """A response that clears every stage's criteria."""
    return response(0.9, 0.9, 0.5)
