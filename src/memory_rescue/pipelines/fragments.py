"""
Fragment Extraction Pipeline

Derives recall fragments and contextual cues from an item's raw content and
metadata, so items handed to the engine carry enough signal to be primed.

Fragments:
- keyword: the most frequent content words
- phrase: the opening sentence
- emotional-marker: the first sentence carrying an affect-bearing term
- contextual-anchor: the first sentence carrying a time reference, or the topic

Cues come from metadata: timestamp (temporal), topic and keywords
(semantic), emotion (emotional) and location/context (environmental).
"""

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from memory_rescue.engine.priming import EMOTIONAL_TERMS, TEMPORAL_TERMS
from memory_rescue.models.memory_item import (
    ContextualCue,
    CueType,
    FragmentType,
    MemoryFragment,
    MemoryItem,
)

logger = logging.getLogger("memory_rescue.pipelines.fragments")

STOPWORDS = {
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "had", "her",
    "was", "one", "our", "out", "has", "him", "his", "how", "its", "may", "who", "did",
    "get", "let", "say", "she", "too", "use", "that", "with", "have", "this", "will",
    "your", "from", "they", "been", "were", "what", "when", "there", "their", "about",
    "would", "could", "should", "which", "into", "than", "then", "them", "these",
}

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
WORD = re.compile(r"[a-z0-9']+")


class FragmentExtractor:
    """
    Rule-based fragment and cue extraction.

    Args:
        max_keywords: Keywords kept in the keyword fragment
        max_phrase_length: Characters kept from a sentence fragment
    """

    def __init__(self, max_keywords: int = 5, max_phrase_length: int = 80):
        self.max_keywords = max_keywords
        self.max_phrase_length = max_phrase_length

    def keywords(self, content: str) -> List[str]:
        words = [w for w in WORD.findall(content.lower()) if len(w) > 2 and w not in STOPWORDS]
        return [word for word, _ in Counter(words).most_common(self.max_keywords)]

    def _sentences(self, content: str) -> List[str]:
        return [s.strip() for s in SENTENCE_SPLIT.split(content.strip()) if s.strip()]

    def _first_with(self, sentences: List[str], terms: set) -> Optional[str]:
        for sentence in sentences:
            if terms.intersection(WORD.findall(sentence.lower())):
                return sentence
        return None

    def extract_fragments(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> List[MemoryFragment]:
        metadata = metadata or {}
        sentences = self._sentences(content)
        fragments: List[MemoryFragment] = []

        keywords = self.keywords(content)
        if keywords:
            fragments.append(MemoryFragment(
                content=" ".join(keywords),
                type=FragmentType.KEYWORD,
                relevance_score=0.8,
            ))

        if sentences:
            fragments.append(MemoryFragment(
                content=sentences[0][:self.max_phrase_length],
                type=FragmentType.PHRASE,
                relevance_score=0.7,
            ))

        emotional = self._first_with(sentences, EMOTIONAL_TERMS)
        if emotional:
            fragments.append(MemoryFragment(
                content=emotional[:self.max_phrase_length],
                type=FragmentType.EMOTIONAL_MARKER,
                relevance_score=0.6,
            ))

        anchor = self._first_with(sentences, TEMPORAL_TERMS) or metadata.get("topic")
        if anchor:
            fragments.append(MemoryFragment(
                content=str(anchor)[:self.max_phrase_length],
                type=FragmentType.CONTEXTUAL_ANCHOR,
                relevance_score=0.6,
            ))

        return fragments

    def extract_cues(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> List[ContextualCue]:
        metadata = metadata or {}
        tags = [str(tag) for tag in metadata.get("tags", [])]
        topic = metadata.get("topic") or "general"
        cues: List[ContextualCue] = []

        timestamp = metadata.get("timestamp") or datetime.now().isoformat()
        cues.append(ContextualCue(
            type=CueType.TEMPORAL,
            strength=0.7,
            content=str(timestamp),
            associations=[topic],
        ))

        semantic = metadata.get("topic") or " ".join(self.keywords(content)[:3])
        if semantic:
            cues.append(ContextualCue(
                type=CueType.SEMANTIC,
                strength=0.8,
                content=str(semantic),
                associations=tags,
            ))

        emotion = metadata.get("emotion")
        if emotion and emotion != "neutral":
            cues.append(ContextualCue(
                type=CueType.EMOTIONAL,
                strength=0.6,
                content=str(emotion),
                associations=tags,
            ))

        environment = metadata.get("location") or metadata.get("context")
        if environment:
            cues.append(ContextualCue(
                type=CueType.ENVIRONMENTAL,
                strength=0.5,
                content=str(environment),
                associations=[topic],
            ))

        return cues


def build_memory_item(
    content: str,
    importance: float = 0.5,
    metadata: Optional[Dict[str, Any]] = None,
    extractor: Optional[FragmentExtractor] = None,
    decay_rate: Optional[float] = None,
) -> MemoryItem:
    """Create a fully annotated MemoryItem ready for monitoring."""
    extractor = extractor or FragmentExtractor()
    metadata = dict(metadata or {})
    item = MemoryItem(
        content=content,
        importance=importance,
        metadata=metadata,
        fragments=extractor.extract_fragments(content, metadata),
        contextual_cues=extractor.extract_cues(content, metadata),
    )
    if decay_rate is not None:
        item.decay_metrics.decay_rate = decay_rate
    logger.debug(
        f"Built item {item.id} with {len(item.fragments)} fragments and {len(item.contextual_cues)} cues"
    )
    return item
