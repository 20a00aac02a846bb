"""
LLM Responder

Model-based responder: an LLM plays a user with partial recall of the
memory and rates how well the presented stimulus brings it back.
"""

import json
import logging
import os
import time
from typing import Awaitable, Callable, Optional

from openai import AsyncOpenAI

from memory_rescue.errors import ResponderError
from memory_rescue.models.priming import Stimulus, StimulusResponse
from memory_rescue.responders.base import ResponseProvider

logger = logging.getLogger("memory_rescue.responders")

ContentLookup = Callable[[str], Awaitable[Optional[str]]]


class LLMResponder(ResponseProvider):
    """
    Responder backed by an OpenAI-compatible chat model.

    Args:
        content_lookup: Async callable mapping an item id to its full
            content, so the model can judge the stimulus against it
        api_key: API key (falls back to OPENAI_API_KEY)
        base_url: Base URL for OpenAI-compatible APIs
        model: Chat model name
    """

    def __init__(
        self,
        content_lookup: ContentLookup,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.4,
    ):
        self.content_lookup = content_lookup
        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
        )

    def _build_prompt(self, stimulus: Stimulus, memory: str) -> str:
        return f"""You are simulating a person who stored the memory below some time ago
and has partially forgotten it. You are shown a recall cue ("{stimulus.revelation_type.value}",
stage {stimulus.stage_number} of 4). Judge how strongly the cue would bring the memory back.

Memory:
"{memory}"

Cue shown to the person:
"{stimulus.content}"

Output JSON with this exact structure:
{{
  "recognition_score": 0.0 to 1.0,
  "confidence": 0.0 to 1.0,
  "interference": true | false
}}

Rules:
- recognition_score: how much of the memory the cue alone makes retrievable
- confidence: how sure the person would be of what they recalled
- interference: true if the cue is likely to evoke a different, competing memory"""

    async def respond(self, stimulus: Stimulus) -> StimulusResponse:
        memory = await self.content_lookup(stimulus.item_id)
        if not memory:
            raise ResponderError(f"No content available for {stimulus.item_id}")

        started = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": self._build_prompt(stimulus, memory)}],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
            payload = json.loads(response.choices[0].message.content)
        except Exception as e:
            logger.error(f"LLM responder failed for {stimulus.item_id}: {e}")
            raise ResponderError(f"LLM responder failed: {e}") from e
        elapsed = time.monotonic() - started

        return StimulusResponse(
            recognition_score=max(0.0, min(1.0, float(payload.get("recognition_score", 0.0)))),
            confidence=max(0.0, min(1.0, float(payload.get("confidence", 0.0)))),
            response_time=elapsed,
            interference=bool(payload.get("interference", False)),
        )
