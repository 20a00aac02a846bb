"""
Tests for the user-response collaborators.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import response
from memory_rescue.errors import ResponderError
from memory_rescue.models.priming import RevelationType, Stimulus
from memory_rescue.responders.llm import LLMResponder
from memory_rescue.responders.scripted import ScriptedResponder
from memory_rescue.responders.simulated import SimulatedResponder


def stimulus(item_id="item-1", stage=1, expected=0.3, budget=2.0):
    return Stimulus(
        session_id="priming-test",
        item_id=item_id,
        stage_number=stage,
        revelation_type=RevelationType.MINIMAL_CUE,
        content="quarterly",
        time_budget=budget,
        expected_effectiveness=expected,
    )


class TestScriptedResponder:
    """Tests for the deterministic responder."""

    @pytest.mark.asyncio
    async def test_global_script_in_order(self):
        responder = ScriptedResponder([response(0.2), response(0.7)])

        first = await responder.respond(stimulus())
        second = await responder.respond(stimulus(stage=2))

        assert (first.recognition_score, second.recognition_score) == (0.2, 0.7)
        assert [s.stage_number for s in responder.presented] == [1, 2]

    @pytest.mark.asyncio
    async def test_per_item_script_wins(self):
        responder = ScriptedResponder([response(0.1)], per_item={"item-2": [response(0.9)]})

        assert (await responder.respond(stimulus("item-2"))).recognition_score == 0.9
        assert (await responder.respond(stimulus("item-2"))).recognition_score == 0.1
        assert len(responder.presented_for("item-2")) == 2

    @pytest.mark.asyncio
    async def test_exhausted_script_raises(self):
        with pytest.raises(ResponderError):
            await ScriptedResponder().respond(stimulus())

    @pytest.mark.asyncio
    async def test_default_used_when_dry(self):
        responder = ScriptedResponder(default=response(0.5))
        assert (await responder.respond(stimulus())).recognition_score == 0.5


class TestSimulatedResponder:
    """Tests for the randomised responder."""

    @pytest.mark.asyncio
    async def test_seeded_runs_are_reproducible(self):
        a, b = SimulatedResponder(seed=7), SimulatedResponder(seed=7)
        for stage in range(1, 5):
            assert await a.respond(stimulus(stage=stage)) == await b.respond(stimulus(stage=stage))

    @pytest.mark.asyncio
    async def test_values_bounded(self):
        responder = SimulatedResponder(seed=1, noise=2.0)
        for _ in range(50):
            result = await responder.respond(stimulus(expected=0.9, budget=4.0))
            assert 0.0 <= result.recognition_score <= 1.0
            assert 0.0 <= result.confidence <= 1.0
            assert 0.0 <= result.response_time <= 4.0 * 1.2

    @pytest.mark.asyncio
    async def test_zero_noise_tracks_expected_effectiveness(self):
        responder = SimulatedResponder(seed=3, noise=0.0, interference_rate=0.0)
        result = await responder.respond(stimulus(expected=0.4))
        assert result.recognition_score == pytest.approx(0.6)
        assert result.interference is False


class TestLLMResponder:
    """Tests for the model-backed responder with a mocked client."""

    def _responder(self, content="Quarterly review moved to Thursday"):
        lookup = AsyncMock(return_value=content)
        responder = LLMResponder(content_lookup=lookup, api_key="test-key")
        responder.client = MagicMock()
        responder.client.chat.completions.create = AsyncMock()
        return responder

    def _completion(self, payload):
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = json.dumps(payload)
        return completion

    @pytest.mark.asyncio
    async def test_parses_and_clamps_payload(self):
        responder = self._responder()
        responder.client.chat.completions.create.return_value = self._completion(
            {"recognition_score": 1.4, "confidence": 0.6, "interference": True}
        )

        result = await responder.respond(stimulus())

        assert result.recognition_score == 1.0
        assert result.confidence == 0.6
        assert result.interference is True
        assert result.response_time >= 0.0
        prompt = responder.client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Quarterly review moved to Thursday" in prompt
        assert "stage 1 of 4" in prompt

    @pytest.mark.asyncio
    async def test_api_failure_becomes_responder_error(self):
        responder = self._responder()
        responder.client.chat.completions.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ResponderError):
            await responder.respond(stimulus())

    @pytest.mark.asyncio
    async def test_malformed_json_becomes_responder_error(self):
        responder = self._responder()
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = "not json"
        responder.client.chat.completions.create.return_value = completion

        with pytest.raises(ResponderError):
            await responder.respond(stimulus())

    @pytest.mark.asyncio
    async def test_missing_content_raises(self):
        responder = self._responder(content=None)

        with pytest.raises(ResponderError):
            await responder.respond(stimulus())
        responder.client.chat.completions.create.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
