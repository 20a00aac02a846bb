"""
Simulated Responder

Model-based stand-in for real user telemetry. Recognition tracks the
stage's expected effectiveness with bounded noise; a seed makes runs
reproducible.
"""

import random
from typing import Optional

from memory_rescue.models.priming import Stimulus, StimulusResponse
from memory_rescue.responders.base import ResponseProvider


class SimulatedResponder(ResponseProvider):
    """
    Randomised responder.

    Args:
        seed: Seed for the private RNG
        noise: Width of the uniform noise band added to recognition
        interference_rate: Probability of flagging interference
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        noise: float = 0.3,
        interference_rate: float = 0.15,
    ):
        self._rng = random.Random(seed)
        self.noise = noise
        self.interference_rate = interference_rate

    async def respond(self, stimulus: Stimulus) -> StimulusResponse:
        base = min(1.0, stimulus.expected_effectiveness * 1.5)
        recognition = base + (self._rng.random() - 0.5) * self.noise
        recognition = max(0.0, min(1.0, recognition))

        # Confident users answer quickly; hesitant ones run close to the budget
        confidence = max(0.0, min(1.0, recognition + (self._rng.random() - 0.5) * 0.2))
        response_time = stimulus.time_budget * (0.3 + 0.9 * (1.0 - recognition) * self._rng.random())

        return StimulusResponse(
            recognition_score=round(recognition, 4),
            confidence=round(confidence, 4),
            response_time=round(response_time, 3),
            interference=self._rng.random() < self.interference_rate,
        )
