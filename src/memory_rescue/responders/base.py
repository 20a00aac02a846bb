"""
Base class for user-response collaborators.

The priming engine presents a stimulus (stage + content) and awaits a
response tuple. Production wires a live interaction surface or a
model-based responder; tests wire scripted fixtures.
"""

from abc import ABC, abstractmethod

from memory_rescue.models.priming import Stimulus, StimulusResponse


class ResponseProvider(ABC):
    """
    Abstract base class for response providers.

    Implementations must return within the stimulus' time budget or report
    the actual (longer) response time in the returned tuple.
    """

    @abstractmethod
    async def respond(self, stimulus: Stimulus) -> StimulusResponse:
        """
        Present a stimulus and collect the user's reaction.

        Args:
            stimulus: The stage, content and time budget being presented

        Returns:
            StimulusResponse with recognition score, confidence,
            response time (seconds) and interference flag

        Raises:
            ResponderError: If no response can be obtained
        """
        pass
