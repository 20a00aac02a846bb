"""
Scripted Responder

Deterministic responses for tests and replays.
"""

from collections import defaultdict, deque
from typing import Deque, Dict, Iterable, List, Optional

from memory_rescue.errors import ResponderError
from memory_rescue.models.priming import Stimulus, StimulusResponse
from memory_rescue.responders.base import ResponseProvider


class ScriptedResponder(ResponseProvider):
    """
    Replays a fixed sequence of responses.

    Responses can be scripted globally (consumed in order across all items)
    or per item id. When a script runs dry the ``default`` response is used;
    without a default a ``ResponderError`` is raised.

    Every presented stimulus is recorded in ``presented`` for assertions.
    """

    def __init__(
        self,
        responses: Optional[Iterable[StimulusResponse]] = None,
        per_item: Optional[Dict[str, Iterable[StimulusResponse]]] = None,
        default: Optional[StimulusResponse] = None,
    ):
        self._queue: Deque[StimulusResponse] = deque(responses or [])
        self._per_item: Dict[str, Deque[StimulusResponse]] = defaultdict(deque)
        for item_id, script in (per_item or {}).items():
            self._per_item[str(item_id)].extend(script)
        self.default = default
        self.presented: List[Stimulus] = []

    def presented_for(self, item_id) -> List[Stimulus]:
        return [s for s in self.presented if s.item_id == str(item_id)]

    async def respond(self, stimulus: Stimulus) -> StimulusResponse:
        self.presented.append(stimulus)

        item_script = self._per_item.get(stimulus.item_id)
        if item_script:
            return item_script.popleft()
        if self._queue:
            return self._queue.popleft()
        if self.default is not None:
            return self.default
        raise ResponderError(f"No scripted response left for {stimulus.item_id}")
