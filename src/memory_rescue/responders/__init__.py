"""User-response collaborators for the priming engine."""

from memory_rescue.responders.base import ResponseProvider
from memory_rescue.responders.scripted import ScriptedResponder
from memory_rescue.responders.simulated import SimulatedResponder

__all__ = ["ResponseProvider", "ScriptedResponder", "SimulatedResponder"]
