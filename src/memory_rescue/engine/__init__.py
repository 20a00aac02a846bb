"""Engine package - decay model, priming, watchdog and rescue scheduler."""

from memory_rescue.engine.base import DecayPreventionEngine
from memory_rescue.engine.decay import DecayModel
from memory_rescue.engine.priming import SelectivePrimingEngine
from memory_rescue.engine.rescue_engine import TemporalRescueEngine
from memory_rescue.engine.rescue_scheduler import MemoryRescueScheduler
from memory_rescue.engine.state import RescueState
from memory_rescue.engine.watchdog import DecayWatchdog

__all__ = [
    "DecayModel",
    "DecayPreventionEngine",
    "DecayWatchdog",
    "MemoryRescueScheduler",
    "RescueState",
    "SelectivePrimingEngine",
    "TemporalRescueEngine",
]
