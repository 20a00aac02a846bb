"""
Memory Rescue

Temporal memory decay-prevention engine: models forgetting-curve decay of
stored memory items and proactively primes them before they become
unrecoverable.
"""

from memory_rescue.engine.rescue_engine import TemporalRescueEngine
from memory_rescue.models.memory_item import MemoryItem, UrgencyTier

__version__ = "0.1.0"
__all__ = ["MemoryItem", "TemporalRescueEngine", "UrgencyTier"]
