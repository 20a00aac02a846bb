"""
Error Taxonomy

Exceptions raised by the decay-prevention engine and its collaborators.
"""

from typing import Optional


class RescueError(Exception):
    """Base class for all rescue engine errors."""
    pass


class InsufficientSignalError(RescueError):
    """Raised when an item has neither fragments nor cues to prime with."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Memory item {item_id} has no fragments or cues to prime with")


class SessionTimeout(RescueError):
    """Raised when a priming session exceeds its hard wall-clock ceiling."""

    def __init__(self, item_id: str, timeout_seconds: float):
        self.item_id = item_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Priming session for {item_id} exceeded {timeout_seconds:.1f}s ceiling"
        )


class StoreUnavailable(RescueError):
    """Raised when the storage collaborator cannot load or save items."""

    def __init__(self, message: str, item_id: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message)


class ConcurrentSessionConflict(RescueError):
    """Raised when a second session is requested for an item already in flight."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"A priming session is already in flight for {item_id}")


class ResponderError(RescueError):
    """Raised when the user-response collaborator fails to produce a response."""
    pass
