"""
Relay Errors
============

Exception hierarchy for frame-relay.

All of these are handled locally by the component that raises them;
none is meant to reach the process level.
"""


class RelayError(Exception):
    """Base class for frame-relay errors."""


class FramingError(RelayError):
    """Raised when a producer stream cannot be framed."""


class FrameTooLargeError(FramingError):
    """Raised when a frame exceeds a configured safety cap."""
    
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Frame of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class ClientDisconnectedError(RelayError):
    """Raised when writing to a streaming client that has gone away."""
