"""
Latest-Frame Cache
==================

Single-slot holder for the most recently extracted frame.

This module provides the LatestFrameCache class, which acts as the
interface between the TCP ingest listener and the broadcast scheduler.

Design Rules:
    - Holds at most one frame; every update overwrites it completely
    - Frames from all producers share the slot (last write wins)
    - No locking: all callers run on the same event loop and neither
      method awaits
    - Does NOT process or modify frames
"""

import logging
from typing import Optional

from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


class LatestFrameCache:
    """
    Process-wide slot for the latest valid frame plus running counters.

    Created empty at start-up and overwritten on every valid frame.
    Older frames are never kept, so memory use is bounded by one frame.

    Attributes:
        frames_received: Total frames ever stored
        bytes_last_frame: Size of the most recent frame

    Example:
        cache = LatestFrameCache()

        # Ingest side
        cache.update(frame)

        # Broadcast side
        frame = cache.read()
    """

    def __init__(self) -> None:
        self._frame: Optional[Frame] = None
        self._frames_received: int = 0
        self._bytes_last_frame: int = 0

    @property
    def frames_received(self) -> int:
        """Total frames ever stored."""
        return self._frames_received

    @property
    def bytes_last_frame(self) -> int:
        """Size in bytes of the most recent frame (0 before the first)."""
        return self._bytes_last_frame

    @property
    def last_frame_at(self) -> Optional[float]:
        """Timestamp of the most recent frame, if any."""
        return self._frame.timestamp if self._frame is not None else None

    def update(self, frame: Frame) -> None:
        """
        Replace the cached frame unconditionally.

        Args:
            frame: Complete, validated frame
        """
        self._frame = frame
        self._frames_received += 1
        self._bytes_last_frame = frame.size

    def read(self) -> Optional[Frame]:
        """
        Get the latest frame.

        Returns:
            Latest frame, or None if nothing has arrived yet.
        """
        return self._frame

    def metrics(self) -> dict:
        """
        Get cache metrics for observability.

        Returns:
            Dict with frames_received, bytes_last_frame, last_frame_at
        """
        return {
            "frames_received": self._frames_received,
            "bytes_last_frame": self._bytes_last_frame,
            "last_frame_at": self.last_frame_at,
        }
