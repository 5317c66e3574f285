"""
Frame Data Model
=================

Internal frame representation for the ingestion pipeline.

This module defines the typed Frame class that is handed from the
extractors to the latest-frame cache and from the cache to the
broadcast scheduler.

Design Rules:
    - This is the ONLY frame format passed between stages
    - Does NOT decode or manipulate image data
    - Carries no producer identity (all producers share one slot)
"""

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One complete image extracted from a producer's byte stream.
    
    It is immutable (frozen) to prevent accidental modification once
    cached and shared between clients.
    
    Attributes:
        data: Raw image bytes (JPEG for marker mode, opaque otherwise)
        timestamp: UNIX timestamp when the frame boundary was found
    """
    
    data: bytes
    timestamp: float = field(default_factory=time.time)
    
    @property
    def size(self) -> int:
        """Frame length in bytes."""
        return len(self.data)
    
    def __len__(self) -> int:
        return len(self.data)
    
    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return f"Frame(size={self.size}, timestamp={self.timestamp:.3f})"
