"""
Stream Module
=============

TCP ingestion and frame extraction components.

This module provides the ingestion layer for the frame relay:
    - Frame: Typed frame data model (internal representation)
    - FrameExtractor: Per-connection framing (jpeg-markers or len-prefix)
    - LatestFrameCache: Single-slot holder for the newest frame
    - TcpIngestListener: TCP server feeding extracted frames into the cache

Example:
    from frame_relay.stream import (
        FrameMode, LatestFrameCache, TcpIngestListener, create_extractor,
    )

    cache = LatestFrameCache()
    listener = TcpIngestListener(
        host="0.0.0.0",
        port=9000,
        cache=cache,
        extractor_factory=lambda: create_extractor(FrameMode.JPEG_MARKERS),
    )
    await listener.start()

    frame = cache.read()
"""

from frame_relay.stream.frame import Frame
from frame_relay.stream.extractor import (
    FrameExtractor,
    FrameMode,
    LengthPrefixedExtractor,
    MarkerDelimitedExtractor,
    create_extractor,
)
from frame_relay.stream.cache import LatestFrameCache
from frame_relay.stream.listener import ConnectionRegistry, TcpIngestListener


__all__ = [
    "Frame",
    "FrameExtractor",
    "FrameMode",
    "MarkerDelimitedExtractor",
    "LengthPrefixedExtractor",
    "create_extractor",
    "LatestFrameCache",
    "ConnectionRegistry",
    "TcpIngestListener",
]
