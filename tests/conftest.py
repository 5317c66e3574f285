"""
Test Configuration
==================

Pytest fixtures and test configuration for frame-relay.
"""

import asyncio

import pytest

from frame_relay.stream.extractor import EOI, SOI


def make_jpeg(size: int, fill: int = 0x11) -> bytes:
    """Build a marker-delimited payload of exactly `size` bytes."""
    return SOI + bytes([fill]) * (size - 4) + EOI


async def wait_until(condition, timeout: float = 2.0) -> bool:
    """Poll `condition` on the event loop until true or timed out."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


@pytest.fixture
def jpeg_frames():
    """Provide three distinct valid JPEG-shaped payloads."""
    return [make_jpeg(200, 0x11), make_jpeg(333, 0x22), make_jpeg(1024, 0x33)]


@pytest.fixture
def length_prefixed_stream(jpeg_frames):
    """Provide the sample frames encoded with 4-byte length headers."""
    return b"".join(len(f).to_bytes(4, "big") + f for f in jpeg_frames)


class RecordingSink:
    """Client sink that records written frames, or fails writes when asked."""
    
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.chunks = []
        self.closed = False
    
    def write(self, frame) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.chunks.append(frame)
    
    def close(self) -> None:
        self.closed = True
