"""
Latest-Frame Cache Tests
========================
"""

from frame_relay.stream.cache import LatestFrameCache
from frame_relay.stream.frame import Frame


class TestLatestFrameCache:
    """Tests for the single-slot cache."""
    
    def test_empty_on_creation(self):
        cache = LatestFrameCache()
        
        assert cache.read() is None
        assert cache.frames_received == 0
        assert cache.bytes_last_frame == 0
        assert cache.last_frame_at is None
    
    def test_update_overwrites(self):
        cache = LatestFrameCache()
        f1 = Frame(data=b"a" * 200, timestamp=1.0)
        f2 = Frame(data=b"b" * 150, timestamp=2.0)
        
        cache.update(f1)
        cache.update(f2)
        
        assert cache.read() is f2
        assert cache.frames_received == 2
        assert cache.bytes_last_frame == 150
        assert cache.last_frame_at == 2.0
    
    def test_metrics(self):
        cache = LatestFrameCache()
        cache.update(Frame(data=b"x" * 300, timestamp=5.0))
        
        assert cache.metrics() == {
            "frames_received": 1,
            "bytes_last_frame": 300,
            "last_frame_at": 5.0,
        }


class TestFrame:
    """Tests for the Frame data model."""
    
    def test_size_and_repr(self):
        frame = Frame(data=b"\x00" * 4096, timestamp=1707321234.5)
        
        assert frame.size == 4096
        assert len(frame) == 4096
        assert repr(frame) == "Frame(size=4096, timestamp=1707321234.500)"
    
    def test_timestamp_defaults_to_now(self):
        frame = Frame(data=b"abc")
        
        assert frame.timestamp > 0
