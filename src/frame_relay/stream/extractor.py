"""
Frame Extractors
================

Per-connection state machines that turn an unstructured producer byte
stream into complete frames.

Two framing disciplines are supported, selected once at start-up:

    jpeg-markers:
        A frame is every byte from a JPEG Start-Of-Image marker (FF D8)
        through the next End-Of-Image marker (FF D9), inclusive.

    len-prefix:
        Every frame is preceded by a 4-byte big-endian unsigned length.

Each extractor owns its accumulation buffer and framing state. One
instance is created per producer connection and discarded when the
connection closes, so buffers are never shared between producers.

Example:
    extractor = create_extractor(FrameMode.JPEG_MARKERS)

    for frame in extractor.feed(chunk):
        cache.update(frame)

Design Rules:
    - feed() never blocks; it yields whatever is complete and returns
    - Bytes are consumed before a frame is yielded, so abandoning the
      iterator half-way loses nothing
    - Undersized frames are dropped but still consumed
"""

import logging
from enum import Enum
from typing import Iterator, Optional, Protocol

from frame_relay.errors import FrameTooLargeError
from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


SOI = b"\xff\xd8"  # JPEG Start of Image
EOI = b"\xff\xd9"  # JPEG End of Image

LENGTH_HEADER_SIZE = 4

DEFAULT_MIN_FRAME_BYTES = 128
DEFAULT_HIGH_WATER_BYTES = 5 * 1024 * 1024
DEFAULT_TAIL_BYTES = 1024 * 1024


class FrameMode(str, Enum):
    """Framing discipline used on the TCP ingest port."""

    JPEG_MARKERS = "jpeg-markers"
    LEN_PREFIX = "len-prefix"


class FrameExtractor(Protocol):
    """
    Protocol for framing strategies.

    Implemented by:
        - MarkerDelimitedExtractor
        - LengthPrefixedExtractor
    """

    mode: FrameMode

    def feed(self, chunk: bytes) -> Iterator[Frame]:
        """Append a received chunk and iterate over completed frames."""
        ...

    def frames(self) -> Iterator[Frame]:
        """Iterate over frames already complete in the buffer."""
        ...


class _BufferedExtractor:
    """Shared buffer handling and validity filtering."""

    mode: FrameMode

    def __init__(self, min_frame_bytes: int = DEFAULT_MIN_FRAME_BYTES) -> None:
        self.min_frame_bytes = min_frame_bytes
        self._buffer = bytearray()
        self._discarded_count: int = 0

    @property
    def buffered(self) -> int:
        """Number of bytes currently held in the accumulation buffer."""
        return len(self._buffer)

    @property
    def discarded_count(self) -> int:
        """Number of complete frames dropped by the size filter."""
        return self._discarded_count

    def feed(self, chunk: bytes) -> Iterator[Frame]:
        """
        Append a chunk to the buffer and iterate over completed frames.

        The chunk is appended immediately, even if the returned
        iterator is never consumed.

        Args:
            chunk: Bytes just received from the producer

        Returns:
            Iterator over the valid frames now complete
        """
        self._buffer += chunk
        return self.frames()

    def frames(self) -> Iterator[Frame]:
        """Yield valid frames until no complete frame remains."""
        while True:
            data = self._take_next()
            if data is None:
                return
            if len(data) < self.min_frame_bytes:
                self._discarded_count += 1
                logger.debug(f"Dropped undersized frame ({len(data)} bytes)")
                continue
            yield Frame(data=data)

    def _take_next(self) -> Optional[bytes]:
        """Remove and return the next complete frame, or None to wait."""
        raise NotImplementedError


class MarkerDelimitedExtractor(_BufferedExtractor):
    """
    Extracts JPEG frames delimited by SOI/EOI markers.

    When no start marker is buffered and the buffer grows beyond
    `high_water_bytes`, it is trimmed to its last `tail_bytes`. Data
    older than the tail is lost. While a start marker is pending the
    buffer is not trimmed; `max_pending_bytes` (0 = unlimited) bounds
    it instead by raising FrameTooLargeError.

    Attributes:
        high_water_bytes: Buffer ceiling while no start marker is seen
        tail_bytes: Size kept after trimming
        max_pending_bytes: Optional cap on an unterminated frame
        trimmed_bytes: Total bytes dropped by trimming
    """

    mode = FrameMode.JPEG_MARKERS

    def __init__(
        self,
        min_frame_bytes: int = DEFAULT_MIN_FRAME_BYTES,
        high_water_bytes: int = DEFAULT_HIGH_WATER_BYTES,
        tail_bytes: int = DEFAULT_TAIL_BYTES,
        max_pending_bytes: int = 0,
    ) -> None:
        super().__init__(min_frame_bytes=min_frame_bytes)
        if tail_bytes > high_water_bytes:
            raise ValueError("tail_bytes must not exceed high_water_bytes")

        self.high_water_bytes = high_water_bytes
        self.tail_bytes = tail_bytes
        self.max_pending_bytes = max_pending_bytes
        self.trimmed_bytes: int = 0

    def _take_next(self) -> Optional[bytes]:
        buffer = self._buffer

        start = buffer.find(SOI)
        if start == -1:
            if len(buffer) > self.high_water_bytes:
                dropped = len(buffer) - self.tail_bytes
                del buffer[:dropped]
                self.trimmed_bytes += dropped
                logger.warning(
                    f"No frame start in {dropped + self.tail_bytes} bytes, "
                    f"trimmed buffer to last {self.tail_bytes} bytes"
                )
            return None

        end = buffer.find(EOI, start + 2)
        if end == -1:
            pending = len(buffer) - start
            if self.max_pending_bytes and pending > self.max_pending_bytes:
                raise FrameTooLargeError(pending, self.max_pending_bytes)
            return None

        data = bytes(buffer[start:end + 2])
        del buffer[:end + 2]
        return data


class LengthPrefixedExtractor(_BufferedExtractor):
    """
    Extracts frames preceded by a 4-byte big-endian length header.

    The header is consumed as soon as it is complete and the declared
    length is kept until the body has arrived. No upper bound applies
    unless `max_frame_bytes` is set, in which case a larger declared
    length raises FrameTooLargeError.

    Attributes:
        max_frame_bytes: Optional cap on declared length (0 = unlimited)
        pending_length: Declared length of the frame being received
    """

    mode = FrameMode.LEN_PREFIX

    def __init__(
        self,
        min_frame_bytes: int = DEFAULT_MIN_FRAME_BYTES,
        max_frame_bytes: int = 0,
    ) -> None:
        super().__init__(min_frame_bytes=min_frame_bytes)
        self.max_frame_bytes = max_frame_bytes
        self.pending_length: Optional[int] = None

    def _take_next(self) -> Optional[bytes]:
        buffer = self._buffer

        if self.pending_length is None:
            if len(buffer) < LENGTH_HEADER_SIZE:
                return None
            length = int.from_bytes(buffer[:LENGTH_HEADER_SIZE], "big")
            del buffer[:LENGTH_HEADER_SIZE]
            if self.max_frame_bytes and length > self.max_frame_bytes:
                raise FrameTooLargeError(length, self.max_frame_bytes)
            self.pending_length = length

        if len(buffer) < self.pending_length:
            return None

        data = bytes(buffer[:self.pending_length])
        del buffer[:self.pending_length]
        self.pending_length = None
        return data


def create_extractor(
    mode: FrameMode,
    min_frame_bytes: int = DEFAULT_MIN_FRAME_BYTES,
    high_water_bytes: int = DEFAULT_HIGH_WATER_BYTES,
    tail_bytes: int = DEFAULT_TAIL_BYTES,
    max_pending_bytes: int = 0,
    max_frame_bytes: int = 0,
) -> FrameExtractor:
    """
    Create a fresh extractor for one producer connection.

    Args:
        mode: Framing discipline
        min_frame_bytes: Frames shorter than this are dropped
        high_water_bytes: Marker mode trimming threshold
        tail_bytes: Marker mode bytes kept after trimming
        max_pending_bytes: Marker mode cap on an unterminated frame
        max_frame_bytes: Length-prefix cap on declared length

    Returns:
        Extractor with an empty buffer
    """
    mode = FrameMode(mode)

    if mode is FrameMode.JPEG_MARKERS:
        return MarkerDelimitedExtractor(
            min_frame_bytes=min_frame_bytes,
            high_water_bytes=high_water_bytes,
            tail_bytes=tail_bytes,
            max_pending_bytes=max_pending_bytes,
        )

    return LengthPrefixedExtractor(
        min_frame_bytes=min_frame_bytes,
        max_frame_bytes=max_frame_bytes,
    )
