"""
Multipart Wire Format
=====================

Encoding of frames for `multipart/x-mixed-replace` HTTP streams.

Every pushed part is, in order:

    --frame\r\n
    Content-Type: image/jpeg\r\n
    Content-Length: <N>\r\n\r\n
    <N raw bytes>
    \r\n
"""

from functools import lru_cache

from frame_relay.stream.frame import Frame


BOUNDARY = "frame"
PART_CONTENT_TYPE = "image/jpeg"
MEDIA_TYPE = f"multipart/x-mixed-replace; boundary={BOUNDARY}"

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Connection": "close",
}


# Every streaming client of a tick receives the same frame
@lru_cache(maxsize=1)
def encode_part(frame: Frame) -> bytes:
    """Encode one frame as a complete multipart chunk."""
    header = (
        f"--{BOUNDARY}\r\n"
        f"Content-Type: {PART_CONTENT_TYPE}\r\n"
        f"Content-Length: {frame.size}\r\n\r\n"
    ).encode("ascii")
    return header + frame.data + b"\r\n"
