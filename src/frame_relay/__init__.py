"""
frame-relay
===========

TCP-to-MJPEG frame relay.

Camera-like producers push a continuous byte stream over raw TCP. The
relay cuts it into frames (JPEG markers or length prefixes), keeps only
the newest one, and fans it out at a bounded rate to any number of HTTP
clients as a `multipart/x-mixed-replace` stream.

Components:
    - stream: Frame extraction, latest-frame cache, TCP ingest
    - broadcast: Client registry, broadcast scheduler, wire format
    - models: Reporting payloads for /stats and /health

Example:
    python -m frame_relay

    # or
    uvicorn frame_relay.main:app --port 3000
"""

__version__ = "0.1.0"
__author__ = "frame-relay contributors"

__all__ = [
    "__version__",
]
