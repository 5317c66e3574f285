"""
Broadcast Module
================

Fan-out of the latest frame to long-lived HTTP streaming and WebSocket
clients.

Components:
    - StreamingClient / WebSocketClient / ClientRegistry: Subscribed sinks
    - BroadcastScheduler: Periodic tick writing the cached frame to
      every client, dropping clients whose write fails
    - encode_part: multipart/x-mixed-replace wire format
"""

from frame_relay.broadcast.clients import (
    ClientRegistry,
    ClientSink,
    StreamingClient,
    WebSocketClient,
)
from frame_relay.broadcast.multipart import MEDIA_TYPE, STREAM_HEADERS, encode_part
from frame_relay.broadcast.scheduler import BroadcastScheduler, tick_period_ms


__all__ = [
    "ClientSink",
    "StreamingClient",
    "WebSocketClient",
    "ClientRegistry",
    "BroadcastScheduler",
    "tick_period_ms",
    "encode_part",
    "MEDIA_TYPE",
    "STREAM_HEADERS",
]
