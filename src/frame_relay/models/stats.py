"""
Reporting Models
================

Pydantic models for the reporting endpoints and the /ws greeting.

Output Contract (GET /stats):
    {
        "tcpClients": 1,
        "mjpegClients": 3,
        "wsClients": 2,
        "framesReceived": 4521,
        "bytesLastFrame": 48213,
        "frameMode": "jpeg-markers",
        "emitFps": 12
    }

Output Contract (GET /health):
    {"ok": true}
"""

from typing import Optional

from pydantic import BaseModel, Field

from frame_relay.stream.extractor import FrameMode


class RelayStats(BaseModel):
    """
    Snapshot of relay activity.
    
    Field names on the wire are camelCase for compatibility with
    existing dashboards; use `model_dump(by_alias=True)`.
    """
    
    tcp_clients: int = Field(..., ge=0, alias="tcpClients", description="Open producer connections")
    mjpeg_clients: int = Field(..., ge=0, alias="mjpegClients", description="Subscribed streaming clients")
    ws_clients: int = Field(..., ge=0, alias="wsClients", description="Subscribed WebSocket clients")
    frames_received: int = Field(..., ge=0, alias="framesReceived", description="Total valid frames cached")
    bytes_last_frame: int = Field(..., ge=0, alias="bytesLastFrame", description="Size of the latest frame")
    frame_mode: FrameMode = Field(..., alias="frameMode", description="Active framing mode")
    emit_fps: int = Field(..., ge=1, alias="emitFps", description="Configured emission rate")
    
    class Config:
        """Pydantic model configuration."""
        
        populate_by_name = True
        use_enum_values = True


class HealthStatus(BaseModel):
    """Liveness acknowledgement."""
    
    ok: bool = True


class ServiceInfo(BaseModel):
    """Service information returned at / when no static site is configured."""
    
    service: str
    version: str
    status: str = "running"
    frame_mode: FrameMode
    stream_path: str = "/stream.mjpg"
    last_frame_at: Optional[float] = None
    
    class Config:
        """Pydantic model configuration."""
        
        use_enum_values = True


class SocketHello(BaseModel):
    """
    First message on every /ws connection.
    
    Binary messages that follow carry one complete JPEG each.
    """
    
    event: str = "hello"
    ok: bool = True
    mode: str = "binary-jpeg"
    fps: int = Field(..., ge=1, description="Configured emission rate")
