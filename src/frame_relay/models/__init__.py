"""
Data Models
===========

Pydantic models for the frame relay's HTTP reporting surface.

Models:
    - RelayStats: Activity snapshot for GET /stats
    - HealthStatus: Liveness acknowledgement for GET /health
    - ServiceInfo: Service description for GET /
    - SocketHello: Greeting sent on each /ws connection
"""

from frame_relay.models.stats import (
    HealthStatus,
    RelayStats,
    ServiceInfo,
    SocketHello,
)

__all__ = [
    "RelayStats",
    "HealthStatus",
    "ServiceInfo",
    "SocketHello",
]
