"""
Frame Relay Configuration
=========================

This module handles configuration loading for the frame relay.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    HTTP_PORT               -> server.http_port
    PORT                    -> server.http_port (container platforms)
    CORS_ORIGIN             -> server.cors_origin
    RELAY_PUBLIC_DIR        -> server.public_dir
    RELAY_HOST              -> server.host, ingest.host
    TCP_PORT                -> ingest.tcp_port
    FRAME_MODE              -> ingest.frame_mode
    RELAY_MAX_CONNECTIONS   -> ingest.max_connections
    RELAY_MAX_FRAME_BYTES   -> ingest.max_frame_bytes
    RELAY_MAX_PENDING_BYTES -> ingest.max_pending_bytes
    EMIT_FPS                -> broadcast.emit_fps
    RELAY_LOG_LEVEL         -> logging.level
    RELAY_LOG_FORMAT        -> logging.format
    RELAY_CONFIG            -> path of the YAML file (default: ./config.yaml)

Example:
    from frame_relay.config import settings

    print(settings.ingest.frame_mode)
    print(settings.broadcast.emit_fps)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from frame_relay.stream.extractor import (
    DEFAULT_HIGH_WATER_BYTES,
    DEFAULT_MIN_FRAME_BYTES,
    DEFAULT_TAIL_BYTES,
    FrameMode,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="frame-relay", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    http_port: int = Field(default=3000, ge=1, le=65535, description="HTTP port")
    cors_origin: str = Field(
        default="*",
        description="Permitted cross-origin request source",
    )
    public_dir: Optional[str] = Field(
        default=None,
        description="Directory served as static files at / (optional)",
    )


class IngestConfig(BaseModel):
    """TCP ingest and framing configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    tcp_port: int = Field(
        default=9000,
        ge=0,
        le=65535,
        description="TCP port for producers (0 = pick a free port)",
    )
    frame_mode: FrameMode = Field(
        default=FrameMode.JPEG_MARKERS,
        description="Framing: 'jpeg-markers' or 'len-prefix'",
    )
    max_connections: int = Field(
        default=256,
        ge=1,
        description="Maximum simultaneous producer connections",
    )
    read_chunk_size: int = Field(
        default=65536,
        ge=1,
        description="Bytes requested per socket read",
    )
    min_frame_bytes: int = Field(
        default=DEFAULT_MIN_FRAME_BYTES,
        ge=0,
        description="Frames shorter than this are dropped",
    )
    marker_high_water_bytes: int = Field(
        default=DEFAULT_HIGH_WATER_BYTES,
        ge=1,
        description="Buffer size that triggers trimming when no frame start is seen",
    )
    marker_tail_bytes: int = Field(
        default=DEFAULT_TAIL_BYTES,
        ge=0,
        description="Bytes kept after trimming",
    )
    max_frame_bytes: int = Field(
        default=0,
        ge=0,
        description="Cap on declared length in len-prefix mode (0 = unlimited)",
    )
    max_pending_bytes: int = Field(
        default=0,
        ge=0,
        description="Cap on an unterminated frame in jpeg-markers mode (0 = unlimited)",
    )

    @model_validator(mode="after")
    def check_trim_window(self) -> "IngestConfig":
        """The kept tail must fit inside the high-water mark."""
        if self.marker_tail_bytes > self.marker_high_water_bytes:
            raise ValueError(
                f"marker_tail_bytes ({self.marker_tail_bytes}) must not exceed "
                f"marker_high_water_bytes ({self.marker_high_water_bytes})"
            )
        return self


class BroadcastConfig(BaseModel):
    """Fan-out configuration."""

    emit_fps: int = Field(
        default=12,
        ge=1,
        description="Target emission rate to streaming clients (frames/second)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the frame relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        if env_path := os.environ.get("RELAY_CONFIG"):
            config_path = env_path
        else:
            for path in (Path("config.yaml"), Path("config.yml")):
                if path.exists():
                    config_path = str(path)
                    break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["http_port"] = int(env_port)
    elif env_port := os.environ.get("HTTP_PORT"):
        config_data.setdefault("server", {})["http_port"] = int(env_port)
    if env_origin := os.environ.get("CORS_ORIGIN"):
        config_data.setdefault("server", {})["cors_origin"] = env_origin
    if env_public := os.environ.get("RELAY_PUBLIC_DIR"):
        config_data.setdefault("server", {})["public_dir"] = env_public
    if env_host := os.environ.get("RELAY_HOST"):
        config_data.setdefault("server", {})["host"] = env_host
        config_data.setdefault("ingest", {})["host"] = env_host

    # Ingest settings
    if env_tcp := os.environ.get("TCP_PORT"):
        config_data.setdefault("ingest", {})["tcp_port"] = int(env_tcp)
    if env_mode := os.environ.get("FRAME_MODE"):
        config_data.setdefault("ingest", {})["frame_mode"] = env_mode
    if env_max := os.environ.get("RELAY_MAX_CONNECTIONS"):
        config_data.setdefault("ingest", {})["max_connections"] = int(env_max)
    if env_frame_cap := os.environ.get("RELAY_MAX_FRAME_BYTES"):
        config_data.setdefault("ingest", {})["max_frame_bytes"] = int(env_frame_cap)
    if env_pending_cap := os.environ.get("RELAY_MAX_PENDING_BYTES"):
        config_data.setdefault("ingest", {})["max_pending_bytes"] = int(env_pending_cap)

    # Broadcast settings (whole frames per second, at least 1)
    if env_fps := os.environ.get("EMIT_FPS"):
        config_data.setdefault("broadcast", {})["emit_fps"] = max(1, int(float(env_fps)))

    # Logging settings
    if env_log := os.environ.get("RELAY_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_format := os.environ.get("RELAY_LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_format


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
