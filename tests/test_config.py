"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from frame_relay.config import Settings, load_config
from frame_relay.stream.extractor import FrameMode


ENV_VARS = (
    "PORT", "HTTP_PORT", "TCP_PORT", "FRAME_MODE", "EMIT_FPS", "CORS_ORIGIN",
    "RELAY_HOST", "RELAY_MAX_CONNECTIONS", "RELAY_MAX_FRAME_BYTES",
    "RELAY_MAX_PENDING_BYTES", "RELAY_PUBLIC_DIR", "RELAY_LOG_LEVEL",
    "RELAY_LOG_FORMAT", "RELAY_CONFIG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Tests for default settings."""
    
    def test_defaults(self):
        settings = Settings()
        
        assert settings.server.http_port == 3000
        assert settings.server.cors_origin == "*"
        assert settings.ingest.tcp_port == 9000
        assert settings.ingest.frame_mode is FrameMode.JPEG_MARKERS
        assert settings.ingest.max_connections == 256
        assert settings.ingest.min_frame_bytes == 128
        assert settings.ingest.marker_high_water_bytes == 5 * 1024 * 1024
        assert settings.ingest.marker_tail_bytes == 1024 * 1024
        assert settings.ingest.max_frame_bytes == 0
        assert settings.ingest.max_pending_bytes == 0
        assert settings.broadcast.emit_fps == 12
        assert isinstance(settings.broadcast.emit_fps, int)


class TestLoadConfig:
    """Tests for YAML and environment loading."""
    
    def test_environment_overrides(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("HTTP_PORT", "8080")
        clean_env.setenv("TCP_PORT", "9100")
        clean_env.setenv("FRAME_MODE", "len-prefix")
        clean_env.setenv("EMIT_FPS", "25")
        clean_env.setenv("CORS_ORIGIN", "https://example.org")
        
        settings = load_config()
        
        assert settings.server.http_port == 8080
        assert settings.ingest.tcp_port == 9100
        assert settings.ingest.frame_mode is FrameMode.LEN_PREFIX
        assert settings.broadcast.emit_fps == 25
        assert settings.server.cors_origin == "https://example.org"
    
    def test_port_takes_precedence(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("PORT", "7000")
        clean_env.setenv("HTTP_PORT", "8080")
        
        assert load_config().server.http_port == 7000
    
    def test_emit_fps_clamped(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("EMIT_FPS", "0")
        
        assert load_config().broadcast.emit_fps == 1
    
    def test_yaml_file(self, clean_env, tmp_path):
        config_file = tmp_path / "relay.yaml"
        config_file.write_text(
            "ingest:\n"
            "  frame_mode: len-prefix\n"
            "  max_frame_bytes: 2000000\n"
            "broadcast:\n"
            "  emit_fps: 5\n"
        )
        clean_env.setenv("EMIT_FPS", "8")
        
        settings = load_config(str(config_file))
        
        assert settings.ingest.frame_mode is FrameMode.LEN_PREFIX
        assert settings.ingest.max_frame_bytes == 2000000
        assert settings.broadcast.emit_fps == 8
    
    def test_invalid_frame_mode(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("FRAME_MODE", "h264")
        
        with pytest.raises(ValidationError):
            load_config()
    
    def test_emit_fps_is_whole_number(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("EMIT_FPS", "15.7")
        
        emit_fps = load_config().broadcast.emit_fps
        
        assert emit_fps == 15
        assert isinstance(emit_fps, int)
    
    def test_tail_larger_than_high_water_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({
                "ingest": {"marker_high_water_bytes": 100, "marker_tail_bytes": 200},
            })
    
    def test_tail_equal_to_high_water_accepted(self):
        settings = Settings.model_validate({
            "ingest": {"marker_high_water_bytes": 100, "marker_tail_bytes": 100},
        })
        
        assert settings.ingest.marker_tail_bytes == 100
