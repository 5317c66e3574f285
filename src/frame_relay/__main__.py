"""
Entry point for running frame-relay as a module.

Usage:
    python -m frame_relay

Configuration is read from config.yaml and environment variables,
see frame_relay.config.
"""

from frame_relay.main import run


if __name__ == "__main__":
    run()
