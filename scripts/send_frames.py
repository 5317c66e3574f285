#!/usr/bin/env python3
"""
Producer Simulator
==================

Standalone script that acts as a camera producer for a running relay.

This script:
    1. Connects to the relay's TCP ingest port
    2. Sends frames at a fixed rate using the chosen framing mode
    3. Logs progress every few seconds
    4. Reports a final summary

Frames are either JPEG files read from a directory (cycled) or
synthetic marker-delimited payloads of a given size.

Usage:
    python scripts/send_frames.py --duration 30
    python scripts/send_frames.py --mode len-prefix --fps 25
    python scripts/send_frames.py --images ./samples
"""

import argparse
import asyncio
import itertools
import logging
import os
import sys
import time
from pathlib import Path
from typing import Iterator, List

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from frame_relay.stream.extractor import EOI, SOI, FrameMode


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def synthetic_frames(size: int) -> Iterator[bytes]:
    """Endless JPEG-shaped payloads whose body never contains a marker."""
    for counter in itertools.count():
        fill = bytes([counter % 200]) * max(0, size - 4)
        yield SOI + fill + EOI


def file_frames(directory: Path) -> Iterator[bytes]:
    """Cycle over the JPEG files in a directory."""
    paths: List[Path] = sorted(directory.glob("*.jpg")) + sorted(directory.glob("*.jpeg"))
    if not paths:
        raise FileNotFoundError(f"No JPEG files in {directory}")
    images = [path.read_bytes() for path in paths]
    logger.info(f"Loaded {len(images)} images from {directory}")
    return itertools.cycle(images)


def frame_wire(data: bytes, mode: FrameMode) -> bytes:
    if mode is FrameMode.LEN_PREFIX:
        return len(data).to_bytes(4, "big") + data
    return data


async def run_producer(
    host: str,
    port: int,
    mode: FrameMode,
    fps: float,
    duration: int,
    frames: Iterator[bytes],
) -> int:
    """
    Send frames until the duration elapses.

    Returns:
        Number of frames sent
    """
    _, writer = await asyncio.open_connection(host, port)
    logger.info(f"Connected to {host}:{port} (mode={mode.value}, fps={fps})")

    interval = 1.0 / fps
    start_time = time.time()
    last_report = start_time
    sent = 0

    try:
        for data in frames:
            if time.time() - start_time >= duration:
                break

            writer.write(frame_wire(data, mode))
            await writer.drain()
            sent += 1

            if time.time() - last_report >= 5:
                logger.info(f"  Frames sent: {sent}")
                last_report = time.time()

            await asyncio.sleep(interval)
    except ConnectionError as e:
        logger.error(f"Connection lost: {e}")
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass

    elapsed = time.time() - start_time
    logger.info("=" * 60)
    logger.info(f"Sent {sent} frames in {elapsed:.1f}s ({sent / max(elapsed, 1e-6):.1f} fps)")
    logger.info("=" * 60)
    return sent


def main():
    parser = argparse.ArgumentParser(description="Send frames to a frame-relay TCP port")
    parser.add_argument("--host", default="127.0.0.1", help="Relay host")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("TCP_PORT", 9000)),
        help="Relay TCP ingest port (default: $TCP_PORT or 9000)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in FrameMode],
        default=os.environ.get("FRAME_MODE", FrameMode.JPEG_MARKERS.value),
        help="Framing mode (must match the relay)",
    )
    parser.add_argument("--fps", type=float, default=15.0, help="Send rate (default: 15)")
    parser.add_argument("--duration", type=int, default=60, help="Seconds to run (default: 60)")
    parser.add_argument("--size", type=int, default=20000, help="Synthetic frame size in bytes")
    parser.add_argument("--images", type=Path, default=None, help="Directory of JPEG files to send")

    args = parser.parse_args()
    mode = FrameMode(args.mode)
    frames = file_frames(args.images) if args.images else synthetic_frames(args.size)

    sent = asyncio.run(run_producer(
        host=args.host,
        port=args.port,
        mode=mode,
        fps=args.fps,
        duration=args.duration,
        frames=frames,
    ))

    sys.exit(0 if sent > 0 else 1)


if __name__ == "__main__":
    main()
