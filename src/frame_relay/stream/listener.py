"""
TCP Ingest Listener
===================

Raw TCP server receiving frames from camera-like producers.

This module provides the TcpIngestListener class which:
    - Accepts producer connections up to a configured maximum
    - Gives every connection its own extractor and buffer
    - Pushes every extracted frame into the LatestFrameCache
    - Tracks open connections for reporting and shutdown

Design Rules:
    - Connections never share buffers or framing state
    - A closed or failed connection is forgotten; a reconnecting
      producer starts from an empty buffer
    - Errors on one connection never affect another
"""

import asyncio
import logging
from typing import Callable, Optional

from frame_relay.errors import FramingError
from frame_relay.stream.cache import LatestFrameCache
from frame_relay.stream.extractor import FrameExtractor


logger = logging.getLogger(__name__)


def _format_peer(writer: asyncio.StreamWriter) -> str:
    peer = writer.get_extra_info("peername")
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer)


class ConnectionRegistry:
    """Set of open producer connections."""

    def __init__(self) -> None:
        self._writers: set[asyncio.StreamWriter] = set()

    def __len__(self) -> int:
        return len(self._writers)

    def add(self, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)

    def discard(self, writer: asyncio.StreamWriter) -> None:
        self._writers.discard(writer)

    def close_all(self) -> int:
        """
        Forcibly terminate every open connection.

        Returns:
            Number of connections terminated.
        """
        writers = list(self._writers)
        for writer in writers:
            writer.transport.abort()
        self._writers.clear()
        return len(writers)


class TcpIngestListener:
    """
    TCP server feeding producer frames into the cache.

    Attributes:
        host: Bind host
        port: Configured bind port (0 picks a free port)
        cache: Cache receiving every valid frame
        connections: Registry of open producer connections
        max_connections: Connections above this are closed on accept

    Example:
        listener = TcpIngestListener(
            host="0.0.0.0",
            port=9000,
            cache=cache,
            extractor_factory=lambda: create_extractor(FrameMode.JPEG_MARKERS),
        )
        await listener.start()
        ...
        await listener.stop()
    """

    def __init__(
        self,
        host: str,
        port: int,
        cache: LatestFrameCache,
        extractor_factory: Callable[[], FrameExtractor],
        max_connections: int = 256,
        read_chunk_size: int = 65536,
    ) -> None:
        self.host = host
        self.port = port
        self.cache = cache
        self.max_connections = max_connections
        self.read_chunk_size = read_chunk_size
        self.connections = ConnectionRegistry()

        self._extractor_factory = extractor_factory
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port, once started."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """
        Bind and start accepting producers.

        Raises:
            OSError: If the port cannot be bound
        """
        self._server = await asyncio.start_server(
            self._handle_connection,
            host=self.host,
            port=self.port,
        )
        logger.info(f"TCP ingest listening on {self.host}:{self.bound_port}")

    async def stop(self) -> None:
        """Stop accepting producers and drop every open connection."""
        if self._server is None:
            return

        self._server.close()
        closed = self.connections.close_all()
        try:
            await asyncio.wait_for(self._server.wait_closed(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for TCP ingest to close")

        self._server = None
        logger.info(f"TCP ingest stopped ({closed} producer connections closed)")

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Read one producer connection until it closes."""
        peer = _format_peer(writer)

        if len(self.connections) >= self.max_connections:
            logger.warning(
                f"[TCP] refusing {peer}: "
                f"{self.max_connections} producer connections already open"
            )
            writer.close()
            return

        try:
            extractor = self._extractor_factory()
        except ValueError as e:
            logger.error(f"[TCP] cannot frame {peer}, closing: {e}")
            writer.close()
            return

        self.connections.add(writer)
        frame_count = 0
        logger.info(f"[TCP] producer connected from {peer}")

        try:
            while True:
                chunk = await reader.read(self.read_chunk_size)
                if not chunk:
                    break

                for frame in extractor.feed(chunk):
                    self.cache.update(frame)
                    frame_count += 1

        except FramingError as e:
            logger.warning(f"[TCP] closing {peer}: {e}")
        except OSError as e:
            logger.warning(f"[TCP] error from {peer}: {e}")
        finally:
            self.connections.discard(writer)
            writer.close()
            logger.info(f"[TCP] producer {peer} disconnected ({frame_count} frames)")
