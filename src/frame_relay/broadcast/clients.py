"""
Streaming Clients
=================

Subscribed consumers and the registry tracking them.

This module provides:
    - ClientSink: Protocol for anything the scheduler can write to
    - StreamingClient: Sink backing one `/stream.mjpg` response
    - WebSocketClient: Sink backing one `/ws` connection
    - ClientRegistry: Set of currently subscribed sinks

Design Rules:
    - The scheduler hands every sink the same Frame; each sink encodes
      it for its own transport
    - A client holds at most one unsent chunk; a newer chunk replaces
      it so a slow consumer never accumulates a backlog
    - Writing to a closed client raises ClientDisconnectedError
    - Unregistering is idempotent; the scheduler and the transport
      disconnect path may both remove the same client
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional, Protocol

from frame_relay.broadcast.multipart import encode_part
from frame_relay.errors import ClientDisconnectedError
from frame_relay.stream.frame import Frame


logger = logging.getLogger(__name__)


class ClientSink(Protocol):
    """
    Protocol for broadcast targets.
    
    `write` must not block and raises on a broken sink.
    """
    
    def write(self, frame: Frame) -> None:
        ...
    
    def close(self) -> None:
        ...


class _SingleSlotSink:
    """
    One-slot mailbox between the scheduler and a transport send loop.
    
    Subclasses choose the bytes sent for a frame in `encode`.
    """
    
    kind = "client"
    
    def __init__(self, peer: str = "unknown") -> None:
        self.peer = peer
        self.replaced_count: int = 0
        
        self._pending: Optional[bytes] = None
        self._ready = asyncio.Event()
        self._closed: bool = False
    
    @property
    def closed(self) -> bool:
        """Whether the sink has been released."""
        return self._closed
    
    def encode(self, frame: Frame) -> bytes:
        raise NotImplementedError
    
    def write(self, frame: Frame) -> None:
        """
        Hand a frame to the consumer.
        
        Raises:
            ClientDisconnectedError: If the client is closed
        """
        if self._closed:
            raise ClientDisconnectedError(f"{self.kind} {self.peer} is closed")
        
        if self._pending is not None:
            self.replaced_count += 1
        self._pending = self.encode(frame)
        self._ready.set()
    
    def close(self) -> None:
        """Release the sink. Pending data is discarded."""
        self._closed = True
        self._pending = None
        self._ready.set()
    
    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield chunks as they are written, until the client is closed."""
        while True:
            await self._ready.wait()
            self._ready.clear()
            
            if self._closed:
                return
            
            chunk, self._pending = self._pending, None
            if chunk is not None:
                yield chunk
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}(peer={self.peer!r}, closed={self._closed})"


class StreamingClient(_SingleSlotSink):
    """
    Output sink for one long-lived HTTP streaming response.
    
    The scheduler calls `write`; the HTTP response iterates `chunks()`,
    each chunk a complete multipart part.
    
    Attributes:
        peer: Remote address, for logging
        replaced_count: Chunks overwritten before the consumer read them
        
    Example:
        client = StreamingClient(peer="10.0.0.5:51234")
        registry.register(client)
        
        async for chunk in client.chunks():
            await send(chunk)
    """
    
    kind = "Streaming client"
    
    def encode(self, frame: Frame) -> bytes:
        return encode_part(frame)


class WebSocketClient(_SingleSlotSink):
    """Output sink for one WebSocket connection; chunks are raw JPEG bytes."""
    
    kind = "WebSocket client"
    
    def encode(self, frame: Frame) -> bytes:
        return frame.data


class ClientRegistry:
    """
    Set of subscribed clients of every transport.
    
    The underlying container is never exposed; iteration goes through
    `for_each`, which works on a snapshot so callbacks may unregister
    clients safely.
    """
    
    def __init__(self) -> None:
        self._clients: set[ClientSink] = set()
    
    def __len__(self) -> int:
        return len(self._clients)
    
    def __contains__(self, client: ClientSink) -> bool:
        return client in self._clients
    
    def register(self, client: ClientSink) -> None:
        self._clients.add(client)
        logger.info(f"Client subscribed: {client!r} ({len(self._clients)} active)")
    
    def unregister(self, client: ClientSink) -> bool:
        """
        Remove a client. Removing an absent client is a no-op.
        
        Returns:
            True if the client was registered.
        """
        if client not in self._clients:
            return False
        self._clients.discard(client)
        logger.info(f"Client removed: {client!r} ({len(self._clients)} active)")
        return True
    
    def for_each(self, callback: Callable[[ClientSink], None]) -> None:
        """Call `callback` on every client registered at call time."""
        for client in list(self._clients):
            callback(client)
    
    def close_all(self) -> int:
        """
        Close and remove every client.
        
        Returns:
            Number of clients closed.
        """
        clients = list(self._clients)
        self._clients.clear()
        for client in clients:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Error closing {client!r}: {e}")
        return len(clients)
    
    def count(self, kind: type) -> int:
        """Number of registered clients that are instances of `kind`."""
        return sum(1 for client in self._clients if isinstance(client, kind))
