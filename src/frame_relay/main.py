"""
Frame Relay Main Application
============================

FastAPI entry point for the TCP-to-MJPEG frame relay.

Startup wires together:
    - LatestFrameCache: newest valid frame from any producer
    - TcpIngestListener: raw TCP producers, one extractor per connection
    - ClientRegistry: subscribed /stream.mjpg responses and /ws sockets
    - BroadcastScheduler: periodic fan-out of the cached frame

Endpoints:
    GET  /            - Service information (or public/index.html)
    GET  /health      - Liveness probe
    GET  /stats       - Producer/client counts and frame counters
    GET  /stream.mjpg - multipart/x-mixed-replace stream
    WS   /ws          - Binary JPEG push (hello message first)
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles

from frame_relay.config import settings
from frame_relay.broadcast import (
    MEDIA_TYPE,
    STREAM_HEADERS,
    BroadcastScheduler,
    ClientRegistry,
    StreamingClient,
    WebSocketClient,
)
from frame_relay.models import HealthStatus, RelayStats, ServiceInfo, SocketHello
from frame_relay.stream import LatestFrameCache, TcpIngestListener, create_extractor


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_cache: Optional[LatestFrameCache] = None
_clients: Optional[ClientRegistry] = None
_listener: Optional[TcpIngestListener] = None
_scheduler: Optional[BroadcastScheduler] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_cache() -> Optional[LatestFrameCache]:
    return _cache

def get_clients() -> Optional[ClientRegistry]:
    return _clients

def get_listener() -> Optional[TcpIngestListener]:
    return _listener

def get_scheduler() -> Optional[BroadcastScheduler]:
    return _scheduler


def _public_index() -> Optional[Path]:
    if not settings.server.public_dir:
        return None
    index = Path(settings.server.public_dir) / "index.html"
    return index if index.is_file() else None


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared state, start ingest and broadcast, tear down on exit."""
    global _cache, _clients, _listener, _scheduler, _startup_time

    _startup_time = time.time()
    ingest = settings.ingest
    logger.info(f"Starting {settings.service.name} {settings.service.version}")
    logger.info(
        f"Frame mode: {ingest.frame_mode.value}, "
        f"emit rate: {settings.broadcast.emit_fps} fps"
    )

    _cache = LatestFrameCache()
    _clients = ClientRegistry()

    _listener = TcpIngestListener(
        host=ingest.host,
        port=ingest.tcp_port,
        cache=_cache,
        extractor_factory=partial(
            create_extractor,
            ingest.frame_mode,
            min_frame_bytes=ingest.min_frame_bytes,
            high_water_bytes=ingest.marker_high_water_bytes,
            tail_bytes=ingest.marker_tail_bytes,
            max_pending_bytes=ingest.max_pending_bytes,
            max_frame_bytes=ingest.max_frame_bytes,
        ),
        max_connections=ingest.max_connections,
        read_chunk_size=ingest.read_chunk_size,
    )
    try:
        await _listener.start()
    except OSError as e:
        logger.error(f"Cannot bind TCP ingest port {ingest.tcp_port}: {e}")
        raise

    _scheduler = BroadcastScheduler(
        cache=_cache,
        clients=_clients,
        emit_fps=settings.broadcast.emit_fps,
    )
    _scheduler.start()

    yield

    logger.info("Shutting down...")

    begin_shutdown()
    await _listener.stop()
    await _scheduler.stop()

    logger.info("Shutdown complete")


def begin_shutdown() -> int:
    """
    End fan-out immediately: halt ticks and close every subscribed client.

    There is no drain period; pending frames are discarded. Safe to call
    more than once.

    Returns:
        Number of clients closed by this call.
    """
    if _scheduler is not None:
        _scheduler.halt()
    if _clients is None:
        return 0

    closed = _clients.close_all()
    if closed:
        logger.info(f"Closed {closed} subscribed clients")
    return closed


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="frame-relay",
    description="TCP-to-MJPEG latest-frame relay",
    version=settings.service.version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.server.cors_origin],
    allow_methods=["GET"],
    allow_headers=["*"],
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> Response:
    """Service information, or the public index page if one is configured."""
    index = _public_index()
    if index is not None:
        return FileResponse(index)

    info = ServiceInfo(
        service=settings.service.name,
        version=settings.service.version,
        frame_mode=settings.ingest.frame_mode,
        last_frame_at=_cache.last_frame_at if _cache else None,
    )
    return JSONResponse(info.model_dump(mode="json"))


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse(HealthStatus().model_dump())


@app.get("/stats")
async def stats() -> JSONResponse:
    """Producer/client counts and frame counters."""
    if _cache is None or _clients is None or _listener is None:
        return JSONResponse({"error": "Relay not started"}, status_code=503)

    snapshot = RelayStats(
        tcp_clients=len(_listener.connections),
        mjpeg_clients=_clients.count(StreamingClient),
        ws_clients=_clients.count(WebSocketClient),
        frames_received=_cache.frames_received,
        bytes_last_frame=_cache.bytes_last_frame,
        frame_mode=settings.ingest.frame_mode,
        emit_fps=settings.broadcast.emit_fps,
    )
    return JSONResponse(snapshot.model_dump(by_alias=True))


@app.get("/stream.mjpg")
async def stream_mjpeg(request: Request) -> Response:
    """
    Subscribe to the MJPEG stream.

    Nothing is sent until the next broadcast tick after a frame has
    been cached. The client is unregistered when the consumer goes away
    or when a broadcast write to it fails.
    """
    clients = get_clients()
    if clients is None:
        return JSONResponse({"error": "Relay not started"}, status_code=503)

    peer = f"{request.client.host}:{request.client.port}" if request.client else "unknown"
    client = StreamingClient(peer=peer)

    async def body() -> AsyncIterator[bytes]:
        clients.register(client)
        try:
            async for chunk in client.chunks():
                yield chunk
        finally:
            clients.unregister(client)
            client.close()

    headers = {
        **STREAM_HEADERS,
        "Access-Control-Allow-Origin": settings.server.cors_origin,
    }
    return StreamingResponse(body(), media_type=MEDIA_TYPE, headers=headers)


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws")
async def frame_socket(websocket: WebSocket) -> None:
    """
    Push frames as binary WebSocket messages.

    Sends a SocketHello JSON message, then the cached frame if there is
    one, then the latest frame on every broadcast tick. Messages from
    the consumer are ignored.
    """
    await websocket.accept()
    clients = get_clients()
    if clients is None:
        await websocket.close(code=1013)
        return

    peer = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    client = WebSocketClient(peer=peer)

    await websocket.send_json(SocketHello(fps=settings.broadcast.emit_fps).model_dump())
    latest = _cache.read() if _cache else None
    if latest is not None:
        client.write(latest)
    clients.register(client)

    async def pump() -> None:
        try:
            async for data in client.chunks():
                await websocket.send_bytes(data)
            # The relay closed the client
            await websocket.close()
        except Exception as e:
            logger.warning(f"WebSocket send to {peer} failed: {e}")
        finally:
            clients.unregister(client)
            client.close()

    sender = asyncio.create_task(pump(), name=f"ws_sender_{peer}")
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sender.cancel()
        clients.unregister(client)
        client.close()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        logger.info(f"WebSocket client {peer} disconnected")


# Remaining public assets (scripts, styles) are served after the API routes
if settings.server.public_dir and Path(settings.server.public_dir).is_dir():
    app.mount(
        "/",
        StaticFiles(directory=settings.server.public_dir, html=True),
        name="public",
    )


# =============================================================================
# Main Entry Point
# =============================================================================

class RelayServer(uvicorn.Server):
    """
    uvicorn server that ends fan-out as soon as an exit signal arrives.

    uvicorn waits for open responses before running the lifespan
    shutdown, and streaming responses only finish once their client is
    closed, so clients are closed from the signal handler itself.
    """

    def handle_exit(self, sig, frame) -> None:
        try:
            asyncio.get_running_loop().call_soon_threadsafe(begin_shutdown)
        except RuntimeError:
            begin_shutdown()
        super().handle_exit(sig, frame)


def run() -> None:
    """Run the relay under uvicorn."""
    config = uvicorn.Config(
        "frame_relay.main:app",
        host=settings.server.host,
        port=settings.server.http_port,
        reload=False,
        # Consumers that never read still hold their socket open
        timeout_graceful_shutdown=1,
    )
    RelayServer(config).run()


if __name__ == "__main__":
    run()
