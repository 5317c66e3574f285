"""
HTTP Application Tests
======================

Reporting endpoints and the WebSocket feed through TestClient, the
streaming endpoint driven directly on the event loop, and shutdown.
"""

import asyncio
import signal
import time

import pytest
import uvicorn
from fastapi.testclient import TestClient
from starlette.requests import Request

from conftest import RecordingSink, make_jpeg, wait_until
from frame_relay import main
from frame_relay.broadcast import BroadcastScheduler, ClientRegistry, encode_part
from frame_relay.stream.cache import LatestFrameCache
from frame_relay.stream.frame import Frame


@pytest.fixture
def client(monkeypatch):
    """TestClient with the TCP ingest bound to a free port."""
    monkeypatch.setattr(main.settings.ingest, "tcp_port", 0)
    with TestClient(main.app) as test_client:
        yield test_client


def wait_for_clients(count: int, timeout: float = 2.0) -> bool:
    """Poll the live registry from the test thread."""
    deadline = time.time() + timeout
    while len(main.get_clients()) != count:
        if time.time() > deadline:
            return False
        time.sleep(0.02)
    return True


def make_request() -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/stream.mjpg",
        "headers": [],
        "query_string": b"",
        "client": ("127.0.0.1", 50000),
    })


class TestReportingEndpoints:
    """Tests for /, /health and /stats."""
    
    def test_health(self, client):
        response = client.get("/health")
        
        assert response.status_code == 200
        assert response.json() == {"ok": True}
    
    def test_stats_initial(self, client):
        response = client.get("/stats")
        
        assert response.status_code == 200
        assert response.json() == {
            "tcpClients": 0,
            "mjpegClients": 0,
            "wsClients": 0,
            "framesReceived": 0,
            "bytesLastFrame": 0,
            "frameMode": main.settings.ingest.frame_mode.value,
            "emitFps": main.settings.broadcast.emit_fps,
        }
    
    def test_emit_fps_is_whole_number(self, client):
        body = client.get("/stats").json()
        
        assert isinstance(body["emitFps"], int)
        assert body["emitFps"] == main.settings.broadcast.emit_fps
    
    def test_stats_after_frame(self, client):
        main.get_cache().update(Frame(data=make_jpeg(500)))
        
        body = client.get("/stats").json()
        
        assert body["framesReceived"] == 1
        assert body["bytesLastFrame"] == 500
    
    def test_root_service_info(self, client):
        body = client.get("/").json()
        
        assert body["service"] == main.settings.service.name
        assert body["stream_path"] == "/stream.mjpg"
    
    def test_components_started(self, client):
        assert main.get_listener().bound_port is not None
        assert main.get_scheduler().running


class TestStreamEndpoint:
    """Tests for /stream.mjpg subscription semantics."""
    
    def test_subscription_lifecycle(self, monkeypatch):
        async def scenario():
            cache = LatestFrameCache()
            registry = ClientRegistry()
            scheduler = BroadcastScheduler(cache, registry, emit_fps=10)
            monkeypatch.setattr(main, "_clients", registry)
            
            response = await main.stream_mjpeg(make_request())
            body = response.body_iterator

            async def next_chunk():
                return await body.__anext__()

            first_chunk = asyncio.create_task(next_chunk())
            await wait_until(lambda: len(registry) == 1)
            
            # Nothing is sent before a frame is cached
            scheduler.tick()
            await asyncio.sleep(0.05)
            sent_early = first_chunk.done()
            
            frame = Frame(data=make_jpeg(256))
            cache.update(frame)
            scheduler.tick()
            chunk = await asyncio.wait_for(first_chunk, timeout=1.0)
            
            await body.aclose()
            return response, sent_early, chunk, frame, len(registry)
        
        response, sent_early, chunk, frame, remaining = asyncio.run(scenario())
        
        assert response.media_type == "multipart/x-mixed-replace; boundary=frame"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert response.headers["pragma"] == "no-cache"
        assert "access-control-allow-origin" in response.headers
        assert sent_early is False
        assert chunk == encode_part(frame)
        assert chunk.startswith(b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: 256\r\n\r\n")
        assert remaining == 0
    
    def test_not_started(self, monkeypatch):
        monkeypatch.setattr(main, "_clients", None)
        
        response = asyncio.run(main.stream_mjpeg(make_request()))
        
        assert response.status_code == 503


class TestWebSocketEndpoint:
    """Tests for the /ws binary frame feed."""
    
    def test_hello_then_current_frame(self, client):
        frame = Frame(data=make_jpeg(400))
        main.get_cache().update(frame)
        
        with client.websocket_connect("/ws") as websocket:
            hello = websocket.receive_json()
            first = websocket.receive_bytes()
        
        assert hello == {
            "event": "hello",
            "ok": True,
            "mode": "binary-jpeg",
            "fps": main.settings.broadcast.emit_fps,
        }
        assert first == frame.data
    
    def test_latest_frame_pushed_on_tick(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            
            frame = Frame(data=make_jpeg(600, 0x44))
            main.get_cache().update(frame)
            received = websocket.receive_bytes()
            stats = client.get("/stats").json()
        
        assert received == frame.data
        assert stats["wsClients"] == 1
        assert stats["mjpegClients"] == 0
    
    def test_disconnect_unregisters(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            connected = wait_for_clients(1)
        
        assert connected is True
        assert wait_for_clients(0) is True
        assert client.get("/stats").json()["wsClients"] == 0


class TestShutdown:
    """Tests for ending fan-out at shutdown."""
    
    def test_begin_shutdown_closes_clients_and_halts(self, monkeypatch):
        async def scenario():
            cache = LatestFrameCache()
            registry = ClientRegistry()
            sinks = [RecordingSink(), RecordingSink()]
            for sink in sinks:
                registry.register(sink)
            cache.update(Frame(data=make_jpeg(200)))
            scheduler = BroadcastScheduler(cache, registry, emit_fps=50)
            monkeypatch.setattr(main, "_clients", registry)
            monkeypatch.setattr(main, "_scheduler", scheduler)
            
            scheduler.start()
            await asyncio.sleep(0.05)
            closed = main.begin_shutdown()
            writes = [len(sink.chunks) for sink in sinks]
            await asyncio.sleep(0.1)
            later = [len(sink.chunks) for sink in sinks]
            
            halted = await wait_until(lambda: not scheduler.running, timeout=1.0)
            await scheduler.stop()
            return closed, sinks, writes, later, halted, len(registry)
        
        closed, sinks, writes, later, halted, remaining = asyncio.run(scenario())
        
        assert closed == 2
        assert all(sink.closed for sink in sinks)
        assert writes == later
        assert halted is True
        assert remaining == 0
    
    def test_stream_response_ends_at_shutdown(self, monkeypatch):
        async def scenario():
            registry = ClientRegistry()
            monkeypatch.setattr(main, "_clients", registry)
            monkeypatch.setattr(main, "_scheduler", None)
            
            response = await main.stream_mjpeg(make_request())
            
            async def drain():
                return [chunk async for chunk in response.body_iterator]
            
            reading = asyncio.create_task(drain())
            await wait_until(lambda: len(registry) == 1)
            main.begin_shutdown()
            return await asyncio.wait_for(reading, timeout=1.0)
        
        assert asyncio.run(scenario()) == []
    
    def test_exit_signal_closes_clients(self, monkeypatch):
        registry = ClientRegistry()
        sink = RecordingSink()
        registry.register(sink)
        monkeypatch.setattr(main, "_clients", registry)
        monkeypatch.setattr(main, "_scheduler", None)
        server = main.RelayServer(uvicorn.Config(main.app))
        
        server.handle_exit(signal.SIGTERM, None)
        
        assert sink.closed
        assert len(registry) == 0
        assert server.should_exit
