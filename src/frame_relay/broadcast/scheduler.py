"""
Broadcast Scheduler
===================

Periodic fan-out of the latest frame to every streaming client.

Every tick the scheduler reads the LatestFrameCache once and writes
the same Frame to each registered client, which encodes it for its own
transport (multipart part or raw WebSocket message). A client whose
write fails is unregistered and closed on the spot; the tick then
carries on with the remaining clients.

Design Rules:
    - Period is max(1, floor(1000 / emit_fps)) milliseconds
    - At most one frame per client per tick, never a backlog
    - An empty cache means an empty tick, not an error
    - Ticks start at least one period apart
"""

import asyncio
import logging
import math
from typing import Optional

from frame_relay.broadcast.clients import ClientRegistry, ClientSink
from frame_relay.stream.cache import LatestFrameCache


logger = logging.getLogger(__name__)


def tick_period_ms(emit_fps: float) -> int:
    """Tick period in whole milliseconds for a target emission rate."""
    if emit_fps <= 0:
        raise ValueError("emit_fps must be > 0")
    return max(1, math.floor(1000 / emit_fps))


class BroadcastSchedulerMetrics:
    """Metrics for BroadcastScheduler observability."""

    __slots__ = (
        "ticks",
        "empty_ticks",
        "chunks_sent",
        "write_failures",
    )

    def __init__(self) -> None:
        self.ticks: int = 0
        self.empty_ticks: int = 0
        self.chunks_sent: int = 0
        self.write_failures: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "ticks": self.ticks,
            "empty_ticks": self.empty_ticks,
            "chunks_sent": self.chunks_sent,
            "write_failures": self.write_failures,
        }


class BroadcastScheduler:
    """
    Repeating task pushing the cached frame to all clients.

    Attributes:
        cache: Source of the latest frame
        clients: Registry of subscribed clients
        period_ms: Tick period in milliseconds
        metrics: Operational metrics

    Example:
        scheduler = BroadcastScheduler(cache, clients, emit_fps=12)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        cache: LatestFrameCache,
        clients: ClientRegistry,
        emit_fps: int = 12,
    ) -> None:
        self.cache = cache
        self.clients = clients
        self.emit_fps = emit_fps
        self.period_ms = tick_period_ms(emit_fps)
        self.metrics = BroadcastSchedulerMetrics()

        self._task: Optional[asyncio.Task] = None
        self._running: bool = False

    @property
    def interval(self) -> float:
        """Tick period in seconds."""
        return self.period_ms / 1000.0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> int:
        """
        Run one fan-out round.

        Returns:
            Number of clients the frame was written to.
        """
        self.metrics.ticks += 1

        frame = self.cache.read()
        if frame is None:
            self.metrics.empty_ticks += 1
            return 0

        sent = 0

        def send(client: ClientSink) -> None:
            nonlocal sent
            try:
                client.write(frame)
                sent += 1
            except Exception as e:
                self.metrics.write_failures += 1
                logger.warning(f"Write to {client!r} failed, dropping client: {e}")
                self.clients.unregister(client)
                try:
                    client.close()
                except Exception as close_error:
                    logger.debug(f"Error closing {client!r}: {close_error}")

        self.clients.for_each(send)
        self.metrics.chunks_sent += sent
        return sent

    async def run(self) -> None:
        """
        Tick until stopped.

        Sleeps for what is left of the period after each tick, so tick
        start times are never closer than one period.
        """
        loop = asyncio.get_running_loop()
        logger.info(
            f"Broadcast scheduler started: {self.emit_fps} fps "
            f"(every {self.period_ms} ms)"
        )

        while self._running:
            started = loop.time()
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Broadcast tick error: {e}")

            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    def start(self) -> asyncio.Task:
        """Start the repeating task on the running event loop."""
        if self.running:
            return self._task
        self._running = True
        self._task = asyncio.create_task(self.run(), name="broadcast_scheduler")
        return self._task

    def halt(self) -> None:
        """
        Stop ticking without waiting for the task.

        Safe to call from synchronous code such as a signal handler;
        the loop exits at its next wake-up and `stop` still reaps it.
        """
        if self._running:
            logger.info("Broadcast scheduler halting")
        self._running = False

    async def stop(self) -> None:
        """Cancel the repeating task and wait for it to finish."""
        self._running = False
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Broadcast scheduler stopped")
