"""Bridge broadcaster threads to asyncio consumers.

The handler never blocks the broadcasting thread: it schedules a
``put_nowait`` on the consumer's loop and refuses (raises) when the queue
is already full, which makes the broadcaster drop the slow consumer.
"""

from __future__ import annotations

import asyncio

from ..exceptions import BroadcastError, ErrorCode
from ..models import LiveEvent


class QueueHandler:
    """Subscriber handler feeding an ``asyncio.Queue`` owned by *loop*."""

    def __init__(self, queue: asyncio.Queue, loop: asyncio.AbstractEventLoop) -> None:
        self.queue = queue
        self.loop = loop

    def __call__(self, event: LiveEvent) -> None:
        if self.loop.is_closed():
            raise BroadcastError(message="Consumer loop closed", code=ErrorCode.CP300)
        if self.queue.maxsize and self.queue.qsize() >= self.queue.maxsize:
            raise BroadcastError(
                message=f"Consumer queue full ({self.queue.maxsize} events)",
                code=ErrorCode.CP300,
            )
        self.loop.call_soon_threadsafe(self._put, event)

    def _put(self, event: LiveEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Raced with another producer; the next broadcast sees a full queue
            pass
