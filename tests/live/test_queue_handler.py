"""Tests for the broadcaster-to-asyncio bridge."""

import asyncio
from unittest.mock import MagicMock

import pytest

from compliance_pulse.exceptions import BroadcastError, ErrorCode
from compliance_pulse.live import LiveBroadcaster, QueueHandler
from compliance_pulse.models import EventType, LiveEvent

EVENT = LiveEvent(type=EventType.HEARTBEAT, payload={"subscribers": 1})


class TestQueueHandler:
    def test_delivers_on_loop(self):
        async def scenario():
            queue = asyncio.Queue(maxsize=4)
            QueueHandler(queue, asyncio.get_running_loop())(EVENT)
            return await asyncio.wait_for(queue.get(), timeout=1)

        assert asyncio.run(scenario()) is EVENT

    def test_full_queue_raises(self):
        async def scenario():
            queue = asyncio.Queue(maxsize=1)
            handler = QueueHandler(queue, asyncio.get_running_loop())
            handler(EVENT)
            await asyncio.sleep(0)
            with pytest.raises(BroadcastError) as exc_info:
                handler(EVENT)
            return exc_info.value

        assert asyncio.run(scenario()).code is ErrorCode.CP300

    def test_closed_loop_raises(self):
        loop = asyncio.new_event_loop()
        loop.close()
        with pytest.raises(BroadcastError):
            QueueHandler(MagicMock(), loop)(EVENT)

    def test_slow_consumer_dropped_by_broadcaster(self):
        async def scenario():
            queue = asyncio.Queue(maxsize=1)
            broadcaster = LiveBroadcaster()
            sid = broadcaster.subscribe(QueueHandler(queue, asyncio.get_running_loop()), inline=True)
            broadcaster.broadcast(EVENT)
            await asyncio.sleep(0)
            broadcaster.broadcast(EVENT)
            return sid, broadcaster.subscriber_ids()

        sid, remaining = asyncio.run(scenario())
        assert sid not in remaining
