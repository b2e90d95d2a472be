"""Best-effort fan-out of live events to subscribers.

Thread-safe: the orchestrator thread calls :meth:`broadcast`, the heartbeat
thread calls :meth:`send_heartbeat`, and server handlers subscribe and
unsubscribe from the event loop.

By default every subscriber gets a bounded outbound queue drained by its own
delivery thread, so :meth:`broadcast` only enqueues and a slow handler never
holds up a cycle. A full queue or a handler that raises removes the
subscriber immediately; a handler that is merely slow stops acknowledging
and is dropped by the heartbeat sweep. Handlers that never block (such as
:class:`~compliance_pulse.live.queues.QueueHandler`) may subscribe with
``inline=True`` and run on the broadcasting thread.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..exceptions import BroadcastError, ErrorCode
from ..models import EventType, LiveEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[LiveEvent], Any]

# Events buffered per threaded subscriber before it is considered too slow
DEFAULT_MAX_PENDING = 64


@dataclass
class Subscriber:
    """One live-feed consumer.

    ``last_heartbeat_at`` is the monotonic time of the last acknowledgement.
    With ``auto_ack`` a successful handler call counts as one; otherwise the
    consumer must call :meth:`LiveBroadcaster.touch` after actually writing.
    """

    id: str
    handler: EventHandler
    last_heartbeat_at: float
    auto_ack: bool = True
    inline: bool = False
    worker: Optional[_DeliveryWorker] = field(default=None, repr=False, compare=False)


class _DeliveryWorker:
    """Owns one subscriber's outbound queue and the thread draining it."""

    def __init__(self, broadcaster: LiveBroadcaster, sub: Subscriber, max_pending: int) -> None:
        self._broadcaster = broadcaster
        self._sub = sub
        self._queue: queue.Queue[Optional[LiveEvent]] = queue.Queue(maxsize=max_pending)
        self._closed = threading.Event()
        self._idle = threading.Condition()
        self._outstanding = 0
        self._thread = threading.Thread(
            target=self._run,
            name=f"pulse-deliver-{sub.id}",
            daemon=True,
        )

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self) -> None:
        self._thread.start()

    def offer(self, event: LiveEvent) -> bool:
        """Enqueue without blocking. False means the queue is full."""
        with self._idle:
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                return False
            self._outstanding += 1
        return True

    def close(self) -> None:
        self._closed.set()
        with self._idle:
            self._outstanding = 0
            self._idle.notify_all()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            # The worker checks the closed flag after its current event
            pass

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued event has been handled."""
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout)

    def _run(self) -> None:
        while not self._closed.is_set():
            event = self._queue.get()
            if event is None or self._closed.is_set():
                break
            if not self._broadcaster._deliver(self._sub, event):
                # Dropping closes this worker, which also releases drain()
                self._broadcaster._drop(self._sub.id)
                break
            with self._idle:
                self._outstanding = max(0, self._outstanding - 1)
                self._idle.notify_all()


class LiveBroadcaster:
    """Manages the subscriber set and pushes metrics/alert/heartbeat events.

    Args:
        heartbeat_interval: Seconds between heartbeats (background thread)
        heartbeat_timeout: Subscribers unacknowledged for longer are dropped
        clock: Monotonic time source (injectable for tests)
        max_pending: Outbound queue size for threaded subscribers
    """

    def __init__(
        self,
        heartbeat_interval: float = 30.0,
        heartbeat_timeout: float = 90.0,
        clock: Callable[[], float] = time.monotonic,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_timeout = heartbeat_timeout
        self.max_pending = max_pending
        self._clock = clock
        self._lock = threading.RLock()
        self._subscribers: dict[str, Subscriber] = {}
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── Subscription management ───────────────────────────────────

    def subscribe(
        self,
        handler: EventHandler,
        auto_ack: bool = True,
        subscriber_id: Optional[str] = None,
        inline: bool = False,
    ) -> str:
        """Register *handler* and return its subscription id.

        ``inline`` handlers run on the broadcasting thread and must not block.
        """
        with self._lock:
            sid = subscriber_id or uuid.uuid4().hex[:12]
            if sid in self._subscribers:
                raise ValueError(f"Subscriber id already registered: {sid}")
            sub = Subscriber(
                id=sid,
                handler=handler,
                last_heartbeat_at=self._clock(),
                auto_ack=auto_ack,
                inline=inline,
            )
            if not inline:
                sub.worker = _DeliveryWorker(self, sub, self.max_pending)
                sub.worker.start()
            self._subscribers[sid] = sub
            count = len(self._subscribers)
        logger.debug("Subscriber %s added (%d active)", sid, count)
        return sid

    def _drop(self, subscriber_id: str) -> Optional[Subscriber]:
        with self._lock:
            removed = self._subscribers.pop(subscriber_id, None)
        if removed is not None and removed.worker is not None:
            removed.worker.close()
        return removed

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Remove a subscriber. Returns False if it was already gone."""
        removed = self._drop(subscriber_id)
        if removed is not None:
            logger.debug("Subscriber %s removed", subscriber_id)
        return removed is not None

    def touch(self, subscriber_id: str) -> bool:
        """Record that *subscriber_id* is alive (consumer-side acknowledgement)."""
        with self._lock:
            sub = self._subscribers.get(subscriber_id)
            if sub is None:
                return False
            sub.last_heartbeat_at = self._clock()
            return True

    def close_all(self) -> int:
        """Drop every subscriber (shutdown). Returns how many were dropped."""
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for sub in subscribers:
            if sub.worker is not None:
                sub.worker.close()
        return len(subscribers)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscriber_ids(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)

    def get_subscriber(self, subscriber_id: str) -> Optional[Subscriber]:
        with self._lock:
            return self._subscribers.get(subscriber_id)

    # ── Delivery ──────────────────────────────────────────────────

    def _deliver(self, sub: Subscriber, event: LiveEvent) -> bool:
        try:
            sub.handler(event)
        except Exception as exc:
            error = BroadcastError(
                message=f"Delivery to subscriber {sub.id} failed: {exc}",
                code=ErrorCode.CP300,
                context={"subscriber": sub.id, "event": event.type.value},
            )
            logger.info("%s; dropping subscriber", error)
            return False
        if sub.auto_ack:
            with self._lock:
                sub.last_heartbeat_at = self._clock()
        return True

    def broadcast(self, event: LiveEvent) -> int:
        """Hand *event* to every subscriber. Returns how many accepted it.

        Threaded subscribers only have the event queued; inline ones run now.
        Each subscriber is isolated: a failure removes only that subscriber.
        """
        with self._lock:
            subscribers = list(self._subscribers.values())

        accepted = 0
        failed: list[str] = []
        for sub in subscribers:
            if sub.inline:
                if self._deliver(sub, event):
                    accepted += 1
                else:
                    failed.append(sub.id)
                continue
            if sub.worker is None or sub.worker.closed:
                continue
            if sub.worker.offer(event):
                accepted += 1
            else:
                logger.info(
                    "%s; dropping subscriber",
                    BroadcastError(
                        message=f"Subscriber {sub.id} queue full ({self.max_pending} events)",
                        code=ErrorCode.CP300,
                        context={"subscriber": sub.id, "event": event.type.value},
                    ),
                )
                failed.append(sub.id)

        for sid in failed:
            self._drop(sid)
        return accepted

    def publish(self, event_type: EventType, payload: dict[str, Any]) -> int:
        return self.broadcast(LiveEvent(type=event_type, payload=payload))

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until threaded subscribers have handled everything queued so far."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            workers = [s.worker for s in self._subscribers.values() if s.worker is not None]
        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not worker.drain(remaining):
                return False
        return True

    # ── Heartbeat ─────────────────────────────────────────────────

    def sweep(self, now: Optional[float] = None) -> list[str]:
        """Drop subscribers whose last acknowledgement is older than the timeout."""
        now = self._clock() if now is None else now
        with self._lock:
            stale = [
                sid
                for sid, sub in self._subscribers.items()
                if now - sub.last_heartbeat_at > self.heartbeat_timeout
            ]
        for sid in stale:
            if self._drop(sid) is None:
                continue
            logger.info(
                "%s; dropping subscriber",
                BroadcastError(
                    message=f"Subscriber {sid} missed heartbeat",
                    code=ErrorCode.CP301,
                    context={"subscriber": sid},
                ),
            )
        return stale

    def send_heartbeat(self) -> int:
        """Sweep unresponsive subscribers, then heartbeat the rest."""
        self.sweep()
        return self.publish(EventType.HEARTBEAT, {"subscribers": self.subscriber_count})

    def start(self) -> None:
        """Start the heartbeat thread (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._heartbeat_loop,
            name="pulse-heartbeat",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Heartbeat thread did not exit within 5 seconds")
            self._thread = None

    def _heartbeat_loop(self) -> None:
        while not self._stop_event.wait(self.heartbeat_interval):
            try:
                self.send_heartbeat()
            except Exception:
                logger.exception("Heartbeat failed")
