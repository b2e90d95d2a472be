"""Starlette ASGI application exposing the query API and the live feed."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..engine import MonitorEngine
from ..live import QueueHandler
from ..models import EventType, LiveEvent

logger = logging.getLogger(__name__)

# Events buffered per live consumer before it is considered too slow
QUEUE_SIZE = 64

# How often the stream loop checks for client disconnects
POLL_SECONDS = 1.0


class _BadRequest(ValueError):
    pass


def _int_param(request: Request, name: str, default: Optional[int], minimum: int = 1) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise _BadRequest(f"'{name}' must be an integer") from None
    if value < minimum:
        raise _BadRequest(f"'{name}' must be at least {minimum}")
    return value


def _status_event(engine: MonitorEngine) -> LiveEvent:
    current = engine.get_current_metrics()
    return LiveEvent(
        type=EventType.STATUS,
        payload={
            "status": engine.get_status(),
            "snapshot": current.to_dict() if current is not None else None,
        },
    )


def create_app(engine: MonitorEngine) -> Starlette:
    """Build the Starlette application wired to *engine*."""

    async def api_metrics(request: Request) -> JSONResponse:
        current = engine.get_current_metrics()
        if current is None:
            return JSONResponse({"status": "pending"}, status_code=202)
        return JSONResponse(current.to_dict())

    async def api_history(request: Request) -> JSONResponse:
        count = _int_param(request, "count", None)
        since = request.query_params.get("since")
        try:
            series = engine.get_history(count=count, since=since)
        except ValueError as exc:
            raise _BadRequest(f"'since' is not a valid timestamp: {exc}") from None
        return JSONResponse({"count": len(series), "snapshots": [s.to_dict() for s in series]})

    async def api_trend(request: Request) -> JSONResponse:
        window = request.path_params.get("window", "short")
        try:
            trend = engine.get_trend(window)
        except ValueError as exc:
            raise _BadRequest(str(exc)) from None
        return JSONResponse(trend.to_dict())

    async def api_forecast(request: Request) -> JSONResponse:
        horizon = _int_param(request, "horizon", None)
        return JSONResponse(engine.get_forecast(horizon).to_dict())

    async def api_alerts(request: Request) -> JSONResponse:
        count = _int_param(request, "count", None)
        alerts = engine.get_alerts(count)
        return JSONResponse({"count": len(alerts), "alerts": [a.to_dict() for a in alerts]})

    async def api_status(request: Request) -> JSONResponse:
        return JSONResponse(engine.get_status())

    async def api_risk(request: Request) -> JSONResponse:
        return JSONResponse(engine.get_risk().to_dict())

    async def api_refresh(request: Request) -> JSONResponse:
        """Force a full rescan. POST /api/refresh"""

        # Run the cycle in a background thread to not block the request
        def _do_refresh() -> None:
            try:
                engine.refresh()
            except Exception as exc:
                logger.error("Refresh failed: %s", exc)

        threading.Thread(target=_do_refresh, name="pulse-refresh", daemon=True).start()
        return JSONResponse({"status": "refresh_started"}, status_code=202)

    async def api_stream(request: Request) -> StreamingResponse:
        """Newline-delimited JSON live feed. ``?max_events=N`` ends it after N events."""
        max_events = _int_param(request, "max_events", None)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[LiveEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        subscriber_id = engine.subscribe(QueueHandler(queue, loop), auto_ack=False, inline=True)

        async def lines() -> AsyncIterator[str]:
            sent = 0
            try:
                yield _status_event(engine).to_ndjson()
                sent += 1
                while max_events is None or sent < max_events:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=POLL_SECONDS)
                    except asyncio.TimeoutError:
                        if await request.is_disconnected():
                            break
                        continue
                    yield event.to_ndjson()
                    sent += 1
                    engine.broadcaster.touch(subscriber_id)
            finally:
                engine.unsubscribe(subscriber_id)

        return StreamingResponse(lines(), media_type="application/x-ndjson")

    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[LiveEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        subscriber_id = engine.subscribe(QueueHandler(queue, loop), auto_ack=False, inline=True)

        async def _send_loop() -> None:
            await websocket.send_json(_status_event(engine).to_dict())
            while True:
                event = await queue.get()
                await websocket.send_json(event.to_dict())
                engine.broadcaster.touch(subscriber_id)

        async def _receive_loop() -> None:
            # Any client message (e.g. "ping") counts as an acknowledgement
            while True:
                await websocket.receive_text()
                engine.broadcaster.touch(subscriber_id)

        tasks = [asyncio.create_task(_send_loop()), asyncio.create_task(_receive_loop())]
        try:
            done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.debug("WebSocket error: %s", exc)
        finally:
            for task in tasks:
                task.cancel()
            engine.unsubscribe(subscriber_id)
            try:
                await websocket.close()
            except RuntimeError:
                # Already closed by the client
                pass

    async def bad_request(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=400)

    routes = [
        Route("/api/metrics", api_metrics),
        Route("/api/history", api_history),
        Route("/api/trend", api_trend, name="trend_default"),
        Route("/api/trend/{window}", api_trend),
        Route("/api/forecast", api_forecast),
        Route("/api/alerts", api_alerts),
        Route("/api/status", api_status),
        Route("/api/risk", api_risk),
        Route("/api/refresh", api_refresh, methods=["POST"]),
        Route("/api/stream", api_stream),
        WebSocketRoute("/ws", websocket_endpoint),
    ]

    exception_handlers: dict[Any, Any] = {_BadRequest: bad_request}
    return Starlette(routes=routes, exception_handlers=exception_handlers)
