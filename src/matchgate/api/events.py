"""SSE (Server-Sent Events) endpoint streaming engine signals."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from matchgate.core.event_bus import EventBus
from matchgate.core.signals import SignalType

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)

_HEARTBEAT_INTERVAL = 15  # seconds

# Anonymous clients can hold streams open indefinitely.
_MAX_SSE_CONNECTIONS = 100
_connection_semaphore = asyncio.Semaphore(_MAX_SSE_CONNECTIONS)

ALLOWED_EVENT_TYPES: frozenset[str] = frozenset(s.value for s in SignalType)


def _get_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


@router.get("/stream")
async def sse_stream(
    request: Request,
    event_type: str | None = None,
) -> StreamingResponse:
    """Server-Sent Events stream of engine signals.

    Query params:
        event_type: optional filter, one of the signal names
                    (e.g. "backfill.started"). If omitted, receives all.

    Errors:
        400: unknown event_type value
        429: global connection limit reached
    """
    if event_type is not None and event_type not in ALLOWED_EVENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Unknown event_type {event_type!r}. "
                f"Valid values: {sorted(ALLOWED_EVENT_TYPES)}"
            ),
        )

    if _connection_semaphore.locked():
        raise HTTPException(
            status_code=429,
            detail=f"Too many concurrent SSE connections (limit: {_MAX_SSE_CONNECTIONS})",
        )

    bus = _get_bus(request)

    async def generate():
        async with _connection_semaphore:
            yield ": connected\n\n"

            async with bus.subscribe(event_type) as sub:
                while True:
                    if await request.is_disconnected():
                        break
                    event = await sub.get(timeout=_HEARTBEAT_INTERVAL)
                    if event is None:
                        yield ": heartbeat\n\n"
                        continue
                    data = json.dumps(event, default=str)
                    yield f"event: {event['type']}\ndata: {data}\n\n"

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/health")
async def events_health(request: Request) -> dict:
    bus = _get_bus(request)
    return {
        "status": "ok",
        "subscribers": bus.subscriber_count,
        "max_sse_connections": _MAX_SSE_CONNECTIONS,
    }
