"""
SSE (Server-Sent Events) API for real-time progress updates.

Every connection subscribes to the UI event bus of the application container
and receives each event, e.g. ``generator:generation:progress`` or
``builds:build:completed``, as one SSE message.
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app_generator.api.deps import get_container
from app_generator.core.container import AppContainer
from app_generator.core.events import EventBus, EventPayload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["SSE"])

HEARTBEAT_SECONDS = 30.0
QUEUE_SIZE = 1000


def format_sse(data: Dict[str, Any], event: Optional[str] = None) -> str:
    """Format data as SSE message."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, default=str)}")
    lines.append("")
    return "\n".join(lines) + "\n"


async def sse_events_generator(bus: EventBus, request: Request) -> AsyncGenerator[str, None]:
    queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)

    def _enqueue(event: str, payload: EventPayload) -> None:
        try:
            queue.put_nowait((event, payload))
        except asyncio.QueueFull:
            logger.warning(f"SSE queue full, dropping event {event}")

    bus.on_any(_enqueue)
    logger.info("SSE client connected")
    yield format_sse({"type": "connected", "message": "SSE stream connected"})

    try:
        while True:
            if await request.is_disconnected():
                break

            try:
                event, payload = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
            except asyncio.TimeoutError:
                yield format_sse({"type": "heartbeat"})
                continue

            yield format_sse({"type": event, "payload": payload}, event)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled")
    finally:
        bus.off_any(_enqueue)
        logger.info("SSE client disconnected")


@router.get("/events")
async def sse_events(request: Request, container: AppContainer = Depends(get_container)):
    """
    SSE endpoint for the generator event stream.

    Event names carry the component prefix:
    - run:*: generation run lifecycle
    - generator:*, cordova:*: app generation and build preparation progress
    - github:*: repository creation, file upload retries, GitHub Pages
    - codemagic:*, builds:*: Codemagic requests and tracked build status
    - templates:*, config:*, appstore:*: catalog, configuration and Appstore changes
    """
    return StreamingResponse(
        sse_events_generator(container.ui_events, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
