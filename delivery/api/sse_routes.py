"""Server-sent events endpoint: one long-lived stream per connected user.

Each connection registers a mailbox with the broker, emits a ``connected``
frame, then forwards frames from its own mailbox until the mailbox is closed
(reconnect elsewhere, shutdown) or the client goes away. The mailbox is
always released on the way out.
"""
from __future__ import annotations
import asyncio, logging
from typing import AsyncIterator, Awaitable, Callable, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from delivery.core.auth import require_api_key, subscriber_identity
from delivery.core.config import settings
from delivery.dependencies import get_broker
from delivery.api.schemas import BroadcastIn, BroadcastOut
from delivery.realtime.broker import NotificationBroker
from delivery.realtime.encoder import comment_frame, connected_frame
from delivery.realtime.errors import EncodingFailure
from delivery.realtime.mailbox import Mailbox

router = APIRouter()
logger = logging.getLogger("api.sse")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_IDLE = object()


async def _next_frame(mailbox: Mailbox, poll_seconds: Optional[float]):
    if not poll_seconds:
        return await mailbox.get()
    try:
        return await asyncio.wait_for(mailbox.get(), timeout=poll_seconds)
    except asyncio.TimeoutError:
        return _IDLE


async def event_stream(
    broker: NotificationBroker,
    user_id: int,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    poll_seconds: Optional[float] = None,
    keepalive_seconds: Optional[float] = None,
) -> AsyncIterator[bytes]:
    mailbox = broker.connect(user_id)
    try:
        yield connected_frame(user_id)
        idle = 0.0
        while True:
            frame = await _next_frame(mailbox, poll_seconds)
            if frame is _IDLE:
                if is_disconnected is not None and await is_disconnected():
                    logger.info("client went away", extra={"user_id": user_id})
                    return
                idle += poll_seconds
                if keepalive_seconds and idle >= keepalive_seconds:
                    idle = 0.0
                    yield comment_frame("keep-alive")
                continue
            if frame is None:
                logger.info("mailbox closed, ending stream", extra={"user_id": user_id})
                return
            idle = 0.0
            yield frame
    finally:
        broker.disconnect(user_id, mailbox)


@router.get("/sse")
async def sse_stream(
    request: Request,
    user_id: int = Depends(subscriber_identity),
    broker: NotificationBroker = Depends(get_broker),
):
    gen = event_stream(
        broker,
        user_id,
        is_disconnected=request.is_disconnected,
        poll_seconds=settings.SSE_DISCONNECT_POLL_SECONDS or settings.SSE_KEEPALIVE_SECONDS,
        keepalive_seconds=settings.SSE_KEEPALIVE_SECONDS,
    )
    return StreamingResponse(gen, media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/sse/stats")
def sse_stats(broker: NotificationBroker = Depends(get_broker)):
    return broker.stats()


@router.post(
    "/sse/broadcast",
    response_model=BroadcastOut,
    dependencies=[Depends(require_api_key)],
)
def sse_broadcast(body: BroadcastIn, broker: NotificationBroker = Depends(get_broker)):
    try:
        res = broker.broadcast_all(body.event, body.data)
    except EncodingFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BroadcastOut(event=body.event, delivered=res.delivered, dropped=res.dropped)
