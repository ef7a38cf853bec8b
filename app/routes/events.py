"""
Quill Real-time Events (SSE)
Server-Sent Events carrying notifications to connected users
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import AsyncGenerator, List
import asyncio
import uuid

from ..auth import require_moderator, user_from_token
from ..database import get_db
from ..logging_config import notify_logger
from ..models.user import User
from ..services.realtime import event_manager, role_channel, user_channel

router = APIRouter(prefix="/api/events", tags=["events"])

KEEPALIVE_SECONDS = 30.0


async def event_stream(request: Request, client_id: str, channels: List[str]) -> AsyncGenerator:
    """Generator for SSE stream"""
    queue = await event_manager.connect(client_id, channels)
    notify_logger.debug("Client connected", client_id=client_id, channels=channels)

    try:
        while True:
            if await request.is_disconnected():
                break

            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                yield event.to_sse()
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"

    finally:
        await event_manager.disconnect(client_id)
        notify_logger.debug("Client disconnected", client_id=client_id)


@router.get("/stream")
async def sse_stream(request: Request, token: str, db: Session = Depends(get_db)):
    """
    SSE endpoint for a user's notifications.

    EventSource cannot send headers, so the access token travels as a query
    parameter:
    ```
    const source = new EventSource(`/api/events/stream?token=${token}`);
    source.addEventListener('notification', (event) => {
        const payload = JSON.parse(event.data);
        console.log(payload.data.title);
    });
    ```
    """
    user = user_from_token(token, db)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")

    client_id = f"client_{uuid.uuid4().hex[:8]}"
    channels = [user_channel(user.id), role_channel(user.role)]

    return StreamingResponse(
        event_stream(request, client_id, channels),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )


@router.get("/status")
async def events_status(moderator: User = Depends(require_moderator)):
    """Get current event system status"""
    return {
        "ok": True,
        "connected_clients": event_manager.client_count,
        "channels": event_manager.channels,
    }
