"""WebSocket handler for real-time reader events."""

import asyncio
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from doc_truyen.services.events import EventBus, ReaderEvent

router = APIRouter()


@router.websocket("/ws/events")
async def events_websocket(websocket: WebSocket, file_id: Optional[str] = None) -> None:
    """Stream reader events, optionally only those of one file.

    Events without a file (queue-wide or vocabulary changes) are always sent.
    """
    event_bus: EventBus = websocket.app.state.event_bus
    queue: asyncio.Queue[ReaderEvent] = asyncio.Queue(maxsize=1000)

    def on_event(event: ReaderEvent) -> None:
        if file_id is None or event.file_id in (None, file_id):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                pass  # Client is not keeping up

    # Subscribed before accepting so no event slips between handshake and loop
    sub_id = event_bus.subscribe(on_event)

    try:
        await websocket.accept()
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=30.0)
                await websocket.send_json(event.to_dict())
            except asyncio.TimeoutError:
                await websocket.send_json({"type": "heartbeat"})
            except WebSocketDisconnect:
                break
    finally:
        event_bus.unsubscribe(sub_id)
