# fieldlog/api/v1/endpoints/notifications.py
import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from fieldlog.core import security
from fieldlog.db import session
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.schemas import notification as notification_schema
from fieldlog.services import changes, notifications
from fieldlog.services.changes import ChangeEvent

logger = logging.getLogger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 15
STREAM_QUEUE_SIZE = 100


def format_sse(event: ChangeEvent) -> str:
    return f"event: change\ndata: {json.dumps(event.to_dict())}\n\n"


@router.post("", response_model=notification_schema.Notification, status_code=status.HTTP_201_CREATED)
def send_notification(
    payload: notification_schema.NotificationCreate,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ Sends a message to every engineer, or to one selected engineer. """
    return notifications.send(db, admin, payload)


@router.get("", response_model=notification_schema.NotificationInbox)
def read_my_notifications(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """ Broadcasts plus messages addressed to the caller, newest first. """
    return notifications.inbox(db, engineer)


@router.post("/read-all")
def mark_all_notifications_read(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    return {"status": "ok", "marked": notifications.mark_all_read(db, engineer)}


@router.post("/{notification_id}/read", response_model=notification_schema.Notification)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    return notifications.mark_read(db, engineer, notification_id)


async def change_stream(request: Request, employee_id: str, keepalive: float = KEEPALIVE_SECONDS):
    """
    SSE frames for one client: a 'change' event whenever the notifications
    table changes, a comment line every `keepalive` seconds otherwise. The
    feed subscription lives exactly as long as this generator.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)

    def offer(event: ChangeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            # A pending signal already tells the client to refetch
            pass

    def on_change(event: ChangeEvent) -> None:
        # Writes publish from the threadpool; hand over to the event loop
        loop.call_soon_threadsafe(offer, event)

    subscription = changes.subscribe("notifications", on_change)
    logger.info("Change stream opened for %s", employee_id)
    try:
        yield "retry: 5000\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.close()
        logger.info("Change stream closed for %s", employee_id)


@router.get("/stream")
async def stream_changes(
    request: Request,
    engineer: engineer_schema.Engineer = Depends(security.get_streaming_engineer)
):
    """
    Server-Sent Events: one 'change' event whenever the notifications table
    changes. The payload is only a hint; clients refetch their inbox. No
    database session is held while the stream is open.
    """
    return StreamingResponse(change_stream(request, engineer.employee_id), media_type="text/event-stream")
