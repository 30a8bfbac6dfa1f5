"""WebSocket endpoints for real-time notifications and live schedule views."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from rendezvous.core.exceptions import NotFoundError, PermissionDeniedError
from rendezvous.core.security import user_id_from_token
from rendezvous.db import SessionDep
from rendezvous.services.events import EventPublisher, get_publisher
from rendezvous.services.schedules import ScheduleService
from rendezvous.services.websocket_manager import manager, schedule_subscriptions

logger = logging.getLogger(__name__)

router = APIRouter()


def authenticate(token: str) -> str | None:
    """Token comes as a query parameter since browsers cannot set WebSocket headers."""
    try:
        return user_id_from_token(token)
    except ValueError as e:
        logger.warning(f"WebSocket auth error: {e}")
        return None


async def _keepalive(websocket: WebSocket, user_id: str) -> None:
    while True:
        try:
            data = await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected gracefully for user {user_id}")
            return
        if data == "ping":
            await websocket.send_json({"type": "pong"})


@router.websocket("/notifications")
async def websocket_notifications(websocket: WebSocket, token: str = Query(...)):
    """
    Per-user notification stream.

    Messages: {"type": "notification" | "reminder", "data": {...}}
    """
    user_id = authenticate(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, user_id)
    try:
        await websocket.send_json({"type": "connected", "user_id": user_id})
        await _keepalive(websocket, user_id)
    except Exception as e:
        logger.error(f"WebSocket error for user {user_id}: {e}", exc_info=True)
    finally:
        await manager.disconnect(websocket, user_id)


@router.websocket("/schedules/{schedule_id}")
async def websocket_schedule(
    websocket: WebSocket,
    schedule_id: UUID,
    session: SessionDep,
    token: str = Query(...),
    publisher: EventPublisher = Depends(get_publisher),
):
    """
    Live view of one schedule. Opening a second view of the same schedule
    replaces the first one.

    Messages: {"type": "schedule", "correlation_id": ..., "data": {...}}
    """
    viewer_id = authenticate(token)
    if viewer_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        snapshot = ScheduleService(session, publisher=publisher).get(viewer_id, schedule_id)
    except (NotFoundError, PermissionDeniedError) as e:
        logger.info(f"Rejected live view of schedule {schedule_id} by {viewer_id}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # Release the connection; the view itself is fed from Redis
        session.close()

    await schedule_subscriptions.subscribe(websocket, viewer_id, schedule_id)
    try:
        await websocket.send_json(
            {"type": "schedule", "correlation_id": None, "data": snapshot.model_dump(mode="json")}
        )
        await _keepalive(websocket, viewer_id)
    except Exception as e:
        logger.error(f"WebSocket error for viewer {viewer_id}: {e}", exc_info=True)
    finally:
        await schedule_subscriptions.unsubscribe(websocket, viewer_id, schedule_id)
