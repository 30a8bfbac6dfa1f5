from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Query

from rendezvous.api.deps import CorrelationId, CurrentUserId, ServiceDep
from rendezvous.schemas import (
    NotificationRead,
    NotificationUpdate,
    RespondRequest,
    ScheduleWithConflicts,
)

router = APIRouter()


@router.get("/", response_model=List[NotificationRead], summary="List notifications")
def list_notifications(
    service: ServiceDep,
    current_user_id: CurrentUserId,
    limit: int = Query(default=50, ge=1, le=100, description="Maximum number of notifications"),
) -> List[NotificationRead]:
    """The user's notification feed, newest first. Expired invitations are swept before reading."""
    return service.list_notifications(current_user_id, limit=limit)


@router.patch("/{notification_id}", response_model=NotificationRead, summary="Mark notification as read")
def update_notification(
    notification_id: UUID,
    payload: NotificationUpdate,
    service: ServiceDep,
    current_user_id: CurrentUserId,
) -> NotificationRead:
    return service.mark_notification_read(current_user_id, notification_id)


@router.post(
    "/{notification_id}/respond",
    response_model=ScheduleWithConflicts,
    summary="Answer the invitation carried by a notification",
)
def respond_to_notification(
    notification_id: UUID,
    payload: RespondRequest,
    service: ServiceDep,
    current_user_id: CurrentUserId,
    correlation_id: CorrelationId,
) -> ScheduleWithConflicts:
    return service.respond_to_notification(
        current_user_id, notification_id, payload.accept, correlation_id=correlation_id
    )
