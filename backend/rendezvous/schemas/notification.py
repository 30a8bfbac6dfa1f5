from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from rendezvous.models.enums import NotificationStatus, NotificationType


class NotificationIntent(BaseModel):
    """Decision to put one notification in one recipient's queue."""

    model_config = ConfigDict(frozen=True)

    recipient_id: str
    sender_id: str
    schedule_id: UUID
    type: NotificationType
    title: str
    start_time: int


class NotificationRead(BaseModel):
    id: UUID
    recipient_id: str
    sender_id: str
    schedule_id: UUID
    type: NotificationType
    title: str
    start_time: int
    status: NotificationStatus
    timestamp: int

    model_config = ConfigDict(from_attributes=True)


class NotificationUpdate(BaseModel):
    status: Literal["READ"] = "READ"
