from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel

from rendezvous.core.clock import now_ms


def pending_key_for(recipient_id: str, schedule_id: UUID) -> str:
    return f"{recipient_id}:{schedule_id}"


class Notification(SQLModel, table=True):
    """Directed event about one schedule, queued for one recipient."""

    __tablename__ = "notifications"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    recipient_id: str = Field(max_length=128, nullable=False, index=True)
    sender_id: str = Field(max_length=128, nullable=False)
    schedule_id: UUID = Field(nullable=False, index=True)
    type: str = Field(max_length=32)  # INVITE, UPDATE, CANCELLED
    title: str = Field(default="", max_length=255)
    # Snapshot of the schedule's start for display and expiry
    start_time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    status: str = Field(default="PENDING", max_length=32, index=True)  # PENDING, ACCEPTED, DECLINED, READ
    timestamp: int = Field(default_factory=now_ms, sa_column=Column(BigInteger, nullable=False))
    # Set only while PENDING; the unique index allows one pending row per (recipient, schedule)
    pending_key: Optional[str] = Field(default=None, max_length=300, unique=True, nullable=True)
