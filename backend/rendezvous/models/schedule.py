from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel

from rendezvous.core.clock import now_ms


class Schedule(SQLModel, table=True):
    """Proposed or confirmed activity. ``status`` is a cache of the last resolution."""

    __tablename__ = "schedules"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    owner_id: str = Field(max_length=128, nullable=False, index=True)
    title: str = Field(max_length=255)
    description: str = Field(default="", max_length=2000)
    location: str = Field(default="", max_length=255)
    start_time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    end_time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    reminder_hours: int = Field(default=1)
    allow_reschedule: bool = Field(default=True)
    status: str = Field(default="PENDING", max_length=32, index=True)
    version: int = Field(default=1, nullable=False)
    created_at: int = Field(default_factory=now_ms, sa_column=Column(BigInteger, nullable=False))
    updated_at: int = Field(default_factory=now_ms, sa_column=Column(BigInteger, nullable=False))


class ScheduleParticipant(SQLModel, table=True):
    """Invited participant with response status."""

    __tablename__ = "schedule_participants"

    schedule_id: UUID = Field(foreign_key="schedules.id", primary_key=True, nullable=False)
    user_id: str = Field(max_length=128, primary_key=True, nullable=False, index=True)
    position: int = Field(default=0, nullable=False)  # invite order
    response_status: str = Field(default="PENDING", max_length=32)  # PENDING, ACCEPTED, DECLINED
