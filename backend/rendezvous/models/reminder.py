from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel


class Reminder(SQLModel, table=True):
    """Armed reminder for one user about one schedule."""

    __tablename__ = "reminders"

    schedule_id: UUID = Field(primary_key=True, nullable=False)
    user_id: str = Field(max_length=128, primary_key=True, nullable=False)
    fire_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True, index=True))
    dismissed: bool = Field(default=False)
    fired_at: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
