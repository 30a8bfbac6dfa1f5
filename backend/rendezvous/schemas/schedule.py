from __future__ import annotations

from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rendezvous.models.enums import ResponseStatus, ScheduleStatus

ReminderHours = Literal[1, 3, 6, 12, 24]


class ScheduleSnapshot(BaseModel):
    """
    Immutable view of a schedule as read from (or about to be written to) the store.

    Every component of the coordination core works on snapshots: mutations
    produce a new snapshot with ``model_copy(update=...)`` instead of editing
    one in place, so a previous snapshot can always be diffed against the next.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[UUID] = None
    owner_id: str
    title: str
    description: str = ""
    location: str = ""
    start_time: int
    end_time: int
    reminder_hours: int = 1
    allow_reschedule: bool = True
    participants: List[str] = Field(default_factory=list)
    participant_status: Dict[str, ResponseStatus] = Field(default_factory=dict)
    status: ScheduleStatus = ScheduleStatus.PENDING
    version: int = 1
    created_at: int = 0
    updated_at: int = 0

    def is_owner(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def is_member(self, user_id: str) -> bool:
        return self.owner_id == user_id or user_id in self.participants

    def is_committed(self, user_id: str) -> bool:
        """Owner, or a participant who accepted."""
        return self.owner_id == user_id or (
            user_id in self.participants
            and self.participant_status.get(user_id) == ResponseStatus.ACCEPTED
        )

    def with_response(self, user_id: str, response: ResponseStatus) -> "ScheduleSnapshot":
        updated = dict(self.participant_status)
        updated[user_id] = response
        return self.model_copy(update={"participant_status": updated})


class ScheduleDraft(BaseModel):
    """Owner-supplied content of a schedule, used for both create and full-replace edit."""

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    location: str = Field(default="", max_length=255)
    start_time: int = Field(description="Epoch milliseconds")
    end_time: int = Field(description="Epoch milliseconds")
    reminder_hours: Optional[ReminderHours] = None
    allow_reschedule: bool = True
    participant_ids: List[str] = Field(default_factory=list)

    @field_validator("participant_ids")
    @classmethod
    def dedupe_participants(cls, value: List[str]) -> List[str]:
        """Keep first occurrence order, drop blanks and repeats."""
        seen: set[str] = set()
        result: List[str] = []
        for user_id in value:
            user_id = user_id.strip()
            if user_id and user_id not in seen:
                seen.add(user_id)
                result.append(user_id)
        return result


class ConflictSummary(BaseModel):
    id: UUID
    title: str
    start_time: int
    end_time: int
    status: ScheduleStatus

    model_config = ConfigDict(from_attributes=True)


class ScheduleWithConflicts(BaseModel):
    """Mutation result: the persisted schedule plus advisory conflicts for the actor."""

    schedule: ScheduleSnapshot
    conflicts: List[ConflictSummary] = Field(default_factory=list)


class ConflictCheckRequest(BaseModel):
    start_time: int
    end_time: int
    exclude_schedule_id: Optional[UUID] = None


class RespondRequest(BaseModel):
    accept: bool
