"""
Derived schedule status.

A schedule's status is a function of its cached status, its participants'
responses and the clock. The cached value only matters for the two sticky
inputs (an existing cancellation, and a still-pending invite whose start has
passed); everything else is recomputed from scratch on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rendezvous.models import ResponseStatus, ScheduleStatus
from rendezvous.schemas import ScheduleSnapshot


class ResolutionRule(str, Enum):
    CANCELLED = "cancelled"
    DEADLINE_EXPIRED = "deadline_expired"
    ENDED = "ended"
    IN_PROGRESS = "in_progress"
    SOLO = "solo"
    ALL_DECLINED = "all_declined"
    ACCEPTED = "accepted"
    AWAITING = "awaiting"


# Cancellations reached without anyone asking for them; announced silently
AUTOMATIC_CANCELLATIONS = frozenset({ResolutionRule.DEADLINE_EXPIRED, ResolutionRule.ALL_DECLINED})


@dataclass(frozen=True)
class Resolution:
    status: ScheduleStatus
    rule: ResolutionRule

    @property
    def automatic_cancellation(self) -> bool:
        return self.rule in AUTOMATIC_CANCELLATIONS


def resolve_with_rule(schedule: ScheduleSnapshot, now: int) -> Resolution:
    """Resolve the status and report which rule decided it (first match wins)."""
    if schedule.status == ScheduleStatus.CANCELLED:
        return Resolution(ScheduleStatus.CANCELLED, ResolutionRule.CANCELLED)
    if schedule.status == ScheduleStatus.PENDING and now > schedule.start_time:
        return Resolution(ScheduleStatus.CANCELLED, ResolutionRule.DEADLINE_EXPIRED)
    if now > schedule.end_time:
        return Resolution(ScheduleStatus.COMPLETED, ResolutionRule.ENDED)
    if schedule.start_time <= now <= schedule.end_time:
        return Resolution(ScheduleStatus.ONGOING, ResolutionRule.IN_PROGRESS)
    if not schedule.participants:
        return Resolution(ScheduleStatus.ACTIVE, ResolutionRule.SOLO)

    responses = [
        schedule.participant_status.get(user_id, ResponseStatus.PENDING)
        for user_id in schedule.participants
    ]
    if all(response == ResponseStatus.DECLINED for response in responses):
        return Resolution(ScheduleStatus.CANCELLED, ResolutionRule.ALL_DECLINED)
    if any(response == ResponseStatus.ACCEPTED for response in responses):
        return Resolution(ScheduleStatus.ACTIVE, ResolutionRule.ACCEPTED)
    return Resolution(ScheduleStatus.PENDING, ResolutionRule.AWAITING)


def resolve(schedule: ScheduleSnapshot, now: int) -> ScheduleStatus:
    return resolve_with_rule(schedule, now).status
