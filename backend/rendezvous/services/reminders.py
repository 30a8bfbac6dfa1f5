"""Reminder side effects of a schedule's resolved status."""

from __future__ import annotations

import logging

from rendezvous.core.clock import HOUR_MS
from rendezvous.models import ResponseStatus, ScheduleStatus
from rendezvous.repositories.reminders import ReminderScheduler
from rendezvous.schemas import ScheduleSnapshot

logger = logging.getLogger(__name__)


def reminder_fire_time(schedule: ScheduleSnapshot) -> int:
    return schedule.start_time - schedule.reminder_hours * HOUR_MS


def apply_reminder_policy(
    schedule: ScheduleSnapshot, scheduler: ReminderScheduler, now: int
) -> None:
    """
    Arm or disarm every member's reminder for the schedule's current status.

    CANCELLED disarms everyone. ACTIVE arms the owner and accepted participants
    (clearing their dismissed flags first) and disarms the rest. PENDING
    disarms everyone and clears dismissed flags so a later ACTIVE can fire
    again. ONGOING and COMPLETED leave reminders untouched.
    """
    if schedule.id is None:
        return
    members = [schedule.owner_id, *schedule.participants]

    if schedule.status == ScheduleStatus.CANCELLED:
        for user_id in members:
            scheduler.disarm(schedule.id, user_id)
        return

    if schedule.status == ScheduleStatus.PENDING:
        for user_id in members:
            scheduler.disarm(schedule.id, user_id)
            scheduler.clear_dismissed(schedule.id, user_id)
        return

    if schedule.status != ScheduleStatus.ACTIVE:
        return

    fire_at = reminder_fire_time(schedule)
    for user_id in members:
        attending = user_id == schedule.owner_id or (
            schedule.participant_status.get(user_id) == ResponseStatus.ACCEPTED
        )
        if not attending:
            scheduler.disarm(schedule.id, user_id)
            continue
        scheduler.clear_dismissed(schedule.id, user_id)
        if fire_at > now:
            scheduler.arm(schedule.id, user_id, fire_at)
        else:
            # Lead time already passed
            scheduler.disarm(schedule.id, user_id)

