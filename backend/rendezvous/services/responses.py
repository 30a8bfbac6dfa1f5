"""
Participant responses (accept / decline).

``apply_response`` is the pure read-modify step; ``ResponseCoordinator`` wraps
it in a compare-and-swap loop against the schedule store so two participants
answering at the same moment cannot overwrite each other's response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rendezvous.core.config import settings
from rendezvous.core.exceptions import InvalidStateError, NotFoundError, StaleWriteError
from rendezvous.models import NotificationStatus, ResponseStatus, ScheduleStatus
from rendezvous.repositories.notifications import NotificationStore
from rendezvous.repositories.reminders import ReminderScheduler
from rendezvous.repositories.schedules import ScheduleStore
from rendezvous.schemas import ScheduleSnapshot
from rendezvous.services.notifications import NotificationReconciler
from rendezvous.services.reminders import apply_reminder_policy
from rendezvous.services.status_engine import resolve

logger = logging.getLogger(__name__)

FINISHED_STATUSES = frozenset({ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED})


@dataclass(frozen=True)
class ResponseOutcome:
    previous: ScheduleSnapshot
    schedule: ScheduleSnapshot
    automatic_cancellation: bool


def consensus_status(schedule: ScheduleSnapshot) -> ScheduleStatus:
    responses = [
        schedule.participant_status.get(user_id, ResponseStatus.PENDING)
        for user_id in schedule.participants
    ]
    all_responded = all(r != ResponseStatus.PENDING for r in responses)
    all_declined = all(r == ResponseStatus.DECLINED for r in responses)
    any_accepted = any(r == ResponseStatus.ACCEPTED for r in responses)

    if all_declined:
        return ScheduleStatus.CANCELLED
    if any_accepted:
        return ScheduleStatus.ACTIVE
    if all_responded:
        return ScheduleStatus.CANCELLED
    return ScheduleStatus.PENDING


def apply_response(
    schedule: ScheduleSnapshot, user_id: str, accept: bool, now: int
) -> ResponseOutcome:
    """Record one participant's answer and derive the schedule status from it."""
    if schedule.is_owner(user_id) or user_id not in schedule.participants:
        raise InvalidStateError(f"{user_id} is not invited to schedule {schedule.id}")

    current_status = resolve(schedule, now)
    if current_status in FINISHED_STATUSES:
        raise InvalidStateError(
            f"Schedule {schedule.id} is {current_status.value.lower()} and no longer takes responses"
        )

    response = ResponseStatus.ACCEPTED if accept else ResponseStatus.DECLINED
    answered = schedule.with_response(user_id, response)
    derived = answered.model_copy(update={"status": consensus_status(answered)})
    # Time rules still apply on top of consensus
    updated = derived.model_copy(update={"status": resolve(derived, now)})

    automatic = updated.status == ScheduleStatus.CANCELLED
    return ResponseOutcome(previous=schedule, schedule=updated, automatic_cancellation=automatic)


class ResponseCoordinator:
    def __init__(
        self,
        schedules: ScheduleStore,
        notifications: NotificationStore,
        reminders: ReminderScheduler,
        max_retries: Optional[int] = None,
    ):
        self.schedules = schedules
        self.notifications = notifications
        self.reminders = reminders
        self.reconciler = NotificationReconciler(notifications)
        self.max_retries = max_retries or settings.MAX_WRITE_RETRIES

    def respond(
        self,
        schedule_id: UUID,
        user_id: str,
        accept: bool,
        now: int,
        notification_id: Optional[UUID] = None,
    ) -> ResponseOutcome:
        outcome = self._write_response(schedule_id, user_id, accept, now)
        saved = outcome.schedule
        logger.info(
            f"{user_id} {'accepted' if accept else 'declined'} schedule {schedule_id}, "
            f"status {outcome.previous.status.value} -> {saved.status.value}"
        )

        self._resolve_notifications(schedule_id, user_id, accept, notification_id)

        if outcome.automatic_cancellation:
            self.reconciler.remove_pending_invitations(schedule_id)
            logger.info(f"Schedule {schedule_id} cancelled by consensus")
        apply_reminder_policy(saved, self.reminders, now)
        if not accept:
            self.reminders.disarm(schedule_id, user_id)
        return outcome

    def _write_response(
        self, schedule_id: UUID, user_id: str, accept: bool, now: int
    ) -> ResponseOutcome:
        last_error: Optional[StaleWriteError] = None
        for attempt in range(1, self.max_retries + 1):
            current = self.schedules.get(schedule_id)
            outcome = apply_response(current, user_id, accept, now)
            try:
                saved = self.schedules.update(outcome.schedule)
            except StaleWriteError as e:
                last_error = e
                logger.info(
                    f"Response of {user_id} to schedule {schedule_id} lost a write race "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                continue
            return ResponseOutcome(
                previous=current,
                schedule=saved,
                automatic_cancellation=outcome.automatic_cancellation,
            )
        raise last_error

    def _resolve_notifications(
        self,
        schedule_id: UUID,
        user_id: str,
        accept: bool,
        notification_id: Optional[UUID],
    ) -> None:
        """Mark the triggering notification (or all pending ones for the pair) answered, then READ."""
        answered = NotificationStatus.ACCEPTED if accept else NotificationStatus.DECLINED
        if notification_id is not None:
            targets = [notification_id]
        else:
            targets = [n.id for n in self.notifications.list_pending(user_id, schedule_id)]

        for target in targets:
            try:
                self.notifications.update_status(user_id, target, answered)
                self.notifications.update_status(user_id, target, NotificationStatus.READ)
            except NotFoundError:
                logger.info(f"Notification {target} already gone, nothing to mark")
