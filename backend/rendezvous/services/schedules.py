"""
Schedule service - the mutation and read entry points of the coordination core.

Every operation follows the same shape: read the current snapshot, compute the
next one in memory, write it with compare-and-swap, then run the side effects
(notification reconciliation, reminders, real-time publish) against what was
actually persisted. Side effects are idempotent, so a failure after the write
is safe to retry.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlmodel import Session

from rendezvous.core.clock import MINUTE_MS, now_ms
from rendezvous.core.config import settings
from rendezvous.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleValidationError,
    StaleWriteError,
)
from rendezvous.models import (
    Notification,
    NotificationStatus,
    ResponseStatus,
    ScheduleStatus,
)
from rendezvous.models.enums import INVITATION_TYPES, NotificationType, parse_enum
from rendezvous.repositories.notifications import NotificationStore
from rendezvous.repositories.reminders import ReminderScheduler
from rendezvous.repositories.schedules import ScheduleStore
from rendezvous.schemas import (
    ConflictSummary,
    NotificationIntent,
    ScheduleDraft,
    ScheduleSnapshot,
    ScheduleWithConflicts,
)
from rendezvous.services.conflicts import ConflictDetector
from rendezvous.services.events import EventPublisher, get_publisher
from rendezvous.services.janitor import ExpiryJanitor
from rendezvous.services.notifications import NotificationReconciler
from rendezvous.services.reminders import apply_reminder_policy
from rendezvous.services.responses import FINISHED_STATUSES, ResponseCoordinator
from rendezvous.services.status_engine import resolve, resolve_with_rule

logger = logging.getLogger(__name__)


def validate_draft(draft: ScheduleDraft, owner_id: str, now: int) -> None:
    """Reject drafts that cannot become a schedule."""
    if draft.end_time <= draft.start_time:
        raise ScheduleValidationError("End time must be after start time", field="end_time")
    if draft.end_time - draft.start_time < settings.MIN_DURATION_MINUTES * MINUTE_MS:
        raise ScheduleValidationError(
            f"A schedule must last at least {settings.MIN_DURATION_MINUTES} minutes",
            field="end_time",
        )
    if draft.start_time <= now:
        raise ScheduleValidationError("Start time must be in the future", field="start_time")
    if owner_id in draft.participant_ids:
        raise ScheduleValidationError(
            "The owner cannot be invited to their own schedule", field="participant_ids"
        )


def summarize(schedules: List[ScheduleSnapshot]) -> List[ConflictSummary]:
    return [ConflictSummary.model_validate(s) for s in schedules]


class ScheduleService:
    def __init__(
        self,
        session: Session,
        publisher: Optional[EventPublisher] = None,
        max_retries: Optional[int] = None,
    ):
        self.schedules = ScheduleStore(session)
        self.notifications = NotificationStore(session)
        self.reminders = ReminderScheduler(session)
        self.reconciler = NotificationReconciler(self.notifications)
        self.detector = ConflictDetector(self.schedules)
        self.janitor = ExpiryJanitor(self.notifications)
        self.max_retries = max_retries or settings.MAX_WRITE_RETRIES
        self.responses = ResponseCoordinator(
            self.schedules, self.notifications, self.reminders, max_retries=self.max_retries
        )
        self.publisher = publisher or get_publisher()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        owner_id: str,
        draft: ScheduleDraft,
        now: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> ScheduleWithConflicts:
        now = now if now is not None else now_ms()
        validate_draft(draft, owner_id, now)

        snapshot = ScheduleSnapshot(
            owner_id=owner_id,
            title=draft.title,
            description=draft.description,
            location=draft.location,
            start_time=draft.start_time,
            end_time=draft.end_time,
            reminder_hours=draft.reminder_hours or settings.DEFAULT_REMINDER_HOURS,
            allow_reschedule=draft.allow_reschedule,
            participants=list(draft.participant_ids),
            participant_status={u: ResponseStatus.PENDING for u in draft.participant_ids},
            status=ScheduleStatus.PENDING,
            created_at=now,
        )
        snapshot = snapshot.model_copy(update={"status": resolve(snapshot, now)})

        saved = self.schedules.create(snapshot)
        self._after_write(None, saved, owner_id, now, correlation_id=correlation_id)

        conflicts = self.detector.find_conflicts(
            owner_id, saved.start_time, saved.end_time, now, exclude_schedule_id=saved.id
        )
        return ScheduleWithConflicts(schedule=saved, conflicts=summarize(conflicts))

    def edit(
        self,
        actor_id: str,
        schedule_id: UUID,
        draft: ScheduleDraft,
        now: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> ScheduleWithConflicts:
        """Full replace by the owner; every participant has to answer again."""
        now = now if now is not None else now_ms()
        validate_draft(draft, actor_id, now)

        def replace(current: ScheduleSnapshot) -> ScheduleSnapshot:
            if not current.is_owner(actor_id):
                raise PermissionDeniedError(f"Only the owner can edit schedule {schedule_id}")
            status = resolve(current, now)
            if status in FINISHED_STATUSES:
                raise InvalidStateError(
                    f"Schedule {schedule_id} is {status.value.lower()} and cannot be edited"
                )
            updated = current.model_copy(
                update={
                    "title": draft.title,
                    "description": draft.description,
                    "location": draft.location,
                    "start_time": draft.start_time,
                    "end_time": draft.end_time,
                    "reminder_hours": draft.reminder_hours or current.reminder_hours,
                    "allow_reschedule": draft.allow_reschedule,
                    "participants": list(draft.participant_ids),
                    "participant_status": {
                        u: ResponseStatus.PENDING for u in draft.participant_ids
                    },
                    "status": ScheduleStatus.PENDING,
                }
            )
            return updated.model_copy(update={"status": resolve(updated, now)})

        previous, saved = self._compare_and_swap(schedule_id, replace)
        self._after_write(previous, saved, actor_id, now, correlation_id=correlation_id)

        conflicts = self.detector.find_conflicts(
            actor_id, saved.start_time, saved.end_time, now, exclude_schedule_id=saved.id
        )
        return ScheduleWithConflicts(schedule=saved, conflicts=summarize(conflicts))

    def cancel(
        self,
        actor_id: str,
        schedule_id: UUID,
        now: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> ScheduleSnapshot:
        """Owner cancellation; cancelling twice is a no-op."""
        now = now if now is not None else now_ms()
        current = self.schedules.get(schedule_id)
        if not current.is_owner(actor_id):
            raise PermissionDeniedError(f"Only the owner can cancel schedule {schedule_id}")

        current = self._refresh(current, now, correlation_id=correlation_id)
        if current.status == ScheduleStatus.CANCELLED:
            logger.info(f"Schedule {schedule_id} already cancelled")
            return current
        if current.status == ScheduleStatus.COMPLETED:
            raise InvalidStateError(f"Schedule {schedule_id} is completed and cannot be cancelled")

        def mark_cancelled(snapshot: ScheduleSnapshot) -> Optional[ScheduleSnapshot]:
            if snapshot.status == ScheduleStatus.CANCELLED:
                return None
            return snapshot.model_copy(update={"status": ScheduleStatus.CANCELLED})

        previous, saved = self._compare_and_swap(schedule_id, mark_cancelled)
        if previous is saved:
            return saved
        logger.info(f"Schedule {schedule_id} cancelled by owner {actor_id}")
        self._after_write(previous, saved, actor_id, now, correlation_id=correlation_id)
        return saved

    def respond(
        self,
        actor_id: str,
        schedule_id: UUID,
        accept: bool,
        notification_id: Optional[UUID] = None,
        now: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> ScheduleWithConflicts:
        """
        Accept or decline an invitation.

        Conflicts are the ones the participant takes on by accepting, computed
        before the write; a decline never reports conflicts.
        """
        now = now if now is not None else now_ms()
        conflicts: List[ScheduleSnapshot] = []
        if accept:
            current = self.schedules.get(schedule_id)
            conflicts = self.detector.find_conflicts(
                actor_id, current.start_time, current.end_time, now, exclude_schedule_id=schedule_id
            )

        outcome = self.responses.respond(
            schedule_id, actor_id, accept, now, notification_id=notification_id
        )
        self.publisher.publish_schedule(outcome.schedule, correlation_id)
        return ScheduleWithConflicts(schedule=outcome.schedule, conflicts=summarize(conflicts))

    def respond_to_notification(
        self,
        actor_id: str,
        notification_id: UUID,
        accept: bool,
        now: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> ScheduleWithConflicts:
        notification = self.notifications.get(actor_id, notification_id)
        kind = parse_enum(NotificationType, notification.type, NotificationType.UPDATE)
        status = parse_enum(NotificationStatus, notification.status, NotificationStatus.READ)
        if kind not in INVITATION_TYPES:
            raise InvalidStateError(f"Notification {notification_id} is not an invitation")
        if status != NotificationStatus.PENDING:
            raise InvalidStateError(f"Notification {notification_id} was already answered")

        try:
            return self.respond(
                actor_id,
                notification.schedule_id,
                accept,
                notification_id=notification_id,
                now=now,
                correlation_id=correlation_id,
            )
        except NotFoundError as e:
            if e.resource != "Schedule":
                raise
            # Invitation outlived its schedule
            self.notifications.delete(actor_id, notification_id)
            raise

    def dismiss_reminder(self, actor_id: str, schedule_id: UUID) -> None:
        schedule = self.schedules.get(schedule_id)
        self._require_member(schedule, actor_id)
        self.reminders.dismiss(schedule_id, actor_id)
        logger.info(f"Reminder for schedule {schedule_id} dismissed by {actor_id}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, actor_id: str, schedule_id: UUID, now: Optional[int] = None) -> ScheduleSnapshot:
        now = now if now is not None else now_ms()
        schedule = self.schedules.get(schedule_id)
        self._require_member(schedule, actor_id)
        return self._refresh(schedule, now)

    def list_for_user(
        self,
        actor_id: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
        now: Optional[int] = None,
    ) -> List[ScheduleSnapshot]:
        now = now if now is not None else now_ms()
        if start is not None and end is not None:
            schedules = self.schedules.query_by_time_range(actor_id, start, end)
        else:
            schedules = self.schedules.query_all_for_user(actor_id)
        return [self._refresh(s, now) for s in schedules]

    def find_conflicts(
        self,
        actor_id: str,
        start: int,
        end: int,
        exclude_schedule_id: Optional[UUID] = None,
        now: Optional[int] = None,
    ) -> List[ConflictSummary]:
        now = now if now is not None else now_ms()
        return summarize(
            self.detector.find_conflicts(
                actor_id, start, end, now, exclude_schedule_id=exclude_schedule_id
            )
        )

    def conflicts_for_invite(
        self, actor_id: str, schedule_id: UUID, now: Optional[int] = None
    ) -> List[ConflictSummary]:
        """What the actor would double-book by accepting this invitation."""
        schedule = self.schedules.get(schedule_id)
        self._require_member(schedule, actor_id)
        return self.find_conflicts(
            actor_id,
            schedule.start_time,
            schedule.end_time,
            exclude_schedule_id=schedule_id,
            now=now,
        )

    def list_notifications(
        self, actor_id: str, now: Optional[int] = None, limit: int = 50
    ) -> List[Notification]:
        """The recipient's feed, after dropping invitations that already expired."""
        now = now if now is not None else now_ms()
        self.janitor.sweep(now, recipient_id=actor_id)
        return self.notifications.list_for_recipient(actor_id, limit=limit)

    def mark_notification_read(self, actor_id: str, notification_id: UUID) -> Notification:
        return self.notifications.update_status(actor_id, notification_id, NotificationStatus.READ)

    # ------------------------------------------------------------------
    # Periodic work
    # ------------------------------------------------------------------

    def refresh_overdue(self, now: Optional[int] = None) -> int:
        """Persist status transitions the clock caused since the last write. Returns the count."""
        now = now if now is not None else now_ms()
        changed = 0
        for schedule in self.schedules.query_possibly_stale(now):
            try:
                refreshed = self._refresh(schedule, now)
            except StaleWriteError as e:
                logger.warning(f"Skipping overdue refresh of schedule {schedule.id}: {e}")
                continue
            if refreshed.status != schedule.status:
                changed += 1
        if changed:
            logger.info(f"Overdue sweep updated {changed} schedule(s)")
        return changed

    def fire_due_reminders(self, now: Optional[int] = None) -> int:
        """Publish every due reminder whose schedule is still on. Returns the number published."""
        now = now if now is not None else now_ms()
        published = 0
        for reminder in self.reminders.due(now):
            try:
                schedule = self._refresh(self.schedules.get(reminder.schedule_id), now)
            except NotFoundError:
                logger.warning(f"Reminder for missing schedule {reminder.schedule_id}, dropping")
                self.reminders.mark_fired(reminder, now)
                continue
            if schedule.status == ScheduleStatus.ACTIVE and schedule.is_committed(reminder.user_id):
                self.publisher.publish_reminder(reminder.user_id, schedule)
                published += 1
            self.reminders.mark_fired(reminder, now)
        if published:
            logger.info(f"Fired {published} reminder(s)")
        return published

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_member(self, schedule: ScheduleSnapshot, actor_id: str) -> None:
        if not schedule.is_member(actor_id):
            raise PermissionDeniedError(f"{actor_id} has no access to schedule {schedule.id}")

    def _compare_and_swap(
        self,
        schedule_id: UUID,
        mutate: Callable[[ScheduleSnapshot], Optional[ScheduleSnapshot]],
    ) -> Tuple[ScheduleSnapshot, ScheduleSnapshot]:
        """
        Read, mutate and write until the write wins or retries run out.

        ``mutate`` returning None means there is nothing to write; the current
        snapshot is then returned as both previous and saved.
        """
        last_error: Optional[StaleWriteError] = None
        for attempt in range(1, self.max_retries + 1):
            current = self.schedules.get(schedule_id)
            updated = mutate(current)
            if updated is None:
                return current, current
            try:
                return current, self.schedules.update(updated)
            except StaleWriteError as e:
                last_error = e
                logger.info(
                    f"Write to schedule {schedule_id} lost a race "
                    f"(attempt {attempt}/{self.max_retries})"
                )
        raise last_error

    def _refresh(
        self, schedule: ScheduleSnapshot, now: int, correlation_id: Optional[str] = None
    ) -> ScheduleSnapshot:
        """Resolve the status on read and persist it when the clock moved it."""
        resolution = resolve_with_rule(schedule, now)
        if resolution.status == schedule.status:
            return schedule

        def transition(current: ScheduleSnapshot) -> Optional[ScheduleSnapshot]:
            status = resolve(current, now)
            if status == current.status:
                return None
            return current.model_copy(update={"status": status})

        previous, saved = self._compare_and_swap(schedule.id, transition)
        if previous is saved:
            return saved

        automatic = resolve_with_rule(previous, now).automatic_cancellation
        logger.info(
            f"Schedule {saved.id} moved {previous.status.value} -> {saved.status.value}"
            f"{' (automatic cancellation)' if automatic else ''}"
        )
        if automatic:
            self.reconciler.reconcile(previous, saved, saved.owner_id, automatic=True)
        apply_reminder_policy(saved, self.reminders, now)
        self.publisher.publish_schedule(saved, correlation_id)
        return saved

    def _after_write(
        self,
        previous: Optional[ScheduleSnapshot],
        saved: ScheduleSnapshot,
        actor_id: str,
        now: int,
        correlation_id: Optional[str] = None,
    ) -> List[NotificationIntent]:
        intents = self.reconciler.reconcile(previous, saved, actor_id)
        apply_reminder_policy(saved, self.reminders, now)
        self.publisher.publish_schedule(saved, correlation_id)
        for intent in intents:
            self.publisher.publish_notification(intent)
        return intents
