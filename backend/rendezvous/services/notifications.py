"""
Notification reconciliation.

Diffs the previous and the updated snapshot of a schedule to decide which
notification, if any, each participant should have pending. Emission goes
through ``NotificationStore.upsert_pending`` so replaying a reconciliation
never leaves more than one pending notification per (recipient, schedule).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from rendezvous.models import NotificationType, ResponseStatus, ScheduleStatus
from rendezvous.models.enums import INVITATION_TYPES
from rendezvous.repositories.notifications import NotificationStore
from rendezvous.schemas import NotificationIntent, ScheduleSnapshot

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("title", "description", "location", "start_time", "end_time", "participants")


@dataclass(frozen=True)
class NotificationPlan:
    """Outcome of the decision table: a type to send, a silent cleanup, or nothing."""

    type: Optional[NotificationType] = None
    silent_cleanup: bool = False

    @property
    def notify(self) -> bool:
        return self.type is not None


NO_NOTIFICATION = NotificationPlan()


def content_changed(previous: ScheduleSnapshot, updated: ScheduleSnapshot) -> bool:
    return any(getattr(previous, name) != getattr(updated, name) for name in CONTENT_FIELDS)


def plan_notifications(
    previous: Optional[ScheduleSnapshot],
    updated: ScheduleSnapshot,
    automatic: bool = False,
) -> NotificationPlan:
    """First matching row of the decision table wins."""
    if automatic and updated.status == ScheduleStatus.CANCELLED:
        return NotificationPlan(silent_cleanup=True)

    if updated.status == ScheduleStatus.CANCELLED and (
        previous is None or previous.status != ScheduleStatus.CANCELLED
    ):
        return NotificationPlan(type=NotificationType.CANCELLED)

    if (
        updated.participants
        and updated.status == ScheduleStatus.PENDING
        and all(
            updated.participant_status.get(user_id, ResponseStatus.PENDING) == ResponseStatus.PENDING
            for user_id in updated.participants
        )
    ):
        # A brand new schedule announces itself as an invite
        return NotificationPlan(
            type=NotificationType.INVITE if previous is None else NotificationType.UPDATE
        )

    if previous is not None and content_changed(previous, updated):
        return NotificationPlan(type=NotificationType.UPDATE)

    if (
        previous is not None
        and updated.status == ScheduleStatus.PENDING
        and previous.status != ScheduleStatus.PENDING
    ):
        return NotificationPlan(type=NotificationType.UPDATE)

    return NO_NOTIFICATION


class NotificationReconciler:
    def __init__(self, store: NotificationStore):
        self.store = store

    def reconcile(
        self,
        previous: Optional[ScheduleSnapshot],
        updated: ScheduleSnapshot,
        actor_id: str,
        automatic: bool = False,
    ) -> List[NotificationIntent]:
        """
        Bring the participants' pending notifications in line with ``updated``.

        Returns the intents that were written (empty for no-op and for the
        silent cleanup of an automatic cancellation).
        """
        if updated.id is None:
            raise ValueError("Cannot reconcile notifications for an unsaved schedule")

        plan = plan_notifications(previous, updated, automatic=automatic)

        if plan.silent_cleanup:
            removed = self.remove_pending_invitations(updated.id)
            logger.info(
                f"Schedule {updated.id} cancelled automatically, "
                f"removed {removed} pending invitation(s) silently"
            )
            return []

        if previous is not None:
            dropped = [u for u in previous.participants if u not in updated.participants]
            if dropped:
                self.remove_pending_for(updated.id, dropped)

        if not plan.notify:
            return []

        intents = [
            NotificationIntent(
                recipient_id=user_id,
                sender_id=actor_id,
                schedule_id=updated.id,
                type=plan.type,
                title=updated.title,
                start_time=updated.start_time,
            )
            for user_id in updated.participants
            if user_id != actor_id
        ]
        for intent in intents:
            self.store.upsert_pending(intent)
        logger.info(
            f"Schedule {updated.id}: {plan.type.value} notification for "
            f"{len(intents)} participant(s)"
        )
        return intents

    def remove_pending_invitations(self, schedule_id) -> int:
        """Delete every pending INVITE/UPDATE about the schedule, for every recipient."""
        removed = 0
        for notification in self.store.list_pending_for_schedule(schedule_id, INVITATION_TYPES):
            if self.store.delete(notification.recipient_id, notification.id):
                removed += 1
        return removed

    def remove_pending_for(self, schedule_id, recipient_ids: Iterable[str]) -> int:
        removed = 0
        for recipient_id in recipient_ids:
            for notification in self.store.list_pending(recipient_id, schedule_id):
                if self.store.delete(recipient_id, notification.id):
                    removed += 1
        if removed:
            logger.info(f"Schedule {schedule_id}: removed {removed} notification(s) of dropped participants")
        return removed
