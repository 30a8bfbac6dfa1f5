"""Reminder scheduler backed by the ``reminders`` table; fired by a periodic Celery task."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlmodel import Session, select

from rendezvous.models import Reminder
from rendezvous.repositories.base import translate_store_errors

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Arms and disarms fire-at-time reminders keyed by (schedule_id, user_id)."""

    def __init__(self, session: Session):
        self.session = session

    def _get(self, schedule_id: UUID, user_id: str) -> Reminder | None:
        return self.session.get(Reminder, (schedule_id, user_id))

    def arm(self, schedule_id: UUID, user_id: str, fire_at: int) -> None:
        """Arm (or re-arm) the reminder. Keeps the dismissed flag as it is."""
        with translate_store_errors(self.session, "reminder arm"):
            reminder = self._get(schedule_id, user_id)
            if reminder is None:
                reminder = Reminder(schedule_id=schedule_id, user_id=user_id)
            reminder.fire_at = fire_at
            reminder.fired_at = None
            self.session.add(reminder)
            self.session.commit()
        logger.debug(f"Reminder armed for {user_id} on schedule {schedule_id} at {fire_at}")

    def disarm(self, schedule_id: UUID, user_id: str) -> None:
        with translate_store_errors(self.session, "reminder disarm"):
            reminder = self._get(schedule_id, user_id)
            if reminder is None or reminder.fire_at is None:
                return
            reminder.fire_at = None
            self.session.add(reminder)
            self.session.commit()
        logger.debug(f"Reminder disarmed for {user_id} on schedule {schedule_id}")

    def clear_dismissed(self, schedule_id: UUID, user_id: str) -> None:
        """Reset the "already seen" flag so a re-armed reminder can fire again."""
        with translate_store_errors(self.session, "reminder clear dismissed"):
            reminder = self._get(schedule_id, user_id)
            if reminder is None or not reminder.dismissed:
                return
            reminder.dismissed = False
            self.session.add(reminder)
            self.session.commit()

    def dismiss(self, schedule_id: UUID, user_id: str) -> None:
        with translate_store_errors(self.session, "reminder dismiss"):
            reminder = self._get(schedule_id, user_id)
            if reminder is None:
                reminder = Reminder(schedule_id=schedule_id, user_id=user_id)
            reminder.dismissed = True
            self.session.add(reminder)
            self.session.commit()

    def get(self, schedule_id: UUID, user_id: str) -> Reminder | None:
        with translate_store_errors(self.session, "reminder get"):
            return self._get(schedule_id, user_id)

    def due(self, now: int) -> List[Reminder]:
        """Armed, undismissed, unfired reminders whose fire time has come."""
        with translate_store_errors(self.session, "reminder due query"):
            return list(
                self.session.exec(
                    select(Reminder).where(
                        Reminder.fire_at.is_not(None),
                        Reminder.fire_at <= now,
                        Reminder.fired_at.is_(None),
                        Reminder.dismissed == False,  # noqa: E712
                    )
                ).all()
            )

    def mark_fired(self, reminder: Reminder, now: int) -> None:
        with translate_store_errors(self.session, "reminder mark fired"):
            reminder.fired_at = now
            self.session.add(reminder)
            self.session.commit()

