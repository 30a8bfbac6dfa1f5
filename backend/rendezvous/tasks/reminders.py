"""Celery task firing schedule reminders."""

from __future__ import annotations

import logging

from sqlmodel import Session

from rendezvous.celery_app import celery_app
from rendezvous.core.clock import now_ms
from rendezvous.core.exceptions import StoreUnavailableError
from rendezvous.db import engine
from rendezvous.services.schedules import ScheduleService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="rendezvous.tasks.reminders.fire_due_reminders", max_retries=3)
def fire_due_reminders(self) -> dict:
    """
    Publish every armed reminder whose fire time has come.

    Runs every REMINDER_POLL_SECONDS through Celery Beat. A reminder is stamped
    as fired once handled, so overlapping runs do not deliver it twice.
    """
    try:
        with Session(engine, expire_on_commit=False) as session:
            fired = ScheduleService(session).fire_due_reminders(now_ms())
    except StoreUnavailableError as exc:
        logger.warning(f"Reminder run postponed: {exc}")
        raise self.retry(exc=exc)
    return {"fired": fired}
