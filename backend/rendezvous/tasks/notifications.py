"""Celery tasks keeping notification queues and cached statuses in line with the clock."""

from __future__ import annotations

import logging

from sqlmodel import Session

from rendezvous.celery_app import celery_app
from rendezvous.core.clock import now_ms
from rendezvous.core.exceptions import StoreUnavailableError
from rendezvous.db import engine
from rendezvous.repositories.notifications import NotificationStore
from rendezvous.services.janitor import ExpiryJanitor
from rendezvous.services.schedules import ScheduleService

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="rendezvous.tasks.notifications.sweep_expired_notifications",
    max_retries=3,
)
def sweep_expired_notifications(self) -> dict:
    """Delete pending invitations whose schedule has started, across all recipients."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            deleted = ExpiryJanitor(NotificationStore(session)).sweep(now_ms())
    except StoreUnavailableError as exc:
        logger.warning(f"Expiry sweep postponed: {exc}")
        raise self.retry(exc=exc)
    return {"deleted": deleted}


@celery_app.task(
    bind=True,
    name="rendezvous.tasks.notifications.refresh_overdue_schedules",
    max_retries=3,
)
def refresh_overdue_schedules(self) -> dict:
    """Persist status transitions (auto-cancel, ongoing, completed) caused by time passing."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            updated = ScheduleService(session).refresh_overdue(now_ms())
    except StoreUnavailableError as exc:
        logger.warning(f"Overdue sweep postponed: {exc}")
        raise self.retry(exc=exc)
    return {"updated": updated}
