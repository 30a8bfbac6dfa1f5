"""Celery application configuration."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import Celery

from rendezvous.core.config import settings
from rendezvous.core.logging import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

celery_app = Celery(
    "rendezvous",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["rendezvous.tasks.notifications", "rendezvous.tasks.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    # Sweeps are idempotent, so redelivery after a lost worker is harmless
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_retry_delay=30,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=500,
)

celery_app.conf.beat_schedule = {
    "sweep-expired-notifications": {
        "task": "rendezvous.tasks.notifications.sweep_expired_notifications",
        "schedule": timedelta(seconds=settings.JANITOR_INTERVAL_SECONDS),
    },
    "refresh-overdue-schedules": {
        "task": "rendezvous.tasks.notifications.refresh_overdue_schedules",
        "schedule": timedelta(seconds=settings.STATUS_SWEEP_INTERVAL_SECONDS),
    },
    "fire-due-reminders": {
        "task": "rendezvous.tasks.reminders.fire_due_reminders",
        "schedule": timedelta(seconds=settings.REMINDER_POLL_SECONDS),
    },
}

logger.info(f"Celery app configured with broker: {settings.CELERY_BROKER_URL}")
