"""Publishes real-time events to Redis; consumed by ``RedisPubSubService``."""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

from rendezvous.core.config import settings
from rendezvous.schemas import NotificationIntent, ScheduleSnapshot

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Best-effort publisher: a Redis outage is logged and never fails the
    mutation that produced the event, because real-time delivery is only a
    shortcut to state that is already persisted.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=settings.STORE_TIMEOUT_SECONDS,
                socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
            )
        return self._client

    def _publish(self, channel: str, message: dict) -> bool:
        try:
            self._get_client().publish(channel, json.dumps(message))
        except (RedisError, OSError) as e:
            logger.warning(f"Failed to publish {message.get('type')} on '{channel}': {e}")
            return False
        logger.debug(f"Published {message.get('type')} on '{channel}'")
        return True

    def ping(self) -> bool:
        try:
            return bool(self._get_client().ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Event bus ping failed: {e}")
            return False

    def publish_notification(self, intent: NotificationIntent) -> bool:
        return self._publish(
            settings.NOTIFICATIONS_CHANNEL,
            {
                "type": "notification",
                "user_id": intent.recipient_id,
                "data": intent.model_dump(mode="json"),
            },
        )

    def publish_reminder(self, user_id: str, schedule: ScheduleSnapshot) -> bool:
        return self._publish(
            settings.NOTIFICATIONS_CHANNEL,
            {
                "type": "reminder",
                "user_id": user_id,
                "data": {
                    "schedule_id": str(schedule.id),
                    "title": schedule.title,
                    "start_time": schedule.start_time,
                    "reminder_hours": schedule.reminder_hours,
                },
            },
        )

    def publish_schedule(
        self, schedule: ScheduleSnapshot, correlation_id: Optional[str] = None
    ) -> bool:
        return self._publish(
            settings.SCHEDULES_CHANNEL,
            {
                "type": "schedule",
                "schedule_id": str(schedule.id),
                "correlation_id": correlation_id,
                "data": schedule.model_dump(mode="json"),
            },
        )


publisher = EventPublisher()


def get_publisher() -> EventPublisher:
    return publisher
