"""
Redis Pub/Sub service for real-time delivery.
Listens to the notification and schedule channels and routes messages to WebSocket clients.
"""

import asyncio
import json
import logging
from typing import Optional
from uuid import UUID

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from rendezvous.core.config import settings
from rendezvous.services.websocket_manager import (
    ConnectionManager,
    ScheduleSubscriptionManager,
    manager,
    schedule_subscriptions,
)

logger = logging.getLogger(__name__)


class RedisPubSubService:
    """Redis Pub/Sub listener feeding the WebSocket managers."""

    def __init__(
        self,
        connections: ConnectionManager = manager,
        subscriptions: ScheduleSubscriptionManager = schedule_subscriptions,
    ):
        self.connections = connections
        self.subscriptions = subscriptions
        self.redis: Optional[aioredis.Redis] = None
        self.pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def channels(self) -> tuple:
        return (settings.NOTIFICATIONS_CHANNEL, settings.SCHEDULES_CHANNEL)

    async def connect(self):
        try:
            self.redis = aioredis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
            )
            self.pubsub = self.redis.pubsub()
            await self.pubsub.subscribe(*self.channels)
            logger.info(f"Redis Pub/Sub connected and subscribed to {self.channels}")
            self._listener_task = asyncio.create_task(self._listen())
        except Exception as e:
            logger.error(f"Failed to connect to Redis Pub/Sub: {e}")
            raise

    async def disconnect(self):
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        if self.pubsub:
            await self.pubsub.unsubscribe(*self.channels)
            await self.pubsub.close()

        if self.redis:
            await self.redis.close()

        logger.info("Redis Pub/Sub disconnected")

    async def dispatch(self, channel: str, payload: dict):
        """Route one decoded message to the sockets interested in it."""
        if channel == settings.NOTIFICATIONS_CHANNEL:
            user_id = payload.get("user_id")
            if not user_id:
                logger.warning(f"Notification message without user_id: {payload.get('type')}")
                return
            await self.connections.send_personal_message(
                message={"type": payload.get("type", "notification"), "data": payload.get("data")},
                user_id=user_id,
            )
        elif channel == settings.SCHEDULES_CHANNEL:
            schedule_id = UUID(payload["schedule_id"])
            await self.subscriptions.send_schedule_update(
                schedule_id,
                {
                    "type": "schedule",
                    "correlation_id": payload.get("correlation_id"),
                    "data": payload.get("data"),
                },
            )

    async def _listen(self):
        logger.info("Starting Redis Pub/Sub listener...")
        try:
            async for message in self.pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self.dispatch(message["channel"], json.loads(message["data"]))
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Redis Pub/Sub listener cancelled")
        except Exception as e:
            logger.error(f"Redis Pub/Sub listener error: {e}", exc_info=True)


# Global instance
redis_pubsub = RedisPubSubService()
