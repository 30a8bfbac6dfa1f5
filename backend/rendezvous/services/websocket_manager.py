"""
WebSocket connection managers for real-time delivery.

``ConnectionManager`` fans notification messages out to every socket a user
has open. ``ScheduleSubscriptionManager`` tracks live views of a single
schedule and keeps at most one subscription per (viewer, schedule).
"""

import asyncio
import logging
from typing import Dict, Optional, Set, Tuple
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages per-user WebSocket connections for notification delivery."""

    def __init__(self):
        # {user_id: {websocket1, websocket2, ...}}
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        async with self._lock:
            self.active_connections.setdefault(user_id, set()).add(websocket)
        logger.info(
            f"WebSocket connected: user_id={user_id}, "
            f"total_connections={len(self.active_connections[user_id])}"
        )

    async def disconnect(self, websocket: WebSocket, user_id: str):
        async with self._lock:
            sockets = self.active_connections.get(user_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self.active_connections[user_id]
        logger.info(f"WebSocket disconnected: user_id={user_id}")

    async def send_personal_message(self, message: dict, user_id: str):
        """Send to every socket of the user; sockets that fail are dropped."""
        connections = list(self.active_connections.get(user_id, ()))
        if not connections:
            logger.debug(f"No active connections for user {user_id}")
            return

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending message to user {user_id}: {e}")
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                sockets = self.active_connections.get(user_id, set())
                for ws in disconnected:
                    sockets.discard(ws)
                if not sockets:
                    self.active_connections.pop(user_id, None)

    def get_connection_count(self, user_id: str) -> int:
        return len(self.active_connections.get(user_id, set()))


SubscriptionKey = Tuple[str, UUID]


class ScheduleSubscriptionManager:
    """Live schedule views, one per (viewer_id, schedule_id)."""

    def __init__(self):
        self.subscriptions: Dict[SubscriptionKey, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, websocket: WebSocket, viewer_id: str, schedule_id: UUID):
        """Accept the socket, closing any earlier subscription for the same key first."""
        key = (viewer_id, schedule_id)
        async with self._lock:
            previous = self.subscriptions.pop(key, None)
        if previous is not None and previous is not websocket:
            try:
                await previous.close(code=1000)
            except Exception as e:
                logger.debug(f"Previous subscription for {key} already closed: {e}")
            logger.info(f"Replaced subscription of {viewer_id} to schedule {schedule_id}")

        await websocket.accept()
        async with self._lock:
            self.subscriptions[key] = websocket

    async def unsubscribe(self, websocket: WebSocket, viewer_id: str, schedule_id: UUID):
        """Drop the subscription if ``websocket`` still owns it."""
        key = (viewer_id, schedule_id)
        async with self._lock:
            if self.subscriptions.get(key) is websocket:
                del self.subscriptions[key]
                logger.info(f"{viewer_id} stopped viewing schedule {schedule_id}")

    def get(self, viewer_id: str, schedule_id: UUID) -> Optional[WebSocket]:
        return self.subscriptions.get((viewer_id, schedule_id))

    async def send_schedule_update(self, schedule_id: UUID, message: dict):
        async with self._lock:
            targets = [
                (key, ws) for key, ws in self.subscriptions.items() if key[1] == schedule_id
            ]
        for key, websocket in targets:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending schedule update to {key[0]}: {e}")
                await self.unsubscribe(websocket, *key)


# Global instances
manager = ConnectionManager()
schedule_subscriptions = ScheduleSubscriptionManager()
