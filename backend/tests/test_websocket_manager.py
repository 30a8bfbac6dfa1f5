"""Tests for the WebSocket managers and the Redis message router."""

import asyncio
from uuid import uuid4

import pytest

from rendezvous.core.config import settings
from rendezvous.services.redis_pubsub import RedisPubSubService
from rendezvous.services.websocket_manager import ConnectionManager, ScheduleSubscriptionManager


class FakeWebSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.accepted = False
        self.closed = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def close(self, code=1000):
        self.closed = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(message)


def run(coro):
    return asyncio.run(coro)


class TestConnectionManager:
    def test_sends_to_every_socket_of_user(self):
        manager = ConnectionManager()
        first, second = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await manager.connect(first, "user-b")
            await manager.connect(second, "user-b")
            await manager.send_personal_message({"type": "notification"}, "user-b")

        run(scenario())

        assert first.sent == second.sent == [{"type": "notification"}]

    def test_failed_socket_is_dropped(self):
        manager = ConnectionManager()
        broken = FakeWebSocket(fail=True)

        async def scenario():
            await manager.connect(broken, "user-b")
            await manager.send_personal_message({"type": "notification"}, "user-b")

        run(scenario())

        assert manager.get_connection_count("user-b") == 0


class TestScheduleSubscriptionManager:
    def test_one_subscription_per_viewer_and_schedule(self):
        subscriptions = ScheduleSubscriptionManager()
        schedule_id = uuid4()
        old, new = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await subscriptions.subscribe(old, "user-b", schedule_id)
            await subscriptions.subscribe(new, "user-b", schedule_id)
            await subscriptions.send_schedule_update(schedule_id, {"type": "schedule"})

        run(scenario())

        assert old.closed
        assert old.sent == []
        assert new.sent == [{"type": "schedule"}]
        assert subscriptions.get("user-b", schedule_id) is new

    def test_stale_unsubscribe_keeps_newer_view(self):
        subscriptions = ScheduleSubscriptionManager()
        schedule_id = uuid4()
        old, new = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await subscriptions.subscribe(old, "user-b", schedule_id)
            await subscriptions.subscribe(new, "user-b", schedule_id)
            await subscriptions.unsubscribe(old, "user-b", schedule_id)

        run(scenario())

        assert subscriptions.get("user-b", schedule_id) is new

    def test_other_viewers_are_independent(self):
        subscriptions = ScheduleSubscriptionManager()
        schedule_id = uuid4()
        bob, carol = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await subscriptions.subscribe(bob, "user-b", schedule_id)
            await subscriptions.subscribe(carol, "user-c", schedule_id)
            await subscriptions.send_schedule_update(uuid4(), {"type": "schedule"})

        run(scenario())

        assert not bob.closed and not carol.closed
        assert bob.sent == carol.sent == []


class TestRedisDispatch:
    @pytest.fixture
    def pubsub(self):
        return RedisPubSubService(ConnectionManager(), ScheduleSubscriptionManager())

    def test_notification_goes_to_recipient(self, pubsub):
        socket = FakeWebSocket()

        async def scenario():
            await pubsub.connections.connect(socket, "user-b")
            await pubsub.dispatch(
                settings.NOTIFICATIONS_CHANNEL,
                {"type": "notification", "user_id": "user-b", "data": {"title": "Planning"}},
            )

        run(scenario())

        assert socket.sent == [{"type": "notification", "data": {"title": "Planning"}}]

    def test_schedule_update_goes_to_viewers(self, pubsub):
        socket = FakeWebSocket()
        schedule_id = uuid4()

        async def scenario():
            await pubsub.subscriptions.subscribe(socket, "user-b", schedule_id)
            await pubsub.dispatch(
                settings.SCHEDULES_CHANNEL,
                {"type": "schedule", "schedule_id": str(schedule_id), "correlation_id": "c1", "data": {}},
            )

        run(scenario())

        assert socket.sent == [{"type": "schedule", "correlation_id": "c1", "data": {}}]
