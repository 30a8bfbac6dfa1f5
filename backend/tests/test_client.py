"""Tests for the optimistic schedule API client, run against the app in-process."""

from uuid import UUID

import httpx
import pytest

from rendezvous.client import ScheduleFeedClient
from rendezvous.core.clock import HOUR_MS, now_ms
from rendezvous.core.security import create_access_token
from rendezvous.models import ResponseStatus, ScheduleStatus

from conftest import BOB, CAROL, OWNER


@pytest.fixture
def schedule_id(client, auth_headers):
    start = now_ms() + 24 * HOUR_MS
    response = client.post(
        "/api/v1/schedules/",
        json={
            "title": "Planning",
            "start_time": start,
            "end_time": start + HOUR_MS,
            "participant_ids": [BOB, CAROL],
        },
        headers=auth_headers(OWNER),
    )
    assert response.status_code == 201
    return UUID(response.json()["schedule"]["id"])


@pytest.fixture
def feed_client(client):
    def _feed_client(user_id: str) -> ScheduleFeedClient:
        return ScheduleFeedClient(client, user_id, create_access_token(user_id))

    return _feed_client


class TestScheduleFeedClient:
    def test_refresh_fills_feed(self, feed_client, schedule_id):
        bob = feed_client(BOB)

        assert [s.id for s in bob.refresh()] == [schedule_id]
        assert not bob.feed.is_provisional(schedule_id)

    def test_respond_settles_with_server_copy(self, feed_client, schedule_id):
        bob = feed_client(BOB)
        bob.refresh()

        result = bob.respond(schedule_id, accept=True)

        mirrored = bob.feed.get(schedule_id)
        assert mirrored == result.schedule
        assert mirrored.participant_status[BOB] == ResponseStatus.ACCEPTED
        assert mirrored.status == ScheduleStatus.ACTIVE
        assert not bob.feed.is_provisional(schedule_id)

    def test_rejected_write_is_rolled_back(self, feed_client, schedule_id):
        owner = feed_client(OWNER)
        before = owner.refresh()[0]

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            owner.respond(schedule_id, accept=True)

        assert exc_info.value.response.status_code == 409
        assert owner.feed.get(schedule_id) == before
        assert not owner.feed.is_provisional(schedule_id)

    def test_cancel_fetches_unknown_schedule(self, feed_client, schedule_id):
        owner = feed_client(OWNER)

        cancelled = owner.cancel(schedule_id)

        assert cancelled.status == ScheduleStatus.CANCELLED
        assert owner.feed.get(schedule_id).status == ScheduleStatus.CANCELLED

    def test_pushed_schedule_event_settles_matching_write(self, feed_client, schedule_id, publisher):
        bob = feed_client(BOB)
        bob.refresh()
        bob.respond(schedule_id, accept=False)
        pushed = publisher.of_type("schedule")[-1]

        assert pushed["correlation_id"] is not None
        assert bob.handle_message(pushed) is True
        assert bob.feed.get(schedule_id).participant_status[BOB] == ResponseStatus.DECLINED
        assert bob.handle_message({"type": "notification", "data": {}}) is False
