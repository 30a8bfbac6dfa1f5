"""
Unit tests for the status engine.

Rules are checked in priority order, then the properties that must hold for
any clock value.
"""

import pytest

from rendezvous.models import ResponseStatus, ScheduleStatus
from rendezvous.services.status_engine import ResolutionRule, resolve, resolve_with_rule

from conftest import END, NOW, START


class TestResolutionRules:
    def test_cancelled_is_sticky(self, make_snapshot):
        schedule = make_snapshot(
            status=ScheduleStatus.CANCELLED, responses={"user-b": "ACCEPTED", "user-c": "ACCEPTED"}
        )

        for now in (NOW, START, END, END + 1):
            assert resolve(schedule, now) == ScheduleStatus.CANCELLED

    def test_pending_past_start_auto_cancels(self, make_snapshot):
        schedule = make_snapshot(status=ScheduleStatus.PENDING)

        resolution = resolve_with_rule(schedule, START + 1)

        assert resolution.status == ScheduleStatus.CANCELLED
        assert resolution.rule == ResolutionRule.DEADLINE_EXPIRED
        assert resolution.automatic_cancellation

    def test_pending_exactly_at_start_is_not_expired(self, make_snapshot):
        schedule = make_snapshot(status=ScheduleStatus.PENDING)

        assert resolve(schedule, START) == ScheduleStatus.ONGOING

    def test_completed_after_end(self, make_snapshot):
        schedule = make_snapshot(status=ScheduleStatus.ACTIVE, responses={"user-b": "ACCEPTED"})

        assert resolve(schedule, END + 1) == ScheduleStatus.COMPLETED

    @pytest.mark.parametrize("now", [START, START + 1, END])
    def test_ongoing_within_bounds(self, make_snapshot, now):
        schedule = make_snapshot(status=ScheduleStatus.ACTIVE, responses={"user-b": "ACCEPTED"})

        assert resolve(schedule, now) == ScheduleStatus.ONGOING

    def test_solo_schedule_is_active(self, make_snapshot):
        schedule = make_snapshot(participants=[])

        resolution = resolve_with_rule(schedule, NOW)

        assert resolution.status == ScheduleStatus.ACTIVE
        assert resolution.rule == ResolutionRule.SOLO

    def test_all_declined_auto_cancels(self, make_snapshot):
        schedule = make_snapshot(responses={"user-b": "DECLINED", "user-c": "DECLINED"})

        resolution = resolve_with_rule(schedule, NOW)

        assert resolution.status == ScheduleStatus.CANCELLED
        assert resolution.automatic_cancellation

    def test_any_accepted_is_active(self, make_snapshot):
        schedule = make_snapshot(responses={"user-b": "ACCEPTED"})

        assert resolve(schedule, NOW) == ScheduleStatus.ACTIVE

    def test_declined_and_pending_stays_pending(self, make_snapshot):
        schedule = make_snapshot(responses={"user-b": "DECLINED"})

        assert resolve(schedule, NOW) == ScheduleStatus.PENDING

    def test_cached_status_is_not_trusted(self, make_snapshot):
        """An ACTIVE cache with nobody accepting anymore resolves back to PENDING."""
        schedule = make_snapshot(status=ScheduleStatus.ACTIVE)

        assert resolve(schedule, NOW) == ScheduleStatus.PENDING

    def test_owner_cancellation_is_not_automatic(self, make_snapshot):
        schedule = make_snapshot(status=ScheduleStatus.CANCELLED)

        assert not resolve_with_rule(schedule, NOW).automatic_cancellation


class TestPurity:
    def test_resolve_does_not_mutate(self, make_snapshot):
        schedule = make_snapshot(responses={"user-b": "ACCEPTED"})
        before = schedule.model_dump()

        resolve(schedule, END + 10)

        assert schedule.model_dump() == before
        assert schedule.participant_status["user-b"] == ResponseStatus.ACCEPTED

    def test_deterministic(self, make_snapshot):
        schedule = make_snapshot(responses={"user-c": "ACCEPTED"})

        assert {resolve(schedule, NOW) for _ in range(5)} == {ScheduleStatus.ACTIVE}
