"""Tests for the reminder side effects of schedule status."""

import pytest

from rendezvous.core.clock import HOUR_MS
from rendezvous.models import ScheduleStatus
from rendezvous.services.reminders import apply_reminder_policy, reminder_fire_time

from conftest import BOB, CAROL, NOW, OWNER, START


@pytest.fixture
def active(schedule_store, make_snapshot):
    return schedule_store.create(
        make_snapshot(status=ScheduleStatus.ACTIVE, responses={BOB: "ACCEPTED"}, reminder_hours=1)
    )


class TestReminderPolicy:
    def test_fire_time_uses_lead_hours(self, make_snapshot):
        assert reminder_fire_time(make_snapshot(reminder_hours=3)) == START - 3 * HOUR_MS

    def test_active_arms_owner_and_accepted(self, reminders, active):
        apply_reminder_policy(active, reminders, NOW)

        assert reminders.get(active.id, OWNER).fire_at == START - HOUR_MS
        assert reminders.get(active.id, BOB).fire_at == START - HOUR_MS
        carol = reminders.get(active.id, CAROL)
        assert carol is None or carol.fire_at is None

    def test_active_clears_dismissed_flag(self, reminders, active):
        reminders.dismiss(active.id, BOB)

        apply_reminder_policy(active, reminders, NOW)

        assert reminders.get(active.id, BOB).dismissed is False

    def test_lead_time_in_the_past_does_not_arm(self, reminders, active):
        apply_reminder_policy(active, reminders, START - HOUR_MS + 1)

        assert reminders.get(active.id, OWNER) is None

    def test_cancelled_disarms_everyone(self, reminders, active):
        apply_reminder_policy(active, reminders, NOW)

        apply_reminder_policy(
            active.model_copy(update={"status": ScheduleStatus.CANCELLED}), reminders, NOW
        )

        assert reminders.due(START) == []

    def test_pending_disarms_everyone(self, reminders, active):
        apply_reminder_policy(active, reminders, NOW)

        apply_reminder_policy(
            active.model_copy(update={"status": ScheduleStatus.PENDING}), reminders, NOW
        )

        assert reminders.due(START) == []

    def test_ongoing_leaves_reminders_alone(self, reminders, active):
        apply_reminder_policy(active, reminders, NOW)

        apply_reminder_policy(
            active.model_copy(update={"status": ScheduleStatus.ONGOING}), reminders, START
        )

        assert reminders.get(active.id, BOB).fire_at == START - HOUR_MS
