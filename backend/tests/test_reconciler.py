"""
Tests for notification reconciliation: the decision table and its emission
through the notification store.
"""

import pytest

from rendezvous.models import NotificationType, ResponseStatus, ScheduleStatus
from rendezvous.services.notifications import NotificationReconciler, plan_notifications

from conftest import BOB, CAROL, OWNER


class TestDecisionTable:
    def test_new_schedule_is_an_invite(self, make_snapshot):
        plan = plan_notifications(None, make_snapshot())

        assert plan.type == NotificationType.INVITE

    def test_new_solo_schedule_notifies_nobody(self, make_snapshot):
        plan = plan_notifications(None, make_snapshot(participants=[], status=ScheduleStatus.ACTIVE))

        assert not plan.notify

    def test_cancellation_is_announced(self, make_snapshot):
        previous = make_snapshot(status=ScheduleStatus.ACTIVE, responses={BOB: "ACCEPTED"})
        updated = previous.model_copy(update={"status": ScheduleStatus.CANCELLED})

        assert plan_notifications(previous, updated).type == NotificationType.CANCELLED

    def test_repeated_cancellation_is_silent(self, make_snapshot):
        cancelled = make_snapshot(status=ScheduleStatus.CANCELLED)

        assert not plan_notifications(cancelled, cancelled).notify

    def test_automatic_cancellation_is_silent_cleanup(self, make_snapshot):
        previous = make_snapshot()
        updated = previous.model_copy(update={"status": ScheduleStatus.CANCELLED})

        plan = plan_notifications(previous, updated, automatic=True)

        assert plan.silent_cleanup
        assert not plan.notify

    def test_consensus_reset_is_an_update(self, make_snapshot):
        previous = make_snapshot(status=ScheduleStatus.ACTIVE, responses={BOB: "ACCEPTED"})
        updated = make_snapshot()

        assert plan_notifications(previous, updated).type == NotificationType.UPDATE

    @pytest.mark.parametrize(
        "field,value",
        [
            ("title", "Retro"),
            ("description", "changed"),
            ("location", "Room 5"),
            ("start_time", 1),
            ("end_time", 2),
        ],
    )
    def test_content_change_is_an_update(self, make_snapshot, field, value):
        previous = make_snapshot(status=ScheduleStatus.ACTIVE, responses={BOB: "ACCEPTED"})
        updated = previous.model_copy(update={field: value})

        assert plan_notifications(previous, updated).type == NotificationType.UPDATE

    def test_single_response_sends_nothing(self, make_snapshot):
        previous = make_snapshot()
        updated = previous.with_response(BOB, ResponseStatus.ACCEPTED).model_copy(
            update={"status": ScheduleStatus.ACTIVE}
        )

        assert not plan_notifications(previous, updated).notify

    def test_falling_back_to_pending_is_an_update(self, make_snapshot):
        previous = make_snapshot(status=ScheduleStatus.ACTIVE, responses={BOB: "ACCEPTED"})
        updated = make_snapshot(status=ScheduleStatus.PENDING, responses={BOB: "DECLINED"})

        assert plan_notifications(previous, updated).type == NotificationType.UPDATE


class TestReconciler:
    @pytest.fixture
    def reconciler(self, notification_store):
        return NotificationReconciler(notification_store)

    @pytest.fixture
    def saved(self, schedule_store, make_snapshot):
        return schedule_store.create(make_snapshot())

    def test_emits_to_participants_but_not_actor(self, reconciler, notification_store, saved):
        intents = reconciler.reconcile(None, saved, OWNER)

        assert sorted(i.recipient_id for i in intents) == [BOB, CAROL]
        assert notification_store.list_for_recipient(OWNER) == []

    def test_replay_is_idempotent(self, reconciler, notification_store, saved):
        reconciler.reconcile(None, saved, OWNER)
        reconciler.reconcile(None, saved, OWNER)

        for user_id in (BOB, CAROL):
            assert len(notification_store.list_pending(user_id, saved.id)) == 1

    def test_update_replaces_pending_invite(self, reconciler, notification_store, saved):
        reconciler.reconcile(None, saved, OWNER)
        edited = saved.model_copy(update={"title": "Retro"})

        reconciler.reconcile(saved, edited, OWNER)

        pending = notification_store.list_pending(BOB, saved.id)
        assert [(n.type, n.title) for n in pending] == [("UPDATE", "Retro")]

    def test_silent_cleanup_removes_invitations_everywhere(self, reconciler, notification_store, saved):
        reconciler.reconcile(None, saved, OWNER)
        expired = saved.model_copy(update={"status": ScheduleStatus.CANCELLED})

        intents = reconciler.reconcile(saved, expired, OWNER, automatic=True)

        assert intents == []
        assert notification_store.list_pending_for_schedule(saved.id) == []

    def test_dropped_participant_loses_pending_invite(self, reconciler, notification_store, saved):
        reconciler.reconcile(None, saved, OWNER)
        edited = saved.model_copy(
            update={"participants": [BOB], "participant_status": {BOB: ResponseStatus.PENDING}}
        )

        reconciler.reconcile(saved, edited, OWNER)

        assert notification_store.list_pending(CAROL, saved.id) == []
        assert len(notification_store.list_pending(BOB, saved.id)) == 1

    def test_unsaved_schedule_is_rejected(self, reconciler, make_snapshot):
        with pytest.raises(ValueError):
            reconciler.reconcile(None, make_snapshot(), OWNER)
