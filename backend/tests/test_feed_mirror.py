"""Tests for the client-side feed mirror."""

from dataclasses import dataclass

import pytest

from rendezvous.services.feed_mirror import FeedMirror


@dataclass(frozen=True)
class Item:
    id: str
    start_time: int
    title: str = ""


@pytest.fixture
def mirror():
    return FeedMirror(sort_key=lambda item: item.start_time)


class TestFeedMirror:
    def test_upsert_merges_by_key(self, mirror):
        mirror.apply_upsert(Item("a", 2, "first"))
        mirror.apply_upsert(Item("a", 2, "second"))

        assert mirror.items() == [Item("a", 2, "second")]

    def test_items_are_sorted(self, mirror):
        mirror.apply_upsert(Item("late", 5))
        mirror.apply_upsert(Item("early", 1))

        assert [item.id for item in mirror.items()] == ["early", "late"]

    def test_delete(self, mirror):
        mirror.apply_upsert(Item("a", 1))
        mirror.apply_delete("a")
        mirror.apply_delete("missing")

        assert len(mirror) == 0

    def test_server_event_settles_local_write(self, mirror):
        mirror.apply_local(Item("a", 1, "local"), correlation_id="c1")
        assert mirror.is_provisional("a")

        mirror.apply_server_event(Item("a", 1, "server"), correlation_id="c1")

        assert mirror.items() == [Item("a", 1, "server")]
        assert not mirror.is_provisional("a")
        assert mirror.rollback("c1") is False

    def test_rollback_restores_server_copy(self, mirror):
        mirror.apply_upsert(Item("a", 1, "server"))
        mirror.apply_local(Item("a", 1, "local"), correlation_id="c1")

        assert mirror.rollback("c1") is True
        assert mirror.get("a") == Item("a", 1, "server")

    def test_rollback_of_local_create_removes_it(self, mirror):
        mirror.apply_local(Item("new", 1), correlation_id="c1")

        mirror.rollback("c1")

        assert "new" not in mirror

    def test_unrelated_server_event_keeps_local_write_visible(self, mirror):
        mirror.apply_upsert(Item("a", 1, "v1"))
        mirror.apply_local(Item("a", 1, "local"), correlation_id="c1")

        mirror.apply_server_event(Item("a", 1, "v2"))

        assert mirror.get("a").title == "local"
        mirror.rollback("c1")
        assert mirror.get("a").title == "v2"

    def test_rollback_of_older_write_keeps_newer_one(self, mirror):
        mirror.apply_upsert(Item("a", 1, "server"))
        mirror.apply_local(Item("a", 1, "local-1"), correlation_id="c1")
        mirror.apply_local(Item("a", 1, "local-2"), correlation_id="c2")

        mirror.rollback("c1")

        assert mirror.get("a").title == "local-2"
        assert mirror.is_provisional("a")

        mirror.rollback("c2")

        assert mirror.get("a").title == "server"
        assert not mirror.is_provisional("a")

    def test_rollback_of_newer_write_shows_older_one(self, mirror):
        mirror.apply_upsert(Item("a", 1, "server"))
        mirror.apply_local(Item("a", 1, "local-1"), correlation_id="c1")
        mirror.apply_local(Item("a", 1, "local-2"), correlation_id="c2")

        mirror.rollback("c2")
        assert mirror.get("a").title == "local-1"

        mirror.apply_server_event(Item("a", 1, "accepted-1"), correlation_id="c1")
        assert mirror.get("a").title == "accepted-1"
        assert mirror.rollback("c1") is False

    def test_repeated_correlation_id_replaces_its_own_write(self, mirror):
        mirror.apply_local(Item("a", 1, "draft"), correlation_id="c1")
        mirror.apply_local(Item("a", 1, "final"), correlation_id="c1")

        mirror.rollback("c1")

        assert "a" not in mirror

    def test_server_delete_drops_pending_writes(self, mirror):
        mirror.apply_upsert(Item("a", 1, "server"))
        mirror.apply_local(Item("a", 1, "local"), correlation_id="c1")

        mirror.apply_delete("a")

        assert "a" not in mirror
        assert mirror.rollback("c1") is False
