"""Advisory time-conflict detection over a user's committed schedules."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from rendezvous.models import ScheduleStatus
from rendezvous.repositories.schedules import ScheduleStore
from rendezvous.schemas import ScheduleSnapshot
from rendezvous.services.status_engine import resolve

logger = logging.getLogger(__name__)


def has_time_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open overlap: touching endpoints do not overlap."""
    return start1 < end2 and start2 < end1


def select_conflicts(
    schedules: Iterable[ScheduleSnapshot],
    user_id: str,
    candidate_start: int,
    candidate_end: int,
    now: int,
    exclude_schedule_id: Optional[UUID] = None,
) -> List[ScheduleSnapshot]:
    """
    Pure filter: the user's owned-or-accepted schedules overlapping the
    candidate whose status, resolved at ``now``, is not CANCELLED.

    The stored status can lag behind the clock until the overdue sweep runs,
    so an unanswered invite past its start is dropped here as well.
    """
    conflicts = [
        schedule
        for schedule in schedules
        if (exclude_schedule_id is None or schedule.id != exclude_schedule_id)
        and schedule.is_committed(user_id)
        and has_time_overlap(candidate_start, candidate_end, schedule.start_time, schedule.end_time)
        and resolve(schedule, now) != ScheduleStatus.CANCELLED
    ]
    return sorted(conflicts, key=lambda s: (s.start_time, str(s.id)))


class ConflictDetector:
    """Finds overlaps to warn about. Never blocks a write."""

    def __init__(self, store: ScheduleStore):
        self.store = store

    def find_conflicts(
        self,
        user_id: str,
        candidate_start: int,
        candidate_end: int,
        now: int,
        exclude_schedule_id: Optional[UUID] = None,
    ) -> List[ScheduleSnapshot]:
        candidates = self.store.query_by_time_range(user_id, candidate_start, candidate_end)
        conflicts = select_conflicts(
            candidates, user_id, candidate_start, candidate_end, now, exclude_schedule_id
        )
        if conflicts:
            logger.info(
                f"{len(conflicts)} conflict(s) for {user_id} in "
                f"[{candidate_start}, {candidate_end})"
            )
        return conflicts
