"""Schedule store - database operations for schedules and their participants."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, or_, update
from sqlmodel import Session, select

from rendezvous.core.clock import now_ms
from rendezvous.core.exceptions import NotFoundError, StaleWriteError
from rendezvous.models import ResponseStatus, Schedule, ScheduleParticipant, ScheduleStatus
from rendezvous.models.enums import parse_enum
from rendezvous.repositories.base import translate_store_errors
from rendezvous.schemas import ScheduleSnapshot

logger = logging.getLogger(__name__)


def _to_snapshot(row: Schedule, participants: Iterable[ScheduleParticipant]) -> ScheduleSnapshot:
    ordered = sorted(participants, key=lambda p: p.position)
    return ScheduleSnapshot(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description or "",
        location=row.location or "",
        start_time=row.start_time,
        end_time=row.end_time,
        reminder_hours=row.reminder_hours,
        allow_reschedule=row.allow_reschedule,
        participants=[p.user_id for p in ordered],
        participant_status={
            p.user_id: parse_enum(ResponseStatus, p.response_status, ResponseStatus.PENDING)
            for p in ordered
        },
        status=parse_enum(ScheduleStatus, row.status, ScheduleStatus.PENDING),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _participant_rows(snapshot: ScheduleSnapshot, schedule_id: UUID) -> List[ScheduleParticipant]:
    return [
        ScheduleParticipant(
            schedule_id=schedule_id,
            user_id=user_id,
            position=position,
            response_status=snapshot.participant_status.get(
                user_id, ResponseStatus.PENDING
            ).value,
        )
        for position, user_id in enumerate(snapshot.participants)
    ]


class ScheduleStore:
    """Keyed storage for schedules, reachable by id, owner, membership and time range."""

    def __init__(self, session: Session):
        self.session = session

    def _load_participants(self, schedule_ids: List[UUID]) -> Dict[UUID, List[ScheduleParticipant]]:
        grouped: Dict[UUID, List[ScheduleParticipant]] = defaultdict(list)
        if not schedule_ids:
            return grouped
        rows = self.session.exec(
            select(ScheduleParticipant).where(ScheduleParticipant.schedule_id.in_(schedule_ids))
        ).all()
        for row in rows:
            grouped[row.schedule_id].append(row)
        return grouped

    def _snapshots(self, rows: List[Schedule]) -> List[ScheduleSnapshot]:
        participants = self._load_participants([row.id for row in rows])
        snapshots = [_to_snapshot(row, participants.get(row.id, [])) for row in rows]
        return sorted(snapshots, key=lambda s: (s.start_time, str(s.id)))

    def get(self, schedule_id: UUID) -> ScheduleSnapshot:
        with translate_store_errors(self.session, "schedule get"):
            row = self.session.exec(
                select(Schedule)
                .where(Schedule.id == schedule_id)
                .execution_options(populate_existing=True)
            ).one_or_none()
            if row is None:
                raise NotFoundError("Schedule", schedule_id)
            participants = self._load_participants([row.id]).get(row.id, [])
            return _to_snapshot(row, participants)

    def create(self, snapshot: ScheduleSnapshot) -> ScheduleSnapshot:
        """Persist a new schedule and assign its id."""
        now = now_ms()
        schedule_id = snapshot.id or uuid4()
        with translate_store_errors(self.session, "schedule create"):
            row = Schedule(
                id=schedule_id,
                owner_id=snapshot.owner_id,
                title=snapshot.title,
                description=snapshot.description,
                location=snapshot.location,
                start_time=snapshot.start_time,
                end_time=snapshot.end_time,
                reminder_hours=snapshot.reminder_hours,
                allow_reschedule=snapshot.allow_reschedule,
                status=snapshot.status.value,
                version=1,
                created_at=snapshot.created_at or now,
                updated_at=now,
            )
            self.session.add(row)
            for participant in _participant_rows(snapshot, schedule_id):
                self.session.add(participant)
            self.session.commit()

        logger.info(
            f"Schedule {schedule_id} created by {snapshot.owner_id} "
            f"with {len(snapshot.participants)} participants, status {snapshot.status.value}"
        )
        return snapshot.model_copy(
            update={
                "id": schedule_id,
                "version": 1,
                "created_at": row.created_at,
                "updated_at": now,
            }
        )

    def update(self, snapshot: ScheduleSnapshot) -> ScheduleSnapshot:
        """
        Compare-and-swap write of a full snapshot.

        Succeeds only if the stored version still equals ``snapshot.version``;
        the participant rows are replaced in the same transaction.
        """
        if snapshot.id is None:
            raise NotFoundError("Schedule", None)

        now = now_ms()
        next_version = snapshot.version + 1
        with translate_store_errors(self.session, "schedule update"):
            result = self.session.exec(
                update(Schedule)
                .where(Schedule.id == snapshot.id, Schedule.version == snapshot.version)
                .values(
                    title=snapshot.title,
                    description=snapshot.description,
                    location=snapshot.location,
                    start_time=snapshot.start_time,
                    end_time=snapshot.end_time,
                    reminder_hours=snapshot.reminder_hours,
                    allow_reschedule=snapshot.allow_reschedule,
                    status=snapshot.status.value,
                    version=next_version,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                exists = self.session.exec(
                    select(Schedule.id).where(Schedule.id == snapshot.id)
                ).first()
                if exists is None:
                    raise NotFoundError("Schedule", snapshot.id)
                logger.info(
                    f"Stale write rejected for schedule {snapshot.id} at version {snapshot.version}"
                )
                raise StaleWriteError("Schedule", snapshot.id, snapshot.version)

            self.session.exec(
                delete(ScheduleParticipant).where(ScheduleParticipant.schedule_id == snapshot.id)
            )
            for participant in _participant_rows(snapshot, snapshot.id):
                self.session.add(participant)
            self.session.commit()

        return snapshot.model_copy(update={"version": next_version, "updated_at": now})

    def _membership_filter(self, user_id: str):
        member_subquery = select(ScheduleParticipant.schedule_id).where(
            ScheduleParticipant.user_id == user_id
        )
        return or_(Schedule.owner_id == user_id, Schedule.id.in_(member_subquery))

    def query_by_time_range(self, user_id: str, start: int, end: int) -> List[ScheduleSnapshot]:
        """Schedules the user owns or is invited to that overlap ``[start, end)``."""
        with translate_store_errors(self.session, "schedule range query"):
            rows = self.session.exec(
                select(Schedule).where(
                    self._membership_filter(user_id),
                    Schedule.start_time < end,
                    Schedule.end_time > start,
                )
            ).all()
            return self._snapshots(list(rows))

    def query_all_for_user(self, user_id: str) -> List[ScheduleSnapshot]:
        with translate_store_errors(self.session, "schedule user query"):
            rows = self.session.exec(
                select(Schedule).where(self._membership_filter(user_id))
            ).all()
            return self._snapshots(list(rows))

    def query_possibly_stale(self, now: int) -> List[ScheduleSnapshot]:
        """Schedules whose cached status may no longer match the clock."""
        with translate_store_errors(self.session, "schedule stale query"):
            rows = self.session.exec(
                select(Schedule).where(
                    or_(
                        and_(Schedule.status.in_(["PENDING", "ACTIVE"]), Schedule.start_time <= now),
                        and_(Schedule.status == "ONGOING", Schedule.end_time < now),
                    )
                )
            ).all()
            return self._snapshots(list(rows))
