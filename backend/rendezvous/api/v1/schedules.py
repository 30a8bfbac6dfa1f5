from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from rendezvous.api.deps import CorrelationId, CurrentUserId, ServiceDep
from rendezvous.core.limiter import limiter
from rendezvous.schemas import (
    ConflictCheckRequest,
    ConflictSummary,
    RespondRequest,
    ScheduleDraft,
    ScheduleSnapshot,
    ScheduleWithConflicts,
)

router = APIRouter()


@router.get("/", response_model=List[ScheduleSnapshot], summary="List my schedules")
def list_schedules(
    service: ServiceDep,
    current_user_id: CurrentUserId,
    start: Optional[int] = Query(default=None, alias="from", description="Window start, epoch ms"),
    end: Optional[int] = Query(default=None, alias="to", description="Window end, epoch ms"),
) -> List[ScheduleSnapshot]:
    """Schedules the user owns or is invited to, with statuses resolved against the clock."""
    return service.list_for_user(current_user_id, start=start, end=end)


@router.post(
    "/",
    response_model=ScheduleWithConflicts,
    status_code=status.HTTP_201_CREATED,
    summary="Create schedule",
)
@limiter.limit("60/minute")
def create_schedule(
    request: Request,
    payload: ScheduleDraft,
    service: ServiceDep,
    current_user_id: CurrentUserId,
    correlation_id: CorrelationId,
) -> ScheduleWithConflicts:
    return service.create(current_user_id, payload, correlation_id=correlation_id)


@router.post("/conflicts", response_model=List[ConflictSummary], summary="Check a time window for conflicts")
def check_conflicts(
    payload: ConflictCheckRequest,
    service: ServiceDep,
    current_user_id: CurrentUserId,
) -> List[ConflictSummary]:
    return service.find_conflicts(
        current_user_id,
        payload.start_time,
        payload.end_time,
        exclude_schedule_id=payload.exclude_schedule_id,
    )


@router.get("/{schedule_id}", response_model=ScheduleSnapshot, summary="Get schedule")
def get_schedule(
    schedule_id: UUID,
    service: ServiceDep,
    current_user_id: CurrentUserId,
) -> ScheduleSnapshot:
    return service.get(current_user_id, schedule_id)


@router.put("/{schedule_id}", response_model=ScheduleWithConflicts, summary="Replace schedule")
@limiter.limit("60/minute")
def edit_schedule(
    request: Request,
    schedule_id: UUID,
    payload: ScheduleDraft,
    service: ServiceDep,
    current_user_id: CurrentUserId,
    correlation_id: CorrelationId,
) -> ScheduleWithConflicts:
    """Owner-only full replace. Every participant's response goes back to PENDING."""
    return service.edit(current_user_id, schedule_id, payload, correlation_id=correlation_id)


@router.post("/{schedule_id}/cancel", response_model=ScheduleSnapshot, summary="Cancel schedule")
def cancel_schedule(
    schedule_id: UUID,
    service: ServiceDep,
    current_user_id: CurrentUserId,
    correlation_id: CorrelationId,
) -> ScheduleSnapshot:
    return service.cancel(current_user_id, schedule_id, correlation_id=correlation_id)


@router.post("/{schedule_id}/respond", response_model=ScheduleWithConflicts, summary="Accept or decline")
def respond_to_schedule(
    schedule_id: UUID,
    payload: RespondRequest,
    service: ServiceDep,
    current_user_id: CurrentUserId,
    correlation_id: CorrelationId,
) -> ScheduleWithConflicts:
    return service.respond(
        current_user_id, schedule_id, payload.accept, correlation_id=correlation_id
    )


@router.get("/{schedule_id}/conflicts", response_model=List[ConflictSummary], summary="Conflicts of an invitation")
def invitation_conflicts(
    schedule_id: UUID,
    service: ServiceDep,
    current_user_id: CurrentUserId,
) -> List[ConflictSummary]:
    return service.conflicts_for_invite(current_user_id, schedule_id)


@router.post(
    "/{schedule_id}/reminder/dismiss",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dismiss reminder",
)
def dismiss_reminder(
    schedule_id: UUID,
    service: ServiceDep,
    current_user_id: CurrentUserId,
) -> None:
    service.dismiss_reminder(current_user_id, schedule_id)
