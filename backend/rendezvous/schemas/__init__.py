from .notification import NotificationIntent, NotificationRead, NotificationUpdate
from .schedule import (
    ConflictCheckRequest,
    ConflictSummary,
    RespondRequest,
    ScheduleDraft,
    ScheduleSnapshot,
    ScheduleWithConflicts,
)

__all__ = [
    "ConflictCheckRequest",
    "ConflictSummary",
    "NotificationIntent",
    "NotificationRead",
    "NotificationUpdate",
    "RespondRequest",
    "ScheduleDraft",
    "ScheduleSnapshot",
    "ScheduleWithConflicts",
]
