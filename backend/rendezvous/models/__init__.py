from .enums import (
    NotificationStatus,
    NotificationType,
    ResponseStatus,
    ScheduleStatus,
)
from .notification import Notification
from .reminder import Reminder
from .schedule import Schedule, ScheduleParticipant

__all__ = [
    "Notification",
    "NotificationStatus",
    "NotificationType",
    "Reminder",
    "ResponseStatus",
    "Schedule",
    "ScheduleParticipant",
    "ScheduleStatus",
]
