from __future__ import annotations

import logging
from enum import Enum
from typing import Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class ScheduleStatus(str, Enum):
    PENDING = "PENDING"  # waiting for participant responses
    ACTIVE = "ACTIVE"  # at least one participant accepted, or no participants
    ONGOING = "ONGOING"  # between start and end
    COMPLETED = "COMPLETED"  # end has passed
    CANCELLED = "CANCELLED"  # cancelled by the owner or automatically


class ResponseStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class NotificationType(str, Enum):
    INVITE = "INVITE"
    UPDATE = "UPDATE"
    CANCELLED = "CANCELLED"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    READ = "READ"


# Notification types the expiry sweep and silent cleanup may remove
INVITATION_TYPES = frozenset({NotificationType.INVITE, NotificationType.UPDATE})

# Legacy spellings still found in older rows
_ALIASES = {
    "SCHEDULE_INVITE": "INVITE",
    "SCHEDULE_UPDATE": "UPDATE",
    "SCHEDULE_CANCELLED": "CANCELLED",
    "NEEDS_ACTION": "PENDING",
}


def parse_enum(enum_cls: Type[E], raw: object, default: E) -> E:
    """
    Parse a stored value into ``enum_cls`` without ever raising.

    Unrecognized values map to ``default``; the fallback is logged so bad
    rows show up instead of disappearing.
    """
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, str):
        key = raw.strip().upper()
        key = _ALIASES.get(key, key)
        try:
            return enum_cls(key)
        except ValueError:
            pass
    logger.warning(
        f"Unrecognized {enum_cls.__name__} value {raw!r}, falling back to {default.value}"
    )
    return default
