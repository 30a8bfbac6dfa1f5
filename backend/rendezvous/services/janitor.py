"""Expiry janitor - deletes invitations whose schedule has already started."""

from __future__ import annotations

import logging
from typing import Optional

from rendezvous.models.enums import INVITATION_TYPES
from rendezvous.repositories.notifications import NotificationStore

logger = logging.getLogger(__name__)


class ExpiryJanitor:
    def __init__(self, store: NotificationStore):
        self.store = store

    def sweep(self, now: int, recipient_id: Optional[str] = None) -> int:
        """
        Delete every PENDING INVITE/UPDATE whose denormalized start time is before ``now``.

        Limited to one recipient's queue when ``recipient_id`` is given (feed
        load); otherwise sweeps every queue (periodic task). Returns the number
        of notifications deleted.
        """
        expired = self.store.list_expired_pending(now, INVITATION_TYPES, recipient_id=recipient_id)
        deleted = sum(
            1 for notification in expired
            if self.store.delete(notification.recipient_id, notification.id)
        )
        if deleted:
            scope = recipient_id or "all recipients"
            logger.info(f"Expiry sweep removed {deleted} stale invitation(s) for {scope}")
        return deleted
