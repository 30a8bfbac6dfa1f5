"""Notification store - per-recipient notification queues."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from rendezvous.core.clock import now_ms
from rendezvous.core.exceptions import NotFoundError, StoreUnavailableError
from rendezvous.models import Notification, NotificationStatus, NotificationType
from rendezvous.models.notification import pending_key_for
from rendezvous.repositories.base import translate_store_errors
from rendezvous.schemas import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationStore:
    """Append/update/delete queue of notifications, one queue per recipient."""

    def __init__(self, session: Session):
        self.session = session

    def push(self, recipient_id: str, notification: Notification) -> UUID:
        """Append a notification to the recipient's queue and return its id."""
        notification.recipient_id = recipient_id
        if notification.status == NotificationStatus.PENDING.value:
            notification.pending_key = pending_key_for(recipient_id, notification.schedule_id)
        else:
            notification.pending_key = None
        with translate_store_errors(self.session, "notification push"):
            self.session.add(notification)
            self.session.commit()
        return notification.id

    def upsert_pending(self, intent: NotificationIntent) -> Notification:
        """
        Replace the recipient's pending notification for the schedule with a new one.

        The delete and the insert share one transaction and the pending key is
        unique, so two writers racing on the same pair cannot both leave a
        pending row behind; the loser retries once against the winner's row.
        A second collision surfaces as ``StoreUnavailableError`` so the caller
        can retry the whole unit of work.
        """
        try:
            return self._replace_pending(intent)
        except IntegrityError:
            self.session.rollback()
            logger.info(
                f"Concurrent pending notification for {intent.recipient_id} "
                f"on schedule {intent.schedule_id}, retrying"
            )
        try:
            return self._replace_pending(intent)
        except IntegrityError as exc:
            self.session.rollback()
            logger.error(
                f"Pending notification for {intent.recipient_id} on schedule "
                f"{intent.schedule_id} kept colliding: {exc}"
            )
            raise StoreUnavailableError(
                f"Pending notification upsert for {intent.recipient_id} kept colliding"
            ) from exc

    def _replace_pending(self, intent: NotificationIntent) -> Notification:
        notification = Notification(
            recipient_id=intent.recipient_id,
            sender_id=intent.sender_id,
            schedule_id=intent.schedule_id,
            type=intent.type.value,
            title=intent.title,
            start_time=intent.start_time,
            status=NotificationStatus.PENDING.value,
            timestamp=now_ms(),
            pending_key=pending_key_for(intent.recipient_id, intent.schedule_id),
        )
        with translate_store_errors(self.session, "notification upsert"):
            result = self.session.exec(
                delete(Notification).where(
                    Notification.recipient_id == intent.recipient_id,
                    Notification.schedule_id == intent.schedule_id,
                    Notification.status == NotificationStatus.PENDING.value,
                )
            )
            self.session.add(notification)
            self.session.commit()
        if result.rowcount:
            logger.info(
                f"Replaced {result.rowcount} pending notification(s) for "
                f"{intent.recipient_id} on schedule {intent.schedule_id}"
            )
        return notification

    def get(self, recipient_id: str, notification_id: UUID) -> Notification:
        with translate_store_errors(self.session, "notification get"):
            notification = self.session.get(Notification, notification_id)
        if notification is None or notification.recipient_id != recipient_id:
            raise NotFoundError("Notification", notification_id)
        return notification

    def list_for_recipient(self, recipient_id: str, limit: int = 50) -> List[Notification]:
        with translate_store_errors(self.session, "notification list"):
            return list(
                self.session.exec(
                    select(Notification)
                    .where(Notification.recipient_id == recipient_id)
                    .order_by(Notification.timestamp.desc())
                    .limit(limit)
                ).all()
            )

    def list_pending(self, recipient_id: str, schedule_id: UUID) -> List[Notification]:
        with translate_store_errors(self.session, "notification pending list"):
            return list(
                self.session.exec(
                    select(Notification).where(
                        Notification.recipient_id == recipient_id,
                        Notification.schedule_id == schedule_id,
                        Notification.status == NotificationStatus.PENDING.value,
                    )
                ).all()
            )

    def list_pending_for_schedule(
        self,
        schedule_id: UUID,
        types: Optional[Iterable[NotificationType]] = None,
    ) -> List[Notification]:
        """Pending notifications about a schedule, across every recipient."""
        statement = select(Notification).where(
            Notification.schedule_id == schedule_id,
            Notification.status == NotificationStatus.PENDING.value,
        )
        if types is not None:
            statement = statement.where(Notification.type.in_([t.value for t in types]))
        with translate_store_errors(self.session, "notification schedule list"):
            return list(self.session.exec(statement).all())

    def list_expired_pending(
        self,
        now: int,
        types: Iterable[NotificationType],
        recipient_id: Optional[str] = None,
    ) -> List[Notification]:
        statement = select(Notification).where(
            Notification.status == NotificationStatus.PENDING.value,
            Notification.type.in_([t.value for t in types]),
            Notification.start_time < now,
        )
        if recipient_id is not None:
            statement = statement.where(Notification.recipient_id == recipient_id)
        with translate_store_errors(self.session, "notification expiry list"):
            return list(self.session.exec(statement).all())

    def update_status(
        self, recipient_id: str, notification_id: UUID, status: NotificationStatus
    ) -> Notification:
        notification = self.get(recipient_id, notification_id)
        notification.status = status.value
        if status != NotificationStatus.PENDING:
            notification.pending_key = None
        with translate_store_errors(self.session, "notification status update"):
            self.session.add(notification)
            self.session.commit()
        return notification

    def delete(self, recipient_id: str, notification_id: UUID) -> bool:
        """Delete one notification; a missing row counts as already deleted."""
        with translate_store_errors(self.session, "notification delete"):
            result = self.session.exec(
                delete(Notification).where(
                    Notification.id == notification_id,
                    Notification.recipient_id == recipient_id,
                )
            )
            self.session.commit()
        return bool(result.rowcount)
