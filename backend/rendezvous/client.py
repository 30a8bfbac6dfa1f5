"""
Python client for the schedule API that keeps an optimistic view of the
caller's schedules.

A write shows up in ``feed`` right away as a provisional entry tagged with a
fresh correlation id, which is sent as ``X-Correlation-ID``. The HTTP
response, or the ``schedule`` message pushed on ``/ws/schedules/{id}`` for the
same correlation id, settles it; a rejected write is rolled back.
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import httpx

from rendezvous.core.config import settings
from rendezvous.models import ResponseStatus, ScheduleStatus
from rendezvous.schemas import ScheduleSnapshot, ScheduleWithConflicts
from rendezvous.services.feed_mirror import FeedMirror

logger = logging.getLogger(__name__)


class ScheduleFeedClient:
    """Schedule API client for one user, backed by a ``FeedMirror``."""

    def __init__(
        self,
        http: httpx.Client,
        user_id: str,
        token: str,
        prefix: str = settings.API_V1_STR,
    ):
        self.http = http
        self.user_id = user_id
        self.token = token
        self.prefix = prefix
        self.feed: FeedMirror[ScheduleSnapshot] = FeedMirror(
            sort_key=lambda s: (s.start_time, str(s.id))
        )

    def _url(self, path: str) -> str:
        return f"{self.prefix}/schedules{path}"

    def _headers(self, correlation_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if correlation_id is not None:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    def refresh(
        self, start: Optional[int] = None, end: Optional[int] = None
    ) -> List[ScheduleSnapshot]:
        """Pull the user's schedules into the feed and return its current view."""
        params = {}
        if start is not None and end is not None:
            params = {"from": start, "to": end}
        response = self.http.get(self._url("/"), params=params, headers=self._headers())
        response.raise_for_status()
        for item in response.json():
            self.feed.apply_upsert(ScheduleSnapshot.model_validate(item))
        return self.feed.items()

    def _current(self, schedule_id: UUID) -> ScheduleSnapshot:
        current = self.feed.get(schedule_id)
        if current is not None:
            return current
        response = self.http.get(self._url(f"/{schedule_id}"), headers=self._headers())
        response.raise_for_status()
        current = ScheduleSnapshot.model_validate(response.json())
        self.feed.apply_upsert(current)
        return current

    def _write(self, path: str, provisional: ScheduleSnapshot, body: Optional[dict] = None):
        correlation_id = str(uuid4())
        self.feed.apply_local(provisional, correlation_id)
        try:
            response = self.http.post(
                self._url(path), json=body, headers=self._headers(correlation_id)
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.feed.rollback(correlation_id)
            logger.warning(f"POST {path} failed, rolled back local write {correlation_id}: {e}")
            raise
        return correlation_id, response.json()

    def respond(self, schedule_id: UUID, accept: bool) -> ScheduleWithConflicts:
        response = ResponseStatus.ACCEPTED if accept else ResponseStatus.DECLINED
        provisional = self._current(schedule_id).with_response(self.user_id, response)
        correlation_id, payload = self._write(
            f"/{schedule_id}/respond", provisional, body={"accept": accept}
        )
        result = ScheduleWithConflicts.model_validate(payload)
        self.feed.apply_server_event(result.schedule, correlation_id)
        return result

    def cancel(self, schedule_id: UUID) -> ScheduleSnapshot:
        provisional = self._current(schedule_id).model_copy(
            update={"status": ScheduleStatus.CANCELLED}
        )
        correlation_id, payload = self._write(f"/{schedule_id}/cancel", provisional)
        schedule = ScheduleSnapshot.model_validate(payload)
        self.feed.apply_server_event(schedule, correlation_id)
        return schedule

    def handle_message(self, message: dict) -> bool:
        """Apply one real-time message; returns False for anything but a schedule update."""
        if message.get("type") != "schedule" or message.get("data") is None:
            return False
        schedule = ScheduleSnapshot.model_validate(message["data"])
        self.feed.apply_server_event(schedule, message.get("correlation_id"))
        return True
