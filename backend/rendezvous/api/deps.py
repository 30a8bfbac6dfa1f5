from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header
from fastapi.security import OAuth2PasswordBearer

from rendezvous.core.config import settings
from rendezvous.core.exceptions import UnauthenticatedError
from rendezvous.core.security import user_id_from_token
from rendezvous.db import SessionDep
from rendezvous.services.events import EventPublisher, get_publisher
from rendezvous.services.schedules import ScheduleService

# Tokens are issued by the identity provider; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    try:
        return user_id_from_token(token)
    except ValueError:
        raise UnauthenticatedError("Could not validate credentials") from None


def get_schedule_service(
    session: SessionDep,
    publisher: EventPublisher = Depends(get_publisher),
) -> ScheduleService:
    return ScheduleService(session, publisher=publisher)


def get_correlation_id(
    x_correlation_id: Optional[str] = Header(default=None, alias="X-Correlation-ID"),
) -> Optional[str]:
    return x_correlation_id


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
ServiceDep = Annotated[ScheduleService, Depends(get_schedule_service)]
CorrelationId = Annotated[Optional[str], Depends(get_correlation_id)]
