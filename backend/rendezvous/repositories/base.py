from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import Session

from rendezvous.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def translate_store_errors(session: Session, operation: str) -> Iterator[None]:
    """
    Roll back and re-raise connectivity failures as ``StoreUnavailableError``.

    Lock waits and pool checkouts are bounded by STORE_TIMEOUT_SECONDS, so a
    slow store ends up here instead of blocking the caller indefinitely.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        session.rollback()
        logger.error(f"Store unavailable during {operation}: {exc}")
        raise StoreUnavailableError(f"Store unavailable during {operation}") from exc
