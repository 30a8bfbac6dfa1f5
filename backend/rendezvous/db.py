from __future__ import annotations

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlmodel import Session, SQLModel, create_engine

from rendezvous.core.config import settings


def _build_engine():
    connect_args = {}
    engine_kwargs = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        # sqlite waits this long on a locked database before raising OperationalError
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.STORE_TIMEOUT_SECONDS,
        }
    else:
        engine_kwargs = {
            "pool_timeout": settings.STORE_TIMEOUT_SECONDS,
            "pool_pre_ping": True,
        }
    return create_engine(settings.DATABASE_URL, connect_args=connect_args, **engine_kwargs)


engine = _build_engine()


def init_db() -> None:
    """Create database tables in environments without migrations."""
    import rendezvous.models  # noqa: F401  registers tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind=engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine, expire_on_commit=False) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
