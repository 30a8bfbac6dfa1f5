"""Logging setup shared by the API process and the Celery workers."""

from __future__ import annotations

import logging
import sys

from rendezvous.core.config import settings

_configured = False


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter.

    Format: [TIMESTAMP] LEVEL - LOGGER - MESSAGE
    Example: [2024-01-01 10:30:45] INFO - rendezvous.services.schedules - Schedule ... created
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def configure_logging(level: str | None = None) -> None:
    """Attach a console handler to the root logger once per process."""
    global _configured
    if _configured:
        return

    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.addHandler(handler)
    _configured = True
