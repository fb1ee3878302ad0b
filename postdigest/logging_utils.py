"""Structured logging helper shared by the pipeline services."""

from __future__ import annotations

import logging
from typing import Any


def structured_log(
    logger: logging.Logger,
    level: str,
    event: str,
    /,
    **fields: Any,
) -> None:
    """Emit a structured log entry.

    The event name is the log message; ``JsonLogFormatter`` reads it back via
    ``record.getMessage()``, so it is not repeated in ``extra``.

    Usage:
        structured_log(logger, "info", "ingestion.identity_completed", identity="nasa", saved_count=2)
    """
    log_method = getattr(logger, level.lower())
    log_method(event, extra=fields)
