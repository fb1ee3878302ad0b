from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_request_id: ContextVar[str | None] = ContextVar("postdigest_request_id", default=None)
_run_id: ContextVar[str | None] = ContextVar("postdigest_run_id", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(value: str | None) -> None:
    _request_id.set(value)


def get_run_id() -> str | None:
    return _run_id.get()


@contextmanager
def bound_run_id(run_id: str) -> Iterator[str]:
    """Tag every log record emitted inside the block with ``run_id``."""
    token = _run_id.set(run_id)
    try:
        yield run_id
    finally:
        _run_id.reset(token)
