from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

CORRELATION_HEADER = "x-correlation-id"
MAX_CORRELATION_ID_LENGTH = 128

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def normalize_correlation_id(candidate: str | None) -> str:
    """Return ``candidate`` when it is usable as a correlation id, else a fresh uuid4."""
    value = (candidate or "").strip()
    if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
        return value
    return str(uuid.uuid4())


@contextmanager
def correlation_scope(correlation_id: str | None) -> Iterator[str | None]:
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)
