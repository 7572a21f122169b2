"""Correlation IDs: one per webhook delivery, in logs, alerts and responses."""

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Incoming IDs are echoed into headers and logs; anything else is replaced
_VALID_INCOMING_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Copied into worker threads by asyncio.to_thread
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str:
    """Correlation ID of the current request, or "" outside a request."""
    return _correlation_id.get()


def accept_incoming(value: str | None) -> str:
    """Reuse a caller-supplied ID if it is safe to echo, else mint one."""
    if value and _VALID_INCOMING_ID.match(value):
        return value
    return new_correlation_id()


@contextmanager
def correlation_scope(cid: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the block.

    Args:
        cid: Incoming correlation ID. Missing or unsafe values are replaced.

    Yields:
        The correlation ID in effect inside the block.
    """
    effective = accept_incoming(cid)
    token = _correlation_id.set(effective)
    try:
        yield effective
    finally:
        _correlation_id.reset(token)
