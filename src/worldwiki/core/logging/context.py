"""Request-scoped logging context.

Every generation request binds its request id, operation and caller so that
all log lines emitted while serving it, on either host, carry the same keys.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

import structlog


def get_log_context() -> dict[str, Any]:
    """Get the current logging context."""
    return dict(structlog.contextvars.get_contextvars())


@contextmanager
def request_log_context(
    operation: str,
    caller_identity: str | None = None,
    caller_ip: str | None = None,
    request_id: str | None = None,
) -> Iterator[str]:
    """Bind request keys for the duration of one request.

    Yields:
        The request id in effect.
    """
    request_id = request_id or uuid4().hex
    with structlog.contextvars.bound_contextvars(
        request_id=request_id,
        operation=operation,
        caller_identity=caller_identity,
        caller_ip=caller_ip,
    ):
        yield request_id
