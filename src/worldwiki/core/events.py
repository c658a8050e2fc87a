"""Observable fallback events.

Every path that silently substitutes a default (canned metadata, mock
content, in-process store, admitting a request the limiter could not
check) reports here instead of only logging, so the choice is visible in
logs, in the ``worldwiki.fallbacks`` logfire counter and to tests.
"""

from collections import Counter, deque
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import logfire
from pydantic import BaseModel, Field

from .logging import get_logger

logger = get_logger(__name__)


class FallbackKind(str, Enum):
    METADATA_FALLBACK = "metadata_fallback"
    MOCK_METADATA = "mock_metadata"
    MOCK_CONTENT = "mock_content"
    STORE_FALLBACK = "store_fallback"
    RATE_LIMIT_BYPASSED = "rate_limit_bypassed"
    CLIENT_DISCONNECTED = "client_disconnected"


class FallbackEvent(BaseModel):
    kind: FallbackKind
    source: str
    reason: str | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class FallbackMonitor:
    """Records fallback decisions made while serving requests."""

    def __init__(self, history_size: int = 500):
        self._counts: Counter[FallbackKind] = Counter()
        self._recent: deque[FallbackEvent] = deque(maxlen=history_size)
        self._counter = logfire.metric_counter(
            "worldwiki.fallbacks",
            unit="1",
            description="Fallback paths taken instead of the primary dependency",
        )

    def record(
        self,
        kind: FallbackKind,
        source: str,
        reason: str | BaseException | None = None,
        **context: Any,
    ) -> None:
        if isinstance(reason, BaseException):
            reason = f"{type(reason).__name__}: {reason}"
        event = FallbackEvent(kind=kind, source=source, reason=reason)
        self._counts[kind] += 1
        self._recent.append(event)
        self._counter.add(1, {"kind": kind.value, "source": source})
        logger.warning("Fallback taken", fallback=kind.value, source=source, reason=reason, **context)

    def count(self, kind: FallbackKind) -> int:
        return self._counts[kind]

    def recent(self, kind: FallbackKind | None = None) -> list[FallbackEvent]:
        if kind is None:
            return list(self._recent)
        return [event for event in self._recent if event.kind == kind]

    def snapshot(self) -> dict[str, int]:
        return {kind.value: count for kind, count in self._counts.items()}
