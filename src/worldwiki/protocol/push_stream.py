"""Push-stream framing.

Each event is one compact JSON object written as ``data: <json>\\n\\n``. The
server writes events as they are produced; the client decoder rebuilds them
from arbitrarily fragmented bytes.
"""

import codecs
import json
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from typing import Any, Protocol

from pydantic import BaseModel

from worldwiki.core.base import ErrorDetails
from worldwiki.core.errors import ProtocolDecodeError, UpstreamGenerationError
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.core.logging import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
EVENT_DELIMITER = "\n\n"

STREAM_HEADERS = {
    "Content-Type": "text/plain; charset=utf-8",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "X-Streaming": "true",
}
STREAMING_MARKER_HEADER = "X-Streaming"


class PushSink(Protocol):
    """Where encoded events go. Raises ``ConnectionError`` once the client is gone."""

    async def write(self, data: str) -> None: ...

    async def close(self) -> None: ...


class ClientDisconnected(ConnectionError):
    pass


def encode_event(event: dict[str, Any]) -> str:
    return f"{DATA_PREFIX}{json.dumps(event, separators=(',', ':'), ensure_ascii=False)}{EVENT_DELIMITER}"


def _as_event(event: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(event, dict):
        return event
    to_wire = getattr(event, "to_wire", None)
    return to_wire() if to_wire is not None else event.model_dump(mode="json", by_alias=True)


class PushStreamEncoder:
    """Writes events to a sink, one write per event.

    Once the client disconnects further writes are dropped so the producer
    can finish its work; the disconnect is recorded once.
    """

    def __init__(self, sink: PushSink, monitor: FallbackMonitor | None = None):
        self.sink = sink
        self.monitor = monitor
        self.sent = 0
        self.dropped = 0
        self.disconnected = False
        self.closed = False

    async def send(self, event: BaseModel | dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("Push stream already closed")
        if self.disconnected:
            self.dropped += 1
            return

        try:
            await self.sink.write(encode_event(_as_event(event)))
        except ConnectionError as e:
            self.disconnected = True
            self.dropped += 1
            if self.monitor is not None:
                self.monitor.record(FallbackKind.CLIENT_DISCONNECTED, source="push_stream", reason=e, sent=self.sent)
            return
        self.sent += 1

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.sink.close()
        except ConnectionError:
            logger.debug("Sink already gone at close", sent=self.sent, dropped=self.dropped)


def is_terminal(event: dict[str, Any]) -> bool:
    return bool(event.get("isComplete") or event.get("isError"))


class PushStreamDecoder:
    """Incremental decoder tolerant of any chunk boundary, including inside UTF-8 sequences."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self.errors: list[ProtocolDecodeError] = []

    def _parse(self, segment: str) -> dict[str, Any] | None:
        segment = segment.strip("\r\n")
        if not segment.startswith(DATA_PREFIX):
            if segment.strip():
                self._reject(segment, "segment without data prefix")
            return None
        try:
            event = json.loads(segment[len(DATA_PREFIX) :])
        except json.JSONDecodeError as e:
            self._reject(segment, f"invalid JSON: {e.msg}")
            return None
        if not isinstance(event, dict):
            self._reject(segment, "event is not an object")
            return None
        return event

    def _reject(self, segment: str, reason: str) -> None:
        error = ProtocolDecodeError(
            f"Skipping malformed stream segment: {reason}",
            ErrorDetails(source="push_stream", operation="decode"),
        )
        self.errors.append(error)
        logger.warning("Malformed push-stream segment skipped", reason=reason, segment=segment[:200])

    def _drain(self) -> list[dict[str, Any]]:
        *complete, self._buffer = self._buffer.split(EVENT_DELIMITER)
        events = []
        for segment in complete:
            event = self._parse(segment)
            if event is not None:
                events.append(event)
        return events

    def feed(self, chunk: bytes | str) -> list[dict[str, Any]]:
        """Add a chunk and return every event it completed."""
        self._buffer += self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        return self._drain()

    def finish(self) -> list[dict[str, Any]]:
        """Flush the decoder at end of stream; a trailing event without its blank line still counts."""
        self._buffer += self._utf8.decode(b"", final=True)
        self._buffer += EVENT_DELIMITER
        return self._drain()


def _terminal(event: dict[str, Any]) -> dict[str, Any] | None:
    if event.get("isError"):
        raise UpstreamGenerationError(event.get("message") or "Generation failed")
    return event if is_terminal(event) else None


def _dispatch(
    events: list[dict[str, Any]],
    on_partial: Callable[[dict[str, Any]], Any] | None,
) -> dict[str, Any] | None:
    for event in events:
        terminal = _terminal(event)
        if terminal is not None:
            return terminal
        if on_partial is not None:
            on_partial(event)
    return None


def decode_chunks(
    chunks: Iterable[bytes | str],
    on_partial: Callable[[dict[str, Any]], Any] | None = None,
) -> dict[str, Any]:
    """Decode a whole stream, forwarding partial events and returning the terminal one.

    Raises:
        UpstreamGenerationError: If the stream carried an error event
        ProtocolDecodeError: If the stream ended without a terminal event
    """
    decoder = PushStreamDecoder()
    for chunk in chunks:
        terminal = _dispatch(decoder.feed(chunk), on_partial)
        if terminal is not None:
            return terminal
    terminal = _dispatch(decoder.finish(), on_partial)
    if terminal is None:
        raise ProtocolDecodeError("No complete data received from stream")
    return terminal


async def _adispatch(
    events: list[dict[str, Any]],
    on_partial: Callable[[dict[str, Any]], Awaitable[Any] | Any] | None,
) -> dict[str, Any] | None:
    for event in events:
        terminal = _terminal(event)
        if terminal is not None:
            return terminal
        if on_partial is not None:
            result = on_partial(event)
            if isinstance(result, Awaitable):
                await result
    return None


async def decode_stream(
    chunks: AsyncIterable[bytes | str],
    on_partial: Callable[[dict[str, Any]], Awaitable[Any] | Any] | None = None,
) -> dict[str, Any]:
    """Async counterpart of ``decode_chunks`` for live response bodies."""
    decoder = PushStreamDecoder()
    async for chunk in chunks:
        terminal = await _adispatch(decoder.feed(chunk), on_partial)
        if terminal is not None:
            return terminal
    terminal = await _adispatch(decoder.finish(), on_partial)
    if terminal is None:
        raise ProtocolDecodeError("No complete data received from stream")
    return terminal
