import asyncio

import pytest

from worldwiki.core.errors import ProtocolDecodeError, UpstreamGenerationError
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.domain.models import PageMetadata, PageSnapshot
from worldwiki.protocol import (
    PushStreamDecoder,
    PushStreamEncoder,
    decode_chunks,
    decode_stream,
    encode_event,
)

from .fakes import RecordingSink

EVENTS = [
    {"id": "p1", "title": "Ærøskøbing", "content": "", "isPartial": True, "progress": 20},
    {"id": "p1", "title": "Ærøskøbing", "content": "世界の端 — edge", "isPartial": True, "progress": 55},
    {"id": "p1", "title": "Ærøskøbing", "content": "世界の端 — edge.", "isPartial": False, "isComplete": True},
]
STREAM = "".join(encode_event(event) for event in EVENTS).encode("utf-8")


def test_encode_event_is_compact():
    assert encode_event({"a": 1, "b": "ü"}) == 'data: {"a":1,"b":"ü"}\n\n'


def test_every_split_offset_yields_the_same_events():
    for offset in range(len(STREAM) + 1):
        partials = []
        terminal = decode_chunks([STREAM[:offset], STREAM[offset:]], partials.append)
        assert terminal == EVENTS[2], offset
        assert partials == EVENTS[:2], offset


def test_byte_at_a_time():
    partials = []
    terminal = decode_chunks([bytes([b]) for b in STREAM], partials.append)
    assert terminal == EVENTS[2]
    assert len(partials) == 2


def test_delimiter_split_across_chunks():
    first = encode_event(EVENTS[0])
    decoder = PushStreamDecoder()
    assert decoder.feed(first[:-1]) == []
    assert decoder.feed("\n") == [EVENTS[0]]


def test_malformed_segments_are_skipped():
    raw = encode_event(EVENTS[0]) + "data: {not json}\n\n" + "event: ping\n\n" + encode_event(EVENTS[2])
    decoder = PushStreamDecoder()
    events = decoder.feed(raw)
    assert events == [EVENTS[0], EVENTS[2]]
    assert len(decoder.errors) == 2
    assert all(isinstance(error, ProtocolDecodeError) for error in decoder.errors)


def test_trailing_event_without_delimiter_counts_at_end():
    raw = encode_event(EVENTS[0]) + encode_event(EVENTS[2]).rstrip("\n")
    assert decode_chunks([raw]) == EVENTS[2]


def test_stream_without_terminal_event():
    with pytest.raises(ProtocolDecodeError, match="No complete data received from stream"):
        decode_chunks([encode_event(EVENTS[0])])


def test_error_event_raises_after_forwarding_partials():
    error = {"isError": True, "isPartial": False, "isComplete": False, "code": "X", "error": "e", "message": "boom"}
    partials = []
    with pytest.raises(UpstreamGenerationError, match="boom"):
        decode_chunks([encode_event(EVENTS[0]) + encode_event(error)], partials.append)
    assert partials == [EVENTS[0]]


def test_decode_stream_awaits_async_callbacks():
    seen = []

    async def on_partial(event):
        await asyncio.sleep(0)
        seen.append(event["progress"])

    async def chunks():
        for i in range(0, len(STREAM), 7):
            yield STREAM[i : i + 7]

    terminal = asyncio.run(decode_stream(chunks(), on_partial))
    assert terminal["isComplete"] is True
    assert seen == [20, 55]


def test_encoder_writes_wire_form_of_models():
    sink = RecordingSink()
    encoder = PushStreamEncoder(sink)
    snapshot = PageSnapshot.from_metadata("p1", "Aethros", PageMetadata(categories=["Culture"]), progress=20)

    asyncio.run(encoder.send(snapshot))

    [event] = sink.events()
    assert event["clickableTerms"] == []
    assert event["progress"] == 20
    assert "usageInfo" not in event


def test_encoder_swallows_writes_after_disconnect():
    monitor = FallbackMonitor()
    sink = RecordingSink(disconnect_after=1)
    encoder = PushStreamEncoder(sink, monitor)

    async def run():
        for event in EVENTS:
            await encoder.send(event)
        await encoder.close()
        await encoder.close()

    asyncio.run(run())

    assert encoder.sent == 1
    assert encoder.dropped == 2
    assert sink.closed
    assert monitor.count(FallbackKind.CLIENT_DISCONNECTED) == 1


def test_send_after_close_is_an_error():
    encoder = PushStreamEncoder(RecordingSink())
    asyncio.run(encoder.close())
    with pytest.raises(RuntimeError):
        asyncio.run(encoder.send(EVENTS[0]))
