from .client import GenerationClientError, WorldWikiClient
from .push_stream import (
    STREAM_HEADERS,
    ClientDisconnected,
    PushSink,
    PushStreamDecoder,
    PushStreamEncoder,
    decode_chunks,
    decode_stream,
    encode_event,
    is_terminal,
)
