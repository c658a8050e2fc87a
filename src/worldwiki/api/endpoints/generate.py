"""Generation endpoints: push-stream responses."""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from worldwiki.api.dependencies import get_gateway
from worldwiki.api.gateway import GatewayResult, GenerationGateway
from worldwiki.core.logging import get_logger
from worldwiki.protocol.push_stream import ClientDisconnected

logger = get_logger(__name__)
router = APIRouter()

# Keeps generation tasks referenced until they finish
_background_tasks: set[asyncio.Task] = set()


class QueuePushSink:
    """Bridges the orchestrator's writes to a streaming response body.

    Each write becomes one body chunk. Once the response iterator stops
    (normally or because the client went away) writes raise
    ``ClientDisconnected``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self.disconnected = False

    async def write(self, data: str) -> None:
        if self.disconnected:
            raise ClientDisconnected("Client closed the stream")
        await self._queue.put(data)

    async def close(self) -> None:
        await self._queue.put(None)

    async def iterate(self) -> AsyncIterator[str]:
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is None:
                    return
                yield chunk
        finally:
            self.disconnected = True


class PushStreamResponse(StreamingResponse):
    """Streams a sink's chunks and marks the sink disconnected when the response ends.

    Starlette returns from the response as soon as the client goes away, but
    the body iterator may only be finalized later, so the flag is set here.
    """

    def __init__(self, sink: QueuePushSink, **kwargs: Any):
        super().__init__(sink.iterate(), **kwargs)
        self.sink = sink

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.sink.disconnected = True


async def read_json(request: Request) -> Any:
    """Request body as JSON, or None when it is missing or malformed."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        logger.info("Request body is not valid JSON", path=request.url.path)
        return None


def to_response(result: GatewayResult) -> Response:
    if result.stream is None:
        return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)

    sink = QueuePushSink()
    task = asyncio.create_task(result.stream(sink))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return PushStreamResponse(sink, status_code=result.status_code, headers=result.headers)


def _client_host(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/api/generate")
async def generate_page(request: Request, gateway: GenerationGateway = Depends(get_gateway)) -> Response:
    result = await gateway.prepare("page", await read_json(request), request.headers, _client_host(request))
    return to_response(result)


@router.post("/api/generate-section")
async def generate_section(request: Request, gateway: GenerationGateway = Depends(get_gateway)) -> Response:
    result = await gateway.prepare("section", await read_json(request), request.headers, _client_host(request))
    return to_response(result)
