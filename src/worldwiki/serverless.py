"""Function-per-request host.

Platforms that invoke one function per HTTP request hand us a request and a
writable response. ``handle`` routes it through the same gateway as the
persistent server and writes each push event straight to the response.
There is no scheduler here; the in-process window store purges lazily.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from worldwiki.api.gateway import GatewayResult, GenerationGateway
from worldwiki.api.identity import IdentityVerifier
from worldwiki.core.base import ApplicationError, ErrorCode
from worldwiki.core.config import Settings, settings
from worldwiki.core.errors import MethodNotAllowedError
from worldwiki.core.handlers import ErrorHandler
from worldwiki.core.logging import configure_logfire, get_logger, setup_logging
from worldwiki.protocol.push_stream import ClientDisconnected
from worldwiki.services.container import ServiceContainer, build_container

logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Routes and the methods they accept; store-key checks its own methods
ROUTES: dict[str, frozenset[str] | None] = {
    "/api/generate": frozenset({"POST"}),
    "/api/generate-section": frozenset({"POST"}),
    "/api/usage": frozenset({"GET"}),
    "/api/config": frozenset({"GET"}),
    "/api/store-key": None,
}


@dataclass
class FunctionRequest:
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str | dict[str, Any] | None = None
    client_host: str | None = None

    def json(self) -> Any:
        """Parsed body, or None when it is missing or malformed."""
        if self.body is None or isinstance(self.body, dict):
            return self.body
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            logger.info("Request body is not valid JSON", path=self.path)
            return None


class FunctionResponse(Protocol):
    def set_status(self, status_code: int) -> None: ...

    def set_header(self, name: str, value: str) -> None: ...

    async def write(self, data: str) -> None: ...

    async def end(self) -> None: ...


class BufferedFunctionResponse:
    """Collects what was written. ``disconnect_after`` simulates a client leaving after N writes."""

    def __init__(self, disconnect_after: int | None = None):
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self.chunks: list[str] = []
        self.ended = False
        self.disconnect_after = disconnect_after

    def set_status(self, status_code: int) -> None:
        self.status_code = status_code

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    async def write(self, data: str) -> None:
        if self.disconnect_after is not None and len(self.chunks) >= self.disconnect_after:
            raise ClientDisconnected("Client closed the connection")
        self.chunks.append(data)

    async def end(self) -> None:
        self.ended = True

    @property
    def body(self) -> str:
        return "".join(self.chunks)

    def json(self) -> Any:
        return json.loads(self.body)


class ResponsePushSink:
    """Writes each push event directly to the function response."""

    def __init__(self, response: FunctionResponse):
        self.response = response

    async def write(self, data: str) -> None:
        await self.response.write(data)

    async def close(self) -> None:
        await self.response.end()


_container: ServiceContainer | None = None


def get_container(config: Settings = settings) -> ServiceContainer:
    """Build the container once per function instance (cold start)."""
    global _container
    if _container is None:
        configure_logfire(config)
        setup_logging(config)
        _container = build_container(config)
        logger.info("Function host cold start complete")
    return _container


async def _send_json(response: FunctionResponse, status_code: int, body: Any, headers: dict[str, str]) -> None:
    response.set_status(status_code)
    for name, value in {**headers, **JSON_HEADERS}.items():
        response.set_header(name, value)
    await response.write(json.dumps(body))
    await response.end()


async def _send(result: GatewayResult, response: FunctionResponse) -> None:
    if result.stream is None:
        await _send_json(response, result.status_code, result.body, result.headers)
        return

    response.set_status(result.status_code)
    for name, value in result.headers.items():
        response.set_header(name, value)
    await result.stream(ResponsePushSink(response))


async def _dispatch(gateway: GenerationGateway, request: FunctionRequest) -> GatewayResult:
    method = request.method.upper()
    allowed = ROUTES[request.path]
    if allowed is not None and method not in allowed:
        error = MethodNotAllowedError("Method not allowed")
        return GatewayResult(status_code=error.status_code, body=error.to_payload())

    if request.path == "/api/generate":
        return await gateway.prepare("page", request.json(), request.headers, request.client_host)
    if request.path == "/api/generate-section":
        return await gateway.prepare("section", request.json(), request.headers, request.client_host)
    if request.path == "/api/usage":
        return await gateway.usage(request.headers)
    if request.path == "/api/config":
        return await gateway.config(request.headers)
    payload = request.json() if method == "POST" else None
    return await gateway.store_key(method, payload, request.headers, request.client_host)


async def handle(
    request: FunctionRequest,
    response: FunctionResponse,
    container: ServiceContainer | None = None,
    identity_verifier: IdentityVerifier | None = None,
) -> None:
    """Serve one request end to end."""
    if request.path not in ROUTES:
        await _send_json(
            response,
            404,
            {"error": "Not Found", "message": "Not Found", "code": ErrorCode.NOT_FOUND.value},
            {},
        )
        return

    gateway = GenerationGateway(container or get_container(), identity_verifier)
    try:
        result = await _dispatch(gateway, request)
    except Exception as e:
        body = await ErrorHandler().handle_async(e, path=request.path)
        status_code = e.status_code if isinstance(e, ApplicationError) else 500
        await _send_json(response, status_code, body, {})
        return
    await _send(result, response)
