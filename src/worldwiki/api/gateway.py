"""Transport-agnostic request handling.

The persistent server and the function host both translate their native
request into a call here and their native response out of a ``GatewayResult``,
so admission, error bodies and the push stream are identical on both.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from worldwiki.core.base import ApplicationError, ErrorDetails
from worldwiki.core.errors import AuthenticationError, MethodNotAllowedError
from worldwiki.core.logging import get_logger, request_log_context
from worldwiki.domain.models import ApiKeyPayload, Caller, parse_payload
from worldwiki.protocol.push_stream import STREAM_HEADERS, PushSink
from worldwiki.services.container import ServiceContainer

from .identity import HeaderIdentityVerifier, IdentityVerifier, client_ip

logger = get_logger(__name__)

GENERATION_RATE_CLASS = "wiki_generation"
API_KEY_RATE_CLASS = "api_key_operations"

StreamRunner = Callable[[PushSink], Awaitable[Any]]


@dataclass
class GatewayResult:
    """What a host should send back: a JSON body or a push stream."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    stream: StreamRunner | None = None

    @property
    def streaming(self) -> bool:
        return self.stream is not None


def _lower(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


def _error_result(error: ApplicationError, headers: dict[str, str] | None = None) -> GatewayResult:
    logger.info("Request rejected", code=error.code.value, status_code=error.status_code, reason=error.message)
    return GatewayResult(status_code=error.status_code, headers=headers or {}, body=error.to_payload())


class GenerationGateway:
    def __init__(self, container: ServiceContainer, identity_verifier: IdentityVerifier | None = None):
        self.container = container
        self.identity_verifier = identity_verifier or HeaderIdentityVerifier()

    async def _caller(self, headers: dict[str, str], client_host: str | None) -> Caller:
        identity = await self.identity_verifier.verify(headers)
        return Caller(identity=identity, ip=client_ip(headers, client_host))

    async def _require_identity(self, headers: dict[str, str], operation: str) -> str:
        identity = await self.identity_verifier.verify(headers)
        if identity is None:
            raise AuthenticationError(
                "Authentication required",
                ErrorDetails(source="gateway", operation=operation),
            )
        return identity

    async def prepare(
        self,
        operation: str,
        payload: Any,
        headers: Mapping[str, str],
        client_host: str | None = None,
    ) -> GatewayResult:
        """Admit a generation request.

        Returns either an error body (rate limit, validation, quota,
        credential) or a stream runner the host drives with its own sink.
        ``operation`` is ``"page"`` or ``"section"``.
        """
        headers = _lower(headers)
        caller = await self._caller(headers, client_host)
        orchestrator = self.container.orchestrator

        with request_log_context(f"generate_{operation}", caller.identity, caller.ip) as request_id:
            limit = await self.container.rate_limiter.check_combined(caller.identity, caller.ip, GENERATION_RATE_CLASS)
            limit_headers = limit.headers()
            try:
                limit.raise_for_rejection()
                if operation == "section":
                    job: Any = await orchestrator.admit_section(payload, caller)
                else:
                    job = await orchestrator.admit_page(payload, caller)
            except ApplicationError as e:
                return _error_result(e, limit_headers)

        async def run(sink: PushSink) -> Any:
            with request_log_context(f"generate_{operation}", caller.identity, caller.ip, request_id=request_id):
                if operation == "section":
                    return await orchestrator.stream_section(job, sink)
                return await orchestrator.stream_page(job, sink)

        return GatewayResult(status_code=200, headers={**STREAM_HEADERS, **limit_headers}, stream=run)

    async def usage(self, headers: Mapping[str, str]) -> GatewayResult:
        headers = _lower(headers)
        try:
            identity = await self._require_identity(headers, "usage")
        except ApplicationError as e:
            return _error_result(e)
        status = await self.container.credentials.usage_status(identity)
        return GatewayResult(status_code=200, body=status.to_wire())

    async def config(self, headers: Mapping[str, str]) -> GatewayResult:
        headers = _lower(headers)
        try:
            await self._require_identity(headers, "config")
        except ApplicationError as e:
            return _error_result(e)
        return GatewayResult(
            status_code=200,
            body={"enableUserApiKeys": self.container.settings.enable_user_api_keys},
        )

    async def store_key(
        self,
        method: str,
        payload: Any,
        headers: Mapping[str, str],
        client_host: str | None = None,
    ) -> GatewayResult:
        """Check, store or remove the caller's own upstream credential."""
        headers = _lower(headers)
        method = method.upper()
        credentials = self.container.credentials

        with request_log_context("store_key", None, client_ip(headers, client_host)):
            if method not in {"GET", "POST", "DELETE"}:
                return _error_result(MethodNotAllowedError("Method not allowed"))
            try:
                identity = await self._require_identity(headers, "store_key")
            except ApplicationError as e:
                return _error_result(e)

            limit = await self.container.rate_limiter.check_combined(
                identity, client_ip(headers, client_host), API_KEY_RATE_CLASS
            )
            limit_headers = limit.headers()
            try:
                limit.raise_for_rejection()
                if method == "GET":
                    body = {"hasKey": await credentials.has_key(identity)}
                elif method == "POST":
                    key = parse_payload(ApiKeyPayload, payload, "store_key")
                    await credentials.store_key(identity, key.api_key)
                    body = {"success": True, "message": "API key stored securely"}
                else:
                    await credentials.remove_key(identity)
                    body = {"success": True}
            except ApplicationError as e:
                return _error_result(e, limit_headers)

        return GatewayResult(status_code=200, headers=limit_headers, body=body)
