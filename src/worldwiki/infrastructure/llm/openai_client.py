"""OpenAI chat completions as the generation service."""

import json
import time
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from worldwiki.core.base import AIServiceErrorDetails, ErrorCode, ErrorLevel
from worldwiki.core.config import Settings, settings
from worldwiki.core.decorators import with_error_handling
from worldwiki.core.errors import UpstreamGenerationError
from worldwiki.core.logging import get_logger

logger = get_logger(__name__)


class OpenAIGenerationService:
    """Generation service backed by the ``openai`` SDK.

    One client is kept per credential so caller-supplied keys never share a
    connection pool with the service key.
    """

    def __init__(self, config: Settings = settings, timeout: float | None = None) -> None:
        self.model = config.openai_model
        self._base_url = config.openai_base_url
        self._timeout = timeout or config.content_timeout_seconds
        self._clients: dict[str, AsyncOpenAI] = {}

    def _client(self, api_key: str) -> AsyncOpenAI:
        client = self._clients.get(api_key)
        if client is None:
            client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, timeout=self._timeout, max_retries=1)
            self._clients[api_key] = client
        return client

    def _error(self, e: Exception, phase: str, started: float) -> UpstreamGenerationError:
        latency_ms = (time.perf_counter() - started) * 1000
        status_code = getattr(e, "status_code", None)
        code = ErrorCode.UPSTREAM_GENERATION_FAILED
        if isinstance(e, openai.APITimeoutError):
            code = ErrorCode.UPSTREAM_TIMEOUT
        return UpstreamGenerationError(
            message=f"Upstream {phase} generation failed: {e}",
            details=AIServiceErrorDetails(
                source="OpenAIGenerationService",
                operation=f"generate_{phase}",
                service_name="openai",
                endpoint="/chat/completions",
                status_code=status_code,
                latency_ms=latency_ms,
                model_name=self.model,
                phase=phase,
            ),
            code=code,
        )

    @staticmethod
    def _messages(prompt: str, system: str | None) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        return messages

    @with_error_handling(error_level=ErrorLevel.WARNING)
    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        *,
        system: str | None = None,
        api_key: str,
    ) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            response = await self._client(api_key).chat.completions.create(
                model=self.model,
                messages=self._messages(prompt, system),
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": schema.get("title", "result"),
                        "schema": {key: value for key, value in schema.items() if key != "title"},
                        "strict": True,
                    },
                },
            )
        except openai.OpenAIError as e:
            raise self._error(e, "metadata", started) from e

        content = response.choices[0].message.content if response.choices else None
        try:
            data = json.loads(content or "")
        except json.JSONDecodeError as e:
            raise self._error(e, "metadata", started) from e
        if not isinstance(data, dict):
            raise self._error(ValueError("structured response is not an object"), "metadata", started)

        logger.debug("Structured generation complete", latency_ms=(time.perf_counter() - started) * 1000)
        return data

    async def generate_stream(
        self,
        prompt: str,
        *,
        system: str | None = None,
        api_key: str,
    ) -> AsyncIterator[str]:
        started = time.perf_counter()
        try:
            stream = await self._client(api_key).chat.completions.create(
                model=self.model,
                messages=self._messages(prompt, system),
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as e:
            raise self._error(e, "content", started) from e

        logger.debug("Streamed generation complete", latency_ms=(time.perf_counter() - started) * 1000)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
