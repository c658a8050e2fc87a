"""HTTP client for the generation endpoints.

Posts a request and, when the server answers with a push stream, decodes it
into snapshots; non-streaming answers come back as their JSON body.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from worldwiki.core.logging import get_logger

from .push_stream import STREAMING_MARKER_HEADER, decode_stream

logger = get_logger(__name__)

PartialCallback = Callable[[dict[str, Any]], Awaitable[Any] | Any]


class GenerationClientError(Exception):
    """Non-2xx answer from the service, carrying its machine-readable code."""

    def __init__(self, status_code: int, payload: dict[str, Any]):
        self.status_code = status_code
        self.payload = payload
        self.code: str | None = payload.get("code")
        super().__init__(payload.get("message") or payload.get("error") or f"HTTP {status_code}")


class WorldWikiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: str | None = None,
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"X-User-Id": user_id} if user_id else {}
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "WorldWikiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    async def _error(response: httpx.Response) -> GenerationClientError:
        await response.aread()
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"message": str(payload)}
        logger.warning("Generation request rejected", status_code=response.status_code, code=payload.get("code"))
        return GenerationClientError(response.status_code, payload)

    async def _post(self, path: str, payload: dict[str, Any], on_partial: PartialCallback | None) -> dict[str, Any]:
        async with self._client.stream("POST", path, json=payload) as response:
            if response.is_error:
                raise await self._error(response)
            if response.headers.get(STREAMING_MARKER_HEADER, "").lower() == "true":
                return await decode_stream(response.aiter_bytes(), on_partial)
            await response.aread()
            return response.json()

    async def generate(
        self,
        input: str,
        type: str = "seed",
        context: str | None = None,
        world_facts: dict[str, Any] | None = None,
        on_partial: PartialCallback | None = None,
    ) -> dict[str, Any]:
        """Generate a page and return its terminal snapshot."""
        payload: dict[str, Any] = {"input": input, "type": type}
        if context is not None:
            payload["context"] = context
        if world_facts is not None:
            payload["worldbuildingHistory"] = world_facts
        return await self._post("/api/generate", payload, on_partial)

    async def generate_section(
        self,
        section_title: str,
        page_title: str,
        page_content: str,
        world_facts: dict[str, Any] | None = None,
        on_partial: PartialCallback | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sectionTitle": section_title,
            "pageTitle": page_title,
            "pageContent": page_content,
        }
        if world_facts is not None:
            payload["worldbuildingHistory"] = world_facts
        return await self._post("/api/generate-section", payload, on_partial)

    async def usage(self) -> dict[str, Any]:
        response = await self._client.get("/api/usage")
        if response.is_error:
            raise await self._error(response)
        return response.json()
