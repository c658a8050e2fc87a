"""Upstream generation service protocol."""

from collections.abc import AsyncIterator
from typing import Any, Protocol


class GenerationService(Protocol):
    """The remote text-generation service, as the pipeline sees it."""

    model: str

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        *,
        system: str | None = None,
        api_key: str,
    ) -> dict[str, Any]:
        """Return one JSON object conforming to ``schema``."""
        ...

    def generate_stream(
        self,
        prompt: str,
        *,
        system: str | None = None,
        api_key: str,
    ) -> AsyncIterator[str]:
        """Yield text deltas as the service produces them."""
        ...
