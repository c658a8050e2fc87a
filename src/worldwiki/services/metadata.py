"""Phase one: structured page metadata."""

import asyncio

from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.core.logging import get_logger
from worldwiki.domain.metadata_source import StructuredMetadata
from worldwiki.domain.models import GenerationRequest, PageMetadata, ResolvedCredential
from worldwiki.infrastructure.llm import GenerationService

from .mock_content import canned_metadata
from .prompts import WORLDBUILDING_SYSTEM, metadata_prompt


def _string_list() -> dict:
    return {"type": "array", "items": {"type": "string"}}


def _pair_list(key: str, value: str) -> dict:
    return {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {key: {"type": "string"}, value: {"type": "string"}},
            "required": [key, value],
            "additionalProperties": False,
        },
    }


METADATA_SCHEMA = {
    "title": "page_metadata",
    "type": "object",
    "properties": {
        "categories": _string_list(),
        "clickableTerms": _string_list(),
        "relatedConcepts": _pair_list("term", "description"),
        "basicFacts": _pair_list("name", "value"),
    },
    "required": ["categories", "clickableTerms", "relatedConcepts", "basicFacts"],
    "additionalProperties": False,
}

logger = get_logger(__name__)


class MetadataGenerator:
    """Asks the upstream service for page metadata once per page.

    Metadata only steers the prose, so any failure is replaced by canned
    metadata instead of failing the page.
    """

    def __init__(self, upstream: GenerationService, monitor: FallbackMonitor, timeout_seconds: float):
        self.upstream = upstream
        self.monitor = monitor
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        request: GenerationRequest,
        title: str,
        credential: ResolvedCredential,
    ) -> PageMetadata:
        if not credential.available:
            self.monitor.record(FallbackKind.MOCK_METADATA, source="metadata", reason="no credential")
            return canned_metadata()

        try:
            async with asyncio.timeout(self.timeout_seconds):
                data = await self.upstream.generate_structured(
                    metadata_prompt(request, title),
                    METADATA_SCHEMA,
                    system=WORLDBUILDING_SYSTEM,
                    api_key=credential.api_key,  # type: ignore[arg-type]
                )
            metadata = StructuredMetadata(data=data).extract().metadata
        except Exception as e:
            self.monitor.record(FallbackKind.METADATA_FALLBACK, source="metadata", reason=e, title=title)
            return canned_metadata()

        logger.info(
            "Metadata generated",
            categories=len(metadata.categories),
            clickable_terms=len(metadata.clickable_terms),
        )
        return metadata
