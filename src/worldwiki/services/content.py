"""Phase two: streamed prose."""

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from worldwiki.core.config import Settings
from worldwiki.core.events import FallbackKind, FallbackMonitor
from worldwiki.domain.models import GenerationRequest, PageMetadata, ResolvedCredential, SectionRequest
from worldwiki.infrastructure.llm import GenerationService

from .mock_content import mock_page_text, mock_section_text
from .prompts import SECTION_SYSTEM, WORLDBUILDING_SYSTEM, content_prompt, marker_text_prompt, section_prompt

PROGRESS_CAP = 90
PAGE_PROGRESS_START = 20
PAGE_PROGRESS_SPAN = 70
PAGE_EXPECTED_CHARS = 2000
SECTION_EXPECTED_CHARS = 200
MARKER_TEXT_EXPECTED_CHARS = 2500


def page_progress(accumulated_chars: int) -> int:
    return min(PROGRESS_CAP, int(PAGE_PROGRESS_START + accumulated_chars / PAGE_EXPECTED_CHARS * PAGE_PROGRESS_SPAN))


def mock_page_progress(word_index: int, word_count: int) -> int:
    return min(PROGRESS_CAP, int(PAGE_PROGRESS_START + word_index / word_count * PAGE_PROGRESS_SPAN))


def section_progress(accumulated_chars: int) -> int:
    return min(PROGRESS_CAP, int(accumulated_chars / SECTION_EXPECTED_CHARS * 100))


def marker_text_progress(accumulated_chars: int) -> int:
    return min(PROGRESS_CAP, int(accumulated_chars / MARKER_TEXT_EXPECTED_CHARS * 100))


@dataclass(frozen=True)
class ContentUpdate:
    """Text received so far and how far along the phase is."""

    text: str
    progress: int


class ContentStreamer:
    """Streams prose from the upstream service, or a placeholder without a credential."""

    def __init__(self, upstream: GenerationService, config: Settings, monitor: FallbackMonitor):
        self.upstream = upstream
        self.config = config
        self.monitor = monitor

    async def _mock_words(
        self,
        text: str,
        progress_for: Callable[[int, int, str], int],
    ) -> AsyncIterator[ContentUpdate]:
        words = text.split(" ")
        step = self.config.mock_stream_chunk_words
        accumulated = ""
        for i in range(0, len(words), step):
            accumulated += " ".join(words[i : i + step]) + " "
            yield ContentUpdate(text=accumulated.strip(), progress=progress_for(i, len(words), accumulated))
            await asyncio.sleep(self.config.mock_stream_delay_seconds)

    async def stream_page(
        self,
        request: GenerationRequest,
        title: str,
        metadata: PageMetadata,
        credential: ResolvedCredential,
    ) -> AsyncIterator[ContentUpdate]:
        if not credential.available:
            self.monitor.record(FallbackKind.MOCK_CONTENT, source="content", reason="no credential", title=title)
            text = mock_page_text(title, metadata)
            async for update in self._mock_words(text, lambda i, n, _: mock_page_progress(i, n)):
                yield update
            return

        accumulated = ""
        async for delta in self.upstream.generate_stream(
            content_prompt(request, title, metadata),
            system=WORLDBUILDING_SYSTEM,
            api_key=credential.api_key,  # type: ignore[arg-type]
        ):
            accumulated += delta
            yield ContentUpdate(text=accumulated, progress=page_progress(len(accumulated)))

    async def stream_section(
        self,
        request: SectionRequest,
        credential: ResolvedCredential,
    ) -> AsyncIterator[ContentUpdate]:
        if not credential.available:
            self.monitor.record(FallbackKind.MOCK_CONTENT, source="section", reason="no credential")
            text = mock_section_text(request.title, request.page_title)
            async for update in self._mock_words(text, lambda i, n, acc: section_progress(len(acc))):
                yield update
            return

        accumulated = ""
        async for delta in self.upstream.generate_stream(
            section_prompt(request),
            system=SECTION_SYSTEM,
            api_key=credential.api_key,  # type: ignore[arg-type]
        ):
            accumulated += delta
            yield ContentUpdate(text=accumulated.strip(), progress=section_progress(len(accumulated)))

    async def stream_marker_text(
        self,
        request: GenerationRequest,
        title: str,
        credential: ResolvedCredential,
    ) -> AsyncIterator[ContentUpdate]:
        """Raw marker-text buffer for the single-pass path; the caller parses it."""
        accumulated = ""
        async for delta in self.upstream.generate_stream(
            marker_text_prompt(request, title),
            api_key=credential.api_key,  # type: ignore[arg-type]
        ):
            accumulated += delta
            yield ContentUpdate(text=accumulated, progress=marker_text_progress(len(accumulated)))
