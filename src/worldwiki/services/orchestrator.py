"""Generation state machine.

One job per request. Admission (validation, quota, credential) runs before
anything is streamed and raises structured errors; once streaming has begun
every failure is reported as a terminal error event on the push stream
instead.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

from worldwiki.core.base import ApplicationError, ErrorCode, ErrorDetails, QuotaErrorDetails
from worldwiki.core.config import Settings
from worldwiki.core.errors import CredentialError, QuotaExceededError, UpstreamGenerationError
from worldwiki.core.events import FallbackMonitor
from worldwiki.core.logging import get_logger
from worldwiki.domain.metadata_source import MarkerTextMetadata
from worldwiki.domain.models import (
    Caller,
    GenerationRequest,
    PageMetadata,
    PageSnapshot,
    ResolvedCredential,
    SectionRequest,
    SectionSnapshot,
    StreamErrorEvent,
    UsageView,
    parse_payload,
)
from worldwiki.protocol.push_stream import PushSink, PushStreamEncoder

from .content import PAGE_PROGRESS_START, ContentStreamer, ContentUpdate
from .credentials import CredentialResolver
from .metadata import MetadataGenerator
from .usage_counter import UsageCounter

logger = get_logger(__name__)


class GenerationState(str, Enum):
    VALIDATING = "validating"
    ADMISSION_CHECKING = "admission_checking"
    GENERATING_METADATA = "generating_metadata"
    EMITTING_INITIAL = "emitting_initial"
    STREAMING_CONTENT = "streaming_content"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({GenerationState.DONE, GenerationState.FAILED})


def _new_job_id() -> str:
    return uuid4().hex[:9]


@dataclass(kw_only=True)
class GenerationJob:
    operation: str
    caller: Caller
    credential: ResolvedCredential = field(default_factory=ResolvedCredential)
    mock: bool = False
    job_id: str = field(default_factory=_new_job_id)
    state: GenerationState = GenerationState.VALIDATING
    history: list[GenerationState] = field(default_factory=lambda: [GenerationState.VALIDATING])
    usage: UsageView | None = None

    def transition(self, state: GenerationState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Job {self.job_id} already {self.state.value}, cannot move to {state.value}")
        self.state = state
        self.history.append(state)
        logger.debug("Generation state changed", job_id=self.job_id, state=state.value)

    @property
    def free_tier(self) -> bool:
        return not self.credential.has_own_credential

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(kw_only=True)
class PageJob(GenerationJob):
    request: GenerationRequest

    @property
    def title(self) -> str:
        return self.request.title


@dataclass(kw_only=True)
class SectionJob(GenerationJob):
    request: SectionRequest

    @property
    def title(self) -> str:
        return self.request.title


class Orchestrator:
    """Runs page and section generation for both hosts."""

    def __init__(
        self,
        config: Settings,
        usage: UsageCounter,
        credentials: CredentialResolver,
        metadata: MetadataGenerator,
        content: ContentStreamer,
        monitor: FallbackMonitor,
        id_factory: Callable[[], str] = _new_job_id,
    ):
        self.config = config
        self.usage = usage
        self.credentials = credentials
        self.metadata = metadata
        self.content = content
        self.monitor = monitor
        self._id_factory = id_factory

    # Admission

    async def _admit(self, job: GenerationJob) -> None:
        job.transition(GenerationState.ADMISSION_CHECKING)
        job.credential = await self.credentials.resolve(job.caller.identity)

        subject = job.caller.quota_subject
        if job.free_tier and await self.usage.has_exceeded(subject):
            record = await self.usage.get(subject)
            job.transition(GenerationState.FAILED)
            raise QuotaExceededError(
                f"You've used {record.count}/{self.usage.daily_limit} free generations today. "
                "Please provide your own API key for unlimited usage.",
                QuotaErrorDetails(
                    source="orchestrator",
                    operation=job.operation,
                    usage_count=record.count,
                    daily_limit=self.usage.daily_limit,
                ),
            )

        if not job.credential.available:
            if not self.config.is_development:
                job.transition(GenerationState.FAILED)
                raise CredentialError(
                    "Please provide your OpenAI API key to continue.",
                    ErrorDetails(source="orchestrator", operation=job.operation),
                )
            job.mock = True

        logger.info(
            "Generation admitted",
            job_id=job.job_id,
            credential_source=job.credential.source.value,
            free_tier=job.free_tier,
            mock=job.mock,
        )

    async def admit_page(self, payload: Any, caller: Caller) -> PageJob:
        request = parse_payload(GenerationRequest, payload, "generate_page")
        job = PageJob(operation="generate_page", caller=caller, request=request, job_id=self._id_factory())
        await self._admit(job)
        return job

    async def admit_section(self, payload: Any, caller: Caller) -> SectionJob:
        request = parse_payload(SectionRequest, payload, "generate_section")
        job = SectionJob(operation="generate_section", caller=caller, request=request, job_id=self._id_factory())
        await self._admit(job)
        return job

    # Streaming

    async def _finalize(self, job: GenerationJob) -> UsageView | None:
        job.transition(GenerationState.FINALIZING)
        if job.free_tier:
            record = await self.usage.increment(job.caller.quota_subject)
            job.usage = self.usage.view(record)
        return job.usage

    async def _fail(self, job: GenerationJob, encoder: PushStreamEncoder, error: Exception) -> StreamErrorEvent:
        if isinstance(error, TimeoutError):
            error = UpstreamGenerationError(
                f"Generation timed out in {job.state.value}",
                code=ErrorCode.UPSTREAM_TIMEOUT,
            )
        elif not isinstance(error, ApplicationError):
            error = ApplicationError("An unexpected error occurred", code=ErrorCode.INTERNAL_ERROR)

        logger.warning(
            "Generation failed while streaming",
            job_id=job.job_id,
            state=job.state.value,
            code=error.code.value,
            error=error.message,
        )
        if not job.finished:
            job.transition(GenerationState.FAILED)
        event = StreamErrorEvent.from_error(error)
        await encoder.send(event)
        return event

    async def _run(
        self,
        job: GenerationJob,
        sink: PushSink,
        body: Callable[[PushStreamEncoder], Any],
    ) -> Any:
        encoder = PushStreamEncoder(sink, self.monitor)
        try:
            return await body(encoder)
        except (ApplicationError, TimeoutError) as e:
            return await self._fail(job, encoder, e)
        except Exception as e:
            logger.error("Unexpected generation failure", job_id=job.job_id, exc_info=True)
            return await self._fail(job, encoder, e)
        finally:
            await encoder.close()
            logger.info(
                "Generation stream closed",
                job_id=job.job_id,
                state=job.state.value,
                events_sent=encoder.sent,
                events_dropped=encoder.dropped,
            )

    async def stream_page(self, job: PageJob, sink: PushSink) -> PageSnapshot | StreamErrorEvent:
        """Stream one page; returns the terminal snapshot or the error event that ended the stream."""
        if self.config.legacy_marker_stream and not job.mock:
            return await self._run(job, sink, lambda encoder: self._marker_text_page(job, encoder))
        return await self._run(job, sink, lambda encoder: self._two_phase_page(job, encoder))

    async def _two_phase_page(self, job: PageJob, encoder: PushStreamEncoder) -> PageSnapshot:
        title = job.title

        job.transition(GenerationState.GENERATING_METADATA)
        metadata = await self.metadata.generate(job.request, title, job.credential)

        job.transition(GenerationState.EMITTING_INITIAL)
        await encoder.send(PageSnapshot.from_metadata(job.job_id, title, metadata, progress=PAGE_PROGRESS_START))

        job.transition(GenerationState.STREAMING_CONTENT)
        last = ContentUpdate(text="", progress=PAGE_PROGRESS_START)
        async with asyncio.timeout(self.config.content_timeout_seconds):
            async for update in self.content.stream_page(job.request, title, metadata, job.credential):
                last = update
                await encoder.send(
                    PageSnapshot.from_metadata(
                        job.job_id, title, metadata, content=update.text, progress=update.progress
                    )
                )

        usage = await self._finalize(job)
        terminal = PageSnapshot.from_metadata(
            job.job_id,
            title,
            metadata,
            content=last.text.strip(),
            is_partial=False,
            is_complete=True,
            usage_info=usage,
        )
        await encoder.send(terminal)
        job.transition(GenerationState.DONE)
        return terminal

    async def _marker_text_page(self, job: PageJob, encoder: PushStreamEncoder) -> PageSnapshot:
        """Single upstream stream whose marker-text buffer is re-parsed after every chunk."""
        title = job.title
        buffer = ""

        job.transition(GenerationState.STREAMING_CONTENT)
        async with asyncio.timeout(self.config.content_timeout_seconds):
            async for update in self.content.stream_marker_text(job.request, title, job.credential):
                buffer = update.text
                fields = MarkerTextMetadata(buffer=buffer).extract()
                await encoder.send(
                    PageSnapshot.from_metadata(
                        job.job_id,
                        title,
                        fields.metadata,
                        content=fields.content,
                        has_metadata=fields.metadata != PageMetadata(),
                        progress=update.progress,
                    )
                )

        fields = MarkerTextMetadata(buffer=buffer).extract()
        if not fields.metadata.categories or not fields.metadata.clickable_terms:
            logger.warning(
                "Marker text produced few page fields",
                job_id=job.job_id,
                categories=len(fields.metadata.categories),
                clickable_terms=len(fields.metadata.clickable_terms),
                buffer_tail=buffer[-1500:],
            )

        usage = await self._finalize(job)
        terminal = PageSnapshot.from_metadata(
            job.job_id,
            title,
            fields.metadata,
            content=fields.content,
            is_partial=False,
            is_complete=True,
            usage_info=usage,
        )
        await encoder.send(terminal)
        job.transition(GenerationState.DONE)
        return terminal

    async def stream_section(self, job: SectionJob, sink: PushSink) -> SectionSnapshot | StreamErrorEvent:
        return await self._run(job, sink, lambda encoder: self._section(job, encoder))

    async def _section(self, job: SectionJob, encoder: PushStreamEncoder) -> SectionSnapshot:
        title = job.title

        # Sections have no metadata phase
        job.transition(GenerationState.STREAMING_CONTENT)
        last = ContentUpdate(text="", progress=0)
        async with asyncio.timeout(self.config.content_timeout_seconds):
            async for update in self.content.stream_section(job.request, job.credential):
                last = update
                await encoder.send(SectionSnapshot(title=title, content=update.text, progress=update.progress))

        usage = await self._finalize(job)
        terminal = SectionSnapshot(
            title=title,
            content=last.text.strip(),
            is_partial=False,
            is_complete=True,
            usage_info=usage,
        )
        await encoder.send(terminal)
        job.transition(GenerationState.DONE)
        return terminal

    # Convenience

    async def generate_page(self, payload: Any, caller: Caller, sink: PushSink) -> PageSnapshot | StreamErrorEvent:
        job = await self.admit_page(payload, caller)
        return await self.stream_page(job, sink)

    async def generate_section(
        self,
        payload: Any,
        caller: Caller,
        sink: PushSink,
    ) -> SectionSnapshot | StreamErrorEvent:
        job = await self.admit_section(payload, caller)
        return await self.stream_section(job, sink)
