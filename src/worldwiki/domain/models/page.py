"""Page data as pushed to the client."""

from typing import Any

from pydantic import Field

from worldwiki.core.base import ApplicationError

from .base import WireModel


class RelatedConcept(WireModel):
    term: str
    description: str = ""


class BasicFact(WireModel):
    name: str
    value: str = ""


class PageMetadata(WireModel):
    """Structured part of a page, produced before the prose."""

    categories: list[str] = Field(default_factory=list)
    clickable_terms: list[str] = Field(default_factory=list)
    related_concepts: list[RelatedConcept] = Field(default_factory=list)
    basic_facts: list[BasicFact] = Field(default_factory=list)


class UsageView(WireModel):
    """Free-tier usage after a generation. Derived, never stored."""

    usage_count: int
    daily_limit: int
    remaining: int

    @classmethod
    def from_count(cls, count: int, daily_limit: int) -> "UsageView":
        return cls(usage_count=count, daily_limit=daily_limit, remaining=max(0, daily_limit - count))


class PageSnapshot(PageMetadata):
    """State of one page at a point in the generation timeline."""

    id: str
    title: str
    content: str = ""
    is_partial: bool = True
    is_complete: bool = False
    has_metadata: bool = True
    progress: int | None = None
    usage_info: UsageView | None = None

    @classmethod
    def from_metadata(cls, page_id: str, title: str, metadata: PageMetadata, **fields: Any) -> "PageSnapshot":
        return cls(id=page_id, title=title, **metadata.model_dump(), **fields)

    def to_wire(self) -> dict[str, Any]:
        data = super().to_wire()
        if self.progress is None:
            data.pop("progress")
        # Only the terminal snapshot reports usage; null means the caller used an own credential
        if not self.is_complete:
            data.pop("usageInfo")
        return data


class SectionSnapshot(WireModel):
    """State of one generated section. Carries no page metadata."""

    title: str
    content: str = ""
    is_partial: bool = True
    is_complete: bool = False
    progress: int | None = None
    usage_info: UsageView | None = None

    def to_wire(self) -> dict[str, Any]:
        data = super().to_wire()
        if self.progress is None:
            data.pop("progress")
        if not self.is_complete:
            data.pop("usageInfo")
        return data


class StreamErrorEvent(WireModel):
    """Terminal event pushed when generation fails after streaming began."""

    is_error: bool = True
    is_partial: bool = False
    is_complete: bool = False
    code: str
    error: str
    message: str

    @classmethod
    def from_error(cls, error: ApplicationError) -> "StreamErrorEvent":
        payload = error.to_payload()
        return cls(code=payload["code"], error=payload["error"], message=payload["message"])
