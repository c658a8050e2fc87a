"""Domain models for WorldWiki."""

from .base import WireModel, capitalize_title
from .page import (
    BasicFact,
    PageMetadata,
    PageSnapshot,
    RelatedConcept,
    SectionSnapshot,
    StreamErrorEvent,
    UsageView,
)
from .requests import (
    ApiKeyPayload,
    Caller,
    GenerationKind,
    GenerationRequest,
    SectionRequest,
    parse_payload,
)
from .usage import (
    CredentialSource,
    RateLimitResult,
    ResolvedCredential,
    UsageRecord,
    UsageStatus,
    utc_date,
)
from .world import ALL_CATEGORIES, WORLDBUILDING_CATEGORIES, WorldFacts

__all__ = [
    "ALL_CATEGORIES",
    "WORLDBUILDING_CATEGORIES",
    "ApiKeyPayload",
    "BasicFact",
    "Caller",
    "CredentialSource",
    # Requests
    "GenerationKind",
    "GenerationRequest",
    # Page
    "PageMetadata",
    "PageSnapshot",
    "RateLimitResult",
    "RelatedConcept",
    "ResolvedCredential",
    "SectionRequest",
    "SectionSnapshot",
    "StreamErrorEvent",
    # Usage
    "UsageRecord",
    "UsageStatus",
    "UsageView",
    "WireModel",
    # World
    "WorldFacts",
    "capitalize_title",
    "parse_payload",
    "utc_date",
]
