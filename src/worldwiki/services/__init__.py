"""Generation services."""

from .container import ServiceContainer, build_container
from .content import ContentStreamer, ContentUpdate
from .credentials import CredentialResolver
from .maintenance import StoreMaintenance
from .metadata import METADATA_SCHEMA, MetadataGenerator
from .orchestrator import GenerationJob, GenerationState, Orchestrator, PageJob, SectionJob
from .rate_limiter import CombinedRateLimit, SlidingWindowRateLimiter
from .usage_counter import UsageCounter, quota_key

__all__ = [
    "METADATA_SCHEMA",
    "CombinedRateLimit",
    "ContentStreamer",
    "ContentUpdate",
    "CredentialResolver",
    "GenerationJob",
    "GenerationState",
    "MetadataGenerator",
    "Orchestrator",
    "PageJob",
    "SectionJob",
    "ServiceContainer",
    "SlidingWindowRateLimiter",
    "StoreMaintenance",
    "UsageCounter",
    "build_container",
    "quota_key",
]
