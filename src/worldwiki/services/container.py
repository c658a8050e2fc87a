"""Wires the generation services together.

Both hosts build one container: the persistent server in its lifespan, the
function host on cold start.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from worldwiki.core.config import Settings, settings
from worldwiki.core.events import FallbackMonitor
from worldwiki.core.logging import get_logger
from worldwiki.infrastructure.credentials import CredentialStore, InMemoryCredentialStore
from worldwiki.infrastructure.llm import GenerationService, OpenAIGenerationService
from worldwiki.infrastructure.stores import StoreBundle, build_stores

from .content import ContentStreamer
from .credentials import CredentialResolver
from .metadata import MetadataGenerator
from .orchestrator import Orchestrator
from .rate_limiter import SlidingWindowRateLimiter
from .usage_counter import UsageCounter

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    monitor: FallbackMonitor
    stores: StoreBundle
    credential_store: CredentialStore
    usage: UsageCounter
    rate_limiter: SlidingWindowRateLimiter
    credentials: CredentialResolver
    upstream: GenerationService
    metadata: MetadataGenerator
    content: ContentStreamer
    orchestrator: Orchestrator

    async def close(self) -> None:
        close_upstream = getattr(self.upstream, "close", None)
        if close_upstream is not None:
            await close_upstream()
        await self.stores.close()
        logger.info("Service container closed")


def build_container(
    config: Settings = settings,
    upstream: GenerationService | None = None,
    credential_store: CredentialStore | None = None,
    redis_client: Redis | None = None,
    monitor: FallbackMonitor | None = None,
) -> ServiceContainer:
    monitor = monitor or FallbackMonitor()
    stores = build_stores(config, monitor, redis_client)
    credential_store = credential_store or InMemoryCredentialStore()
    upstream = upstream or OpenAIGenerationService(config)

    usage = UsageCounter(stores.counters, config.free_tier_daily_limit, bypass=config.bypass_usage_limits)
    credentials = CredentialResolver(credential_store, config, usage)
    metadata = MetadataGenerator(upstream, monitor, config.metadata_timeout_seconds)
    content = ContentStreamer(upstream, config, monitor)
    orchestrator = Orchestrator(config, usage, credentials, metadata, content, monitor)

    logger.info(
        "Services initialized",
        shared_store=stores.shared,
        environment=config.environment,
        user_api_keys=config.enable_user_api_keys,
        legacy_marker_stream=config.legacy_marker_stream,
    )
    return ServiceContainer(
        settings=config,
        monitor=monitor,
        stores=stores,
        credential_store=credential_store,
        usage=usage,
        rate_limiter=SlidingWindowRateLimiter(stores.windows, config, monitor),
        credentials=credentials,
        upstream=upstream,
        metadata=metadata,
        content=content,
        orchestrator=orchestrator,
    )
