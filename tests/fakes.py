"""Test doubles for the upstream service, push sinks and Redis."""

import asyncio
from typing import Any

import redis.exceptions

from worldwiki.core.config import Settings
from worldwiki.core.errors import UpstreamGenerationError
from worldwiki.protocol.push_stream import ClientDisconnected, PushStreamDecoder
from worldwiki.services.container import build_container

SERVICE_KEY = "sk-service-key-000000000000000000"
USER_KEY = "sk-user-key-0000000000000000000000"

UPSTREAM_METADATA = {
    "categories": ["Landscapes & Terrains", "Architecture"],
    "clickableTerms": ["Cloud Anchors", "Skywright Guild", "Crystal Updrafts", "Mistglass", "Tether Bridges"],
    "relatedConcepts": [
        {"term": "Aerostatic Masonry", "description": "Stonework that floats"},
        {"term": "Cloud Tithes", "description": "Taxes paid in condensed vapour"},
    ],
    "basicFacts": [
        {"name": "Altitude", "value": "3,200 m"},
        {"name": "Founded", "value": "Year 412 of the Drift"},
        {"name": "Population", "value": "18,000"},
    ],
}

PAGE_CHUNKS = [
    "The floating city ",
    "rests on Cloud Anchors ",
    "driven deep into the crystal clouds. ",
    "Its Tether Bridges sway in the Crystal Updrafts.",
]

MARKER_CHUNKS = [
    "CONTENT:\nThe Skywright Guild maintains the anchors.\n",
    "CATEGORIES:\nArchitecture\nTechnology\n",
    "CLICKABLE_TERMS:\nSkywright Guild\nCloud Anchors\n",
    "RELATED_CONCEPTS:\nAerostatic Masonry | Stonework that floats\n",
    "BASIC_FACTS:\nAltitude | 3,200 m\nFounded | Year 412",
]


class FakeGenerationService:
    """Scripted upstream. ``fail_after`` breaks the stream after that many chunks."""

    model = "fake-model"

    def __init__(
        self,
        metadata: dict[str, Any] | None = None,
        chunks: list[str] | None = None,
        fail_metadata: Exception | None = None,
        fail_after: int | None = None,
        metadata_delay: float = 0,
        chunk_delay: float = 0,
    ):
        self.metadata = UPSTREAM_METADATA if metadata is None else metadata
        self.chunks = PAGE_CHUNKS if chunks is None else chunks
        self.fail_metadata = fail_metadata
        self.fail_after = fail_after
        self.metadata_delay = metadata_delay
        self.chunk_delay = chunk_delay
        self.structured_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []
        self.chunks_sent = 0

    @property
    def calls(self) -> int:
        return len(self.structured_calls) + len(self.stream_calls)

    async def generate_structured(self, prompt, schema, *, system=None, api_key):
        self.structured_calls.append({"prompt": prompt, "schema": schema, "system": system, "api_key": api_key})
        if self.metadata_delay:
            await asyncio.sleep(self.metadata_delay)
        if self.fail_metadata is not None:
            raise self.fail_metadata
        return self.metadata

    async def generate_stream(self, prompt, *, system=None, api_key):
        self.stream_calls.append({"prompt": prompt, "system": system, "api_key": api_key})
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise UpstreamGenerationError("Upstream connection reset")
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            self.chunks_sent += 1
            yield chunk


class RecordingSink:
    def __init__(self, disconnect_after: int | None = None):
        self.writes: list[str] = []
        self.closed = False
        self.disconnect_after = disconnect_after

    async def write(self, data: str) -> None:
        if self.disconnect_after is not None and len(self.writes) >= self.disconnect_after:
            raise ClientDisconnected("gone")
        self.writes.append(data)

    async def close(self) -> None:
        self.closed = True

    def events(self) -> list[dict[str, Any]]:
        decoder = PushStreamDecoder()
        return decoder.feed("".join(self.writes)) + decoder.finish()


class FailingRedis:
    """Every command fails as if the server were unreachable."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self) -> None:
        self.calls += 1
        raise redis.exceptions.ConnectionError("Connection refused")

    async def get(self, key):
        self._fail()

    async def delete(self, key):
        self._fail()

    def pipeline(self, transaction=True):
        self._fail()

    async def ping(self):
        self._fail()

    async def aclose(self):
        return None


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "openai_api_key": SERVICE_KEY,
        "redis_url": None,
        "environment": "production",
        "enable_user_api_keys": False,
        "free_tier_daily_limit": 5,
        "bypass_usage_limits": False,
        "legacy_marker_stream": False,
        "mock_stream_delay_seconds": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_container(config: Settings | None = None, upstream: FakeGenerationService | None = None, **kwargs):
    return build_container(config or make_settings(), upstream=upstream or FakeGenerationService(), **kwargs)


def strip_ids(events: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{key: value for key, value in event.items() if key != "id"} for event in events]
