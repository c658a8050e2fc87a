"""Caller credential storage.

Production deployments inject their own vault; the in-process store keeps
credentials for a week and forgets them on restart.
"""

import time
from collections.abc import Callable
from typing import Protocol

from worldwiki.core.logging import get_logger

logger = get_logger(__name__)

CREDENTIAL_TTL_SECONDS = 7 * 24 * 60 * 60


class CredentialStore(Protocol):
    async def get(self, identity: str) -> str | None: ...

    async def set(self, identity: str, credential: str) -> None: ...

    async def remove(self, identity: str) -> None: ...

    async def has(self, identity: str) -> bool: ...


class InMemoryCredentialStore:
    def __init__(self, ttl_seconds: int = CREDENTIAL_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._credentials: dict[str, tuple[str, float]] = {}

    async def get(self, identity: str) -> str | None:
        entry = self._credentials.get(identity)
        if entry is None:
            return None
        credential, stored_at = entry
        if self._clock() - stored_at > self._ttl_seconds:
            del self._credentials[identity]
            logger.info("Stored credential expired", caller_identity=identity)
            return None
        return credential

    async def set(self, identity: str, credential: str) -> None:
        self._credentials[identity] = (credential, self._clock())

    async def remove(self, identity: str) -> None:
        self._credentials.pop(identity, None)

    async def has(self, identity: str) -> bool:
        return await self.get(identity) is not None

    def prune(self) -> int:
        now = self._clock()
        expired = [key for key, (_, stored_at) in self._credentials.items() if now - stored_at > self._ttl_seconds]
        for key in expired:
            del self._credentials[key]
        return len(expired)
