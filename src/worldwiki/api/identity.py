"""Who the caller is and where the request came from.

Token verification belongs to an external identity provider; the default
verifier trusts an ``X-User-Id`` header set by that provider's edge.
"""

from collections.abc import Mapping
from typing import Protocol

USER_ID_HEADER = "x-user-id"
UNKNOWN_IP = "unknown"


class IdentityVerifier(Protocol):
    async def verify(self, headers: Mapping[str, str]) -> str | None:
        """Caller identity, or None for an anonymous caller."""
        ...


class HeaderIdentityVerifier:
    def __init__(self, header: str = USER_ID_HEADER):
        self.header = header.lower()

    async def verify(self, headers: Mapping[str, str]) -> str | None:
        identity = headers.get(self.header, "").strip()
        return identity or None


def client_ip(headers: Mapping[str, str], client_host: str | None = None) -> str:
    """First X-Forwarded-For hop, else X-Real-IP, else the socket peer."""
    forwarded = headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return client_host or UNKNOWN_IP
