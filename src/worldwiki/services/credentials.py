"""Which upstream credential a request runs on."""

from worldwiki.core.config import Settings
from worldwiki.core.logging import get_logger
from worldwiki.domain.models import CredentialSource, ResolvedCredential, UsageStatus
from worldwiki.infrastructure.credentials import CredentialStore

from .usage_counter import UsageCounter

logger = get_logger(__name__)


class CredentialResolver:
    """Chooses between a caller's own credential and the service default.

    Only decides; storing credentials belongs to the credential store.
    """

    def __init__(self, store: CredentialStore, config: Settings, usage: UsageCounter):
        self.store = store
        self.config = config
        self.usage = usage

    async def _own_credential(self, identity: str | None) -> str | None:
        if not self.config.enable_user_api_keys or identity is None:
            return None
        return await self.store.get(identity)

    async def resolve(self, identity: str | None) -> ResolvedCredential:
        own = await self._own_credential(identity)
        if own:
            return ResolvedCredential(api_key=own, has_own_credential=True, source=CredentialSource.USER)

        default = self.config.default_api_key
        if default:
            return ResolvedCredential(api_key=default, source=CredentialSource.SERVICE)
        return ResolvedCredential()

    async def usage_status(self, identity: str) -> UsageStatus:
        if await self._own_credential(identity):
            return UsageStatus(has_user_api_key=True, usage_count=0, daily_limit=0, remaining=0, unlimited=True)

        view = self.usage.view(await self.usage.get(identity))
        return UsageStatus(
            has_user_api_key=False,
            usage_count=view.usage_count,
            daily_limit=view.daily_limit,
            remaining=view.remaining,
            unlimited=False,
        )

    async def has_key(self, identity: str) -> bool:
        return await self.store.has(identity)

    async def store_key(self, identity: str, api_key: str) -> None:
        await self.store.set(identity, api_key)
        logger.info("Stored caller credential", caller_identity=identity)

    async def remove_key(self, identity: str) -> None:
        await self.store.remove(identity)
        logger.info("Removed caller credential", caller_identity=identity)
