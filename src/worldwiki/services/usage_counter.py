"""Free-tier daily quota."""

from collections.abc import Callable
from datetime import UTC, datetime

from worldwiki.core.logging import get_logger
from worldwiki.domain.models import UsageRecord, UsageView, utc_date
from worldwiki.infrastructure.stores import CounterStore

logger = get_logger(__name__)

# Two days so a bucket survives clock skew between hosts around midnight
QUOTA_TTL_SECONDS = 48 * 60 * 60


def quota_key(identity: str, date: str) -> str:
    return f"quota:{identity}:{date}"


class UsageCounter:
    """Counts generations per caller per UTC day.

    The bucket date is part of the key, so a new day starts from zero
    without any reset job.
    """

    def __init__(
        self,
        store: CounterStore,
        daily_limit: int,
        bypass: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.store = store
        self.daily_limit = daily_limit
        self.bypass = bypass
        self._clock = clock

    def _today(self) -> str:
        return utc_date(self._clock())

    async def get(self, identity: str) -> UsageRecord:
        today = self._today()
        count = await self.store.get(quota_key(identity, today))
        return UsageRecord(identity=identity, date=today, count=count)

    async def increment(self, identity: str) -> UsageRecord:
        today = self._today()
        count = await self.store.increment(quota_key(identity, today), QUOTA_TTL_SECONDS)
        logger.info("Usage incremented", quota_subject=identity, usage_count=count, daily_limit=self.daily_limit)
        return UsageRecord(identity=identity, date=today, count=count)

    async def has_exceeded(self, identity: str) -> bool:
        if self.bypass:
            return False
        record = await self.get(identity)
        return record.count >= self.daily_limit

    def view(self, record: UsageRecord) -> UsageView:
        return UsageView.from_count(record.count, self.daily_limit)

    async def reset(self, identity: str) -> None:
        await self.store.delete(quota_key(identity, self._today()))
