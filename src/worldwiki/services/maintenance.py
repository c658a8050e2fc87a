from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from worldwiki.core.base import ErrorLevel
from worldwiki.core.decorators import with_error_handling
from worldwiki.core.logging import get_logger

if TYPE_CHECKING:
    from worldwiki.infrastructure.credentials import InMemoryCredentialStore
    from worldwiki.infrastructure.stores import StoreBundle

logger = get_logger(__name__)


class StoreMaintenance:
    """Background sweep of expired entries in the in-process stores."""

    def __init__(
        self,
        stores: "StoreBundle",
        credential_store: "InMemoryCredentialStore | None" = None,
        interval_seconds: int = 60,
    ):
        self.stores = stores
        self.credential_store = credential_store
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()
        self._setup_jobs()

    def _setup_jobs(self):
        self.scheduler.add_job(
            self.prune_stores,
            "interval",
            seconds=self.interval_seconds,
            id="prune_stores",
            max_instances=1,
            coalesce=True,
        )

    async def start(self):
        self.scheduler.start()
        logger.info("StoreMaintenance started", interval_seconds=self.interval_seconds)

    async def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("StoreMaintenance shutdown complete")

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=False)
    async def prune_stores(self) -> dict[str, int]:
        """Drop expired quota buckets, empty rate-limit windows and stale credentials."""
        pruned = self.stores.prune()
        if self.credential_store is not None:
            pruned["credentials"] = self.credential_store.prune()
        if any(pruned.values()):
            logger.info("Pruned in-process stores", **pruned)
        return pruned

    def get_job_status(self) -> dict:
        """Get status of all scheduled jobs."""
        jobs = self.scheduler.get_jobs()
        return {
            "scheduler_running": self.scheduler.running,
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                    "func": job.func.__name__,
                }
                for job in jobs
            ],
        }
