"""
Cache sweep scheduler.

Expired entries are only pruned lazily on writes to their shard; this job
removes entries whose stale window has closed across every shard.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from siteintel.services.cache import TTLCache


class CacheSweepScheduler:
    """
    Periodic cleanup of a TTLCache.

    Usage:
        sweeper = CacheSweepScheduler(service.cache, interval_minutes=10)
        sweeper.start()
        ...
        sweeper.stop()
    """

    def __init__(self, cache: TTLCache, interval_minutes: int = 10):
        self.scheduler = AsyncIOScheduler()
        self.cache = cache
        self.interval_minutes = interval_minutes
        self._is_running = False

    def sweep_job(self) -> int:
        """Remove entries past their stale window."""
        removed = self.cache.cleanup_expired()
        if removed:
            logger.info(f"Cache sweep removed {removed} entries ({len(self.cache)} left)")
        return removed

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        if self._is_running:
            logger.warning("Cache sweep scheduler is already running")
            return

        self.scheduler.add_job(
            self.sweep_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id="cache_sweep_job",
            name="Cache Sweep",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(f"Cache sweep scheduler started: every {self.interval_minutes} minutes")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            logger.warning("Cache sweep scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache sweep scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running
