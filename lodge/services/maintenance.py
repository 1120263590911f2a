"""
Periodic cache maintenance.
Uses APScheduler to sweep expired cache entries and log service health.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from lodge.services.client import DataAccessClient


class CacheMaintenance:
    """Interval job that removes expired entries from a DataAccessClient's cache."""

    JOB_ID = "cache_cleanup_job"

    def __init__(self, client: DataAccessClient, interval_minutes: int = 10):
        self.client = client
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()
        self._is_running = False

    async def cleanup_job(self) -> None:
        """Sweep expired entries and report open circuits."""
        try:
            self.run_now()
        except Exception as e:
            logger.error(f"Error in scheduled cache cleanup: {e}")

    def run_now(self) -> int:
        """Run one cleanup pass immediately. Returns the number of removed entries."""
        removed = self.client.cache.cleanup_expired()
        stats = self.client.cache.get_stats()
        logger.info(
            f"Cache cleanup removed {removed} expired entries "
            f"({stats.size}/{stats.max_size} in use, hit rate {stats.hit_rate:.2%})"
        )

        open_circuits = self.client.circuit_breakers.get_open_circuits()
        if open_circuits:
            logger.warning(f"Open circuits: {', '.join(open_circuits)}")
        return removed

    def start(self) -> None:
        """Start the scheduler."""
        if self._is_running:
            logger.warning("Cache maintenance is already running")
            return

        self.scheduler.add_job(
            self.cleanup_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            name="Cache Cleanup",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Cache maintenance started: cleaning every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            logger.warning("Cache maintenance is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache maintenance stopped")

    def is_running(self) -> bool:
        return self._is_running
