"""
Lodge data-access entry point.
Warms the public caches and reports the health of the data-access stack.
"""

import asyncio
import json

from loguru import logger

from lodge.datasource import LodgeApi
from lodge.logging_config import setup_logging
from lodge.services.errors import ServiceError
from lodge.services.maintenance import CacheMaintenance
from lodge.settings import global_settings


async def warm_cache(api: LodgeApi) -> None:
    """Load the public datasets once so the first page views hit the cache."""
    loaders = {
        "events": api.get_events,
        "next_event": api.get_next_upcoming_event,
        "news": api.get_news,
        "blog_posts": api.get_blog_posts,
        "testimonials": api.get_testimonials,
        "site_settings": api.get_site_settings,
    }
    results = await asyncio.gather(
        *(loader() for loader in loaders.values()), return_exceptions=True
    )
    for name, result in zip(loaders, results):
        if isinstance(result, ServiceError):
            logger.warning(f"Could not warm {name}: {result}")
        elif isinstance(result, BaseException):
            raise result
        else:
            logger.info(f"Warmed {name}")


async def main() -> None:
    setup_logging(global_settings.log_level)
    logger.info("Starting lodge data-access layer...")

    api = LodgeApi.from_settings(global_settings)
    maintenance = CacheMaintenance(
        api.client, interval_minutes=global_settings.cache_cleanup_interval_minutes
    )

    try:
        if not await api.check_connection():
            logger.warning("Database unavailable, continuing with cold cache")

        maintenance.start()
        await warm_cache(api)

        logger.info(
            "Health status:\n"
            + json.dumps(api.client.get_health_status(), indent=2, default=str)
        )
    finally:
        if maintenance.is_running():
            maintenance.stop()
        await api.close()
        logger.info("Lodge data-access layer stopped")


if __name__ == "__main__":
    asyncio.run(main())
