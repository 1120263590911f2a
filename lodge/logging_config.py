import sys

from loguru import logger


def setup_logging(level: str = "INFO") -> None:
    """Keep loguru's default stderr sink, filtered at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
