import logging

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging from settings (DEBUG forces debug level)."""
    if settings.DEBUG:
        level = "DEBUG"
    level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
