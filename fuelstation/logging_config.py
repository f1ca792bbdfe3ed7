"""
Logging configuration for the fuelstation service.

All modules log through ``logging.getLogger(__name__)`` so their records end
up under the ``fuelstation`` logger configured here.
"""
import logging
import sys

APP_LOGGER = "fuelstation"


def setup_logging(level: str = "INFO", app_name: str = APP_LOGGER) -> logging.Logger:
    """
    Attach a console handler to the application logger.

    Args:
        level: Level name for the application logger (DEBUG, INFO, ...)
        app_name: Logger to configure

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(level.upper())

    # Avoid duplicate handlers when the app module is imported twice
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
