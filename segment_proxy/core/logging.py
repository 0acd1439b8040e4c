"""Logging configuration utilities for the Segment proxy service."""
import logging

SERVICE_NAME = "segment-proxy"


class _VersionFilter(logging.Filter):
    """Stamp every record with the running build version."""

    def __init__(self, app_version: str):
        super().__init__()
        self.app_version = app_version

    def filter(self, record: logging.LogRecord) -> bool:
        record.app_version = self.app_version
        return True


def setup_logging(level: str = "INFO", app_version: str = "not-set") -> logging.Logger:
    """Configure root logging once and return the service logger.

    The returned logger is meant to be handed to the components that log,
    rather than looked up from module globals.
    """
    handler = logging.StreamHandler()
    handler.addFilter(_VersionFilter(app_version))
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(app_version)s] - %(message)s")
    )
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    log = logging.getLogger(SERVICE_NAME)
    log.debug("Logger initialized")
    return log
