"""
Logging utilities for the API process and the summary workers.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "urllib3")


def configure_logging(level: str = "INFO", *, debug_model_io: bool = False) -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if debug_model_io:
        logging.getLogger("app.clients.model_gateway").setLevel(logging.DEBUG)


__all__ = ["configure_logging"]
