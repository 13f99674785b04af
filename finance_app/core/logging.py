"""
Logging utilities for the FastAPI application and insight workers.

Provides a consistent logging format and configuration.
"""

import logging
import sys

_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "google.auth")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and keep chatty client libraries at WARNING."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
