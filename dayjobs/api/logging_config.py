"""Logging setup for the dayjobs API."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging once per process."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger for an API module."""
    return logging.getLogger(name)
