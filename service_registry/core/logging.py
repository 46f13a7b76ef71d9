"""Logging configuration utilities for the Service Registry."""
import logging
import os

SERVICE_NAME = "Service-Registry"


def setup_logging() -> None:
    """Configure root logging based on the LOG_LEVEL environment variable.

    Health probes go out every interval for every record; httpx request
    lines for them only show at DEBUG.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format=f"%(asctime)s %(levelname)s [{SERVICE_NAME}] %(name)s - %(message)s",
    )
    if level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
