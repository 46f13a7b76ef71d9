"""Logging configuration utilities for the API Gateway."""
import logging
import os

SERVICE_NAME = "API-Gateway"


def setup_logging() -> None:
    """Configure root logging based on the LOG_LEVEL environment variable.

    httpx logs one INFO line per outbound request; those duplicate the
    gateway's own per-request line, so they only show at DEBUG.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format=f"%(asctime)s %(levelname)s [{SERVICE_NAME}] %(name)s - %(message)s",
    )
    if level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
