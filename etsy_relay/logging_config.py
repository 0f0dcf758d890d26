"""
Root logging setup for the relay process.
"""
import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a pipe-delimited format on stdout."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
