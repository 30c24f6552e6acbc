"""
Logging setup for the worker process.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Send package logs to stdout so deploy logs show sync progress."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s:     %(message)s"))
    logger = logging.getLogger("hubspot_sync")
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(handler)
    logger.propagate = True
    return logger
