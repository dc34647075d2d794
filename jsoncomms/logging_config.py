# jsoncomms/logging_config.py

"""
Structured JSON logging for services built on jsoncomms.

Sets up the root logger with a single stdout handler emitting one JSON object
per event, using the `python-json-logger` package. Fields passed through
`extra=` (request path, rejection reason, status, ...) become top-level keys.

💡 Control verbosity with the JSONCOMMS_LOG_LEVEL environment variable.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Replace any existing root handlers with one JSON handler on stdout.

    Args:
        level (str): Log level (e.g., "DEBUG", "INFO", "ERROR").
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
