"""
Structured logging helpers.
"""

from __future__ import annotations

import json
import logging
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def configure_logging(verbose: bool = False) -> None:
    """Set the package log level; verbose mode adds a formatted stderr handler.

    Called from the CLI entry point only. Without a handler, warnings fall
    through to logging's last-resort stderr output.
    """
    package_logger = logging.getLogger("multiprompt")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if verbose and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
