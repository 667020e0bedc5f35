"""Console logging for the command line entry point."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the package logger.

    Library modules only create loggers, handlers are attached here once.
    Calling this twice does not add a second handler.
    """
    package_logger = logging.getLogger("topology_reconciler")
    package_logger.setLevel(level)

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
        package_logger.propagate = False
