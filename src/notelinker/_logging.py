"""Logging configuration for notelinker.

This module provides consistent logging across the codebase.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

    log.debug("Detailed info for debugging")
    log.info("General operational info")
    log.warning("Unexpected but handled situation")

The log level can be configured via the NOTELINKER_LOG_LEVEL environment variable:
    - DEBUG: Detailed debugging information
    - INFO: General operational messages (default)
    - WARNING: Unexpected situations that were handled
    - ERROR: Errors that prevented an operation
"""

import logging
import os
import sys

PACKAGE_LOGGER = "notelinker"


def configure_logging() -> None:
    """Configure logging for the notelinker package.

    Call this once at application startup (the CLI does it for you).
    Subsequent calls are no-ops.
    """
    root_logger = logging.getLogger(PACKAGE_LOGGER)

    # Skip if already configured (has handlers)
    if root_logger.handlers:
        return

    level_name = os.environ.get("NOTELINKER_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="[%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Prevent propagation to root logger (avoids duplicate messages)
    root_logger.propagate = False


def set_quiet_mode(quiet: bool) -> None:
    """Only let errors through when quiet is set, restore the env level otherwise."""
    root_logger = logging.getLogger(PACKAGE_LOGGER)
    if quiet:
        level = logging.ERROR
    else:
        level_name = os.environ.get("NOTELINKER_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
