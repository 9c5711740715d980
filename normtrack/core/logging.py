"""
normtrack: Logging Setup

This module provides centralised logging configuration and a helper for
obtaining namespaced loggers.

Key responsibilities:
- Configure root logging handlers and formats
- Provide a helper to obtain module-specific loggers

External dependencies:
- logging: Python standard library logging framework

Thread safety: Thread-safe (logging module is process-global and
thread-safe under normal usage)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

import logging
import sys
from typing import Optional

from normtrack.core.config import TrackerConfig, get_config

# ============================================================================
# Public API
# ============================================================================


def setup_logging(config: Optional[TrackerConfig] = None, *, force: bool = False) -> None:
    """Configure application-wide logging.

    This function initialises the root logger and the ``normtrack``
    namespace logger. It is idempotent: calling it multiple times will not
    attach duplicate handlers.

    Messages always go to stdout; a file handler is added when
    ``config.log_file`` is set.

    Args:
        config: Optional configuration object. If omitted, the global
            configuration will be loaded via :func:`get_config`.
        force: Replace handlers installed by an earlier call, e.g. once
            the CLI has loaded an explicit `.env` file.
    """

    if config is None:
        config = get_config()

    root_logger = logging.getLogger()

    # Avoid attaching duplicate handlers if setup_logging is called again.
    if root_logger.handlers:
        if not force:
            return
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)
    logging.getLogger("normtrack").setLevel(log_level)


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger for the given module.

    Args:
        name: Module-level ``__name__`` or any descriptive logger name.

    Returns:
        A :class:`logging.Logger` instance under the ``normtrack``
        namespace.
    """

    setup_logging()
    if name == "normtrack" or name.startswith("normtrack."):
        return logging.getLogger(name)
    return logging.getLogger(f"normtrack.{name}")
