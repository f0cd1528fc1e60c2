"""
Logging configuration for the compositor bridge.

Environment Variables:
    VCB_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
"""

import logging
import os
import sys
from typing import Optional


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    name: str = "vcb"
) -> logging.Logger:
    """
    Setup logging for the bridge.

    Args:
        level: Log level. Default from VCB_LOG_LEVEL (DEBUG when VCB_DEBUG is set) or INFO.
        format_string: Custom format. Default: timestamp + level + name + message.
        name: Logger name.

    Returns:
        Configured logger instance.
    """
    if level is None:
        default = "DEBUG" if os.getenv("VCB_DEBUG", "false").lower() == "true" else "INFO"
        level = os.getenv("VCB_LOG_LEVEL", default).upper()

    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level, logging.INFO))

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level, logging.INFO))
    handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)

    return logger


def get_logger(name: str = "vcb") -> logging.Logger:
    """
    Get or create a logger.

    Args:
        name: Logger name (prefixed with 'vcb.' if not already)

    Returns:
        Logger instance.
    """
    if not name.startswith("vcb"):
        name = f"vcb.{name}"

    logger = logging.getLogger(name)

    if not logger.handlers and not logging.getLogger("vcb").handlers:
        setup_logging()

    return logger
