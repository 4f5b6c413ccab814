#!/usr/bin/env python3
"""
Service Logger Setup

Configures the standard library logging tree for a microservice from
LoggingConfig. Modules keep using ``logging.getLogger(__name__)``; this
only attaches handlers once per process.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("promotion_service", level="DEBUG")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig, get_settings

_HANDLER_MARK = "_promotion_platform_handler"


def _has_marked_handler(target: logging.Logger) -> bool:
    return any(getattr(h, _HANDLER_MARK, False) for h in target.handlers)


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure root logging for a service and return the service logger.

    Args:
        service_name: Logger name, usually the service package name
        level: Overrides LoggingConfig.log_level when given
        config: Logging settings, defaults to the global settings

    Returns:
        The configured service logger
    """
    config = config or get_settings().logging
    resolved_level = (level or config.log_level or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(resolved_level)

    # Calling twice must not duplicate output
    if not _has_marked_handler(root):
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = _mark(logging.StreamHandler(sys.stdout))
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = _mark(logging.FileHandler(config.log_file))
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    logger = logging.getLogger(service_name)
    logger.setLevel(resolved_level)
    return logger


__all__ = ["setup_service_logger"]
