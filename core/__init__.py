#!/usr/bin/env python3
"""
Core Module for the Promotion Platform

Shared infrastructure used by the microservices in this repository.

COMPONENTS:
    - config/: Environment driven configuration (infrastructure, logging, promotion)
    - logger.py: Service logger setup

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("promotion_service", level=settings.logging.log_level)
"""

__version__ = "1.0.0"
