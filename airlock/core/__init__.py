"""
Airlock - Core Package
======================

Configuration, logging and health monitoring.

DESIGN:
    Core modules are singletons or global instances so state is consistent
    across the application:
    - get_config() returns the same Config instance
    - logger is a global TreeLogger instance
"""

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    get_config,
)

from .logger import logger, TreeLogger

from .health import HealthCheckServer


__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "logger",
    "TreeLogger",
    "HealthCheckServer",
]
