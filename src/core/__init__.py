"""
Courier - Core Package
======================

Core components shared by every part of the modmail bot.
This package contains configuration, database management,
logging, and health monitoring.

DESIGN:
    Core modules are designed as singletons or global instances
    to ensure consistent state across the application:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance

Author: Courier Maintainers
"""

# =============================================================================
# Core Imports
# =============================================================================

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    NY_TZ,
    get_config,
    is_owner,
    has_staff_role,
    check_staff_permission,
)

from .database import DatabaseManager, get_db

from .logger import logger, TreeLogger

from .health import HealthCheckServer


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "get_config",
    "is_owner",
    "has_staff_role",
    "check_staff_permission",
    # Database
    "DatabaseManager",
    "get_db",
    # Logger
    "logger",
    "TreeLogger",
    # Health
    "HealthCheckServer",
]
