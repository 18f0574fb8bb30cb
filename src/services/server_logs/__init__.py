"""
Courier - Server Logs Package
=============================

Per-guild server activity logging routed by category.

Structure:
    - categories.py: LogCategory enum and category display data
    - service.py: LoggingService (log() gate and embed builders)

Author: Courier Maintainers
"""

from .service import LoggingService
from .categories import LogCategory, CategoryInfo, CATEGORY_INFO, parse_category

__all__ = [
    "LoggingService",
    "LogCategory",
    "CategoryInfo",
    "CATEGORY_INFO",
    "parse_category",
]
