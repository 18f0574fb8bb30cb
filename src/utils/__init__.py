"""
Courier - Utils Package
=======================

Utility modules shared by commands, events and services.

DESIGN:
    Utils are helper functions and small classes that can be used
    anywhere in the codebase. They don't depend on bot state beyond
    what is passed in.

Available Utilities:
    Footer: Standardized embed footer with cached avatar
    Cache: TTL caches and cooldown tracking
    Async: Safe background tasks and logged gathers

Author: Courier Maintainers
"""

# =============================================================================
# Utility Imports
# =============================================================================

from .footer import FOOTER_TEXT, init_footer, set_footer
from .cache import TTLCache, ChannelCache, MembershipCache, Cooldowns
from .async_utils import create_safe_task, gather_with_logging


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Footer
    "FOOTER_TEXT",
    "init_footer",
    "set_footer",
    # Cache
    "TTLCache",
    "ChannelCache",
    "MembershipCache",
    "Cooldowns",
    # Async
    "create_safe_task",
    "gather_with_logging",
]
