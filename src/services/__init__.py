"""
Courier - Services Package
==========================

Long-lived services owned by the bot.

DESIGN:
    Services are standalone classes created once in setup_hook and
    reached through the bot (bot.modmail_service, bot.logging_service).
    They should:
    - Be async-compatible for non-blocking I/O
    - Handle Discord delivery failures themselves
    - Log every state change as a tree block

Available Services:
    ModmailService: DM routing, thread lifecycle and idle auto-close
    LoggingService: Per-guild server activity logging by category
    audit_and_fix: Startup repair of the dual modmail enabled flags

Author: Courier Maintainers
"""

# =============================================================================
# Service Imports
# =============================================================================

from .modmail import ModmailService
from .server_logs import LoggingService
from .settings_fixer import audit_and_fix


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ModmailService",
    "LoggingService",
    "audit_and_fix",
]
