"""
Courier - Events Package
========================

Event handler Cogs for Courier.
Events are organized into Cogs by category for maintainability.

DESIGN:
    Each event file contains a Cog class with @commands.Cog.listener decorators.
    Cogs are loaded dynamically by the bot using load_extension().

    Event routing:
    - messages.py: DMs and staff messages to modmail; delete/edit logs
    - members.py: Member join/leave/update and voice logs
    - channels.py: Channel/role/guild logs and guild join

Author: Courier Maintainers
"""

# =============================================================================
# Event Cog Registry
# =============================================================================

EVENT_COGS = [
    "src.events.messages",
    "src.events.members",
    "src.events.channels",
]
"""
List of event cog module paths for dynamic loading.

DESIGN:
    Bot iterates this list and calls load_extension() for each.
"""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "EVENT_COGS",
]
