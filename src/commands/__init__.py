"""
Courier - Commands Package
==========================

Slash command implementations for Courier.
Commands are implemented as discord.py Cogs for modularity.

DESIGN:
    Each command file contains a Cog class with related commands.
    Cogs are loaded dynamically by the bot using load_extension().

    To add a new command:
    1. Create new_command.py in this directory
    2. Create a Cog class with @app_commands.command decorators
    3. Add async def setup(bot) function at the end
    4. Add the cog to COMMAND_COGS list below

Available Commands:
    /setup, /modmail-setup, /reset: Guild onboarding (admin)
    /modmail close|reply|block|unblock: Thread commands (staff)
    /logs, /ignore, /categories, /enable, /disable: Server logs (manage server)
    /ping, /help, /stats, /status: Info

Author: Courier Maintainers
"""

# =============================================================================
# Command Cog Registry
# =============================================================================

COMMAND_COGS = [
    "src.commands.setup",
    "src.commands.modmail",
    "src.commands.logs",
    "src.commands.info",
]
"""
List of command cog module paths for dynamic loading.

DESIGN:
    Bot iterates this list and calls load_extension() for each.
"""


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "COMMAND_COGS",
]
