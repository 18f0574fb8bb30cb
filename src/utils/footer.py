"""
Courier - Embed Footer Utility
==============================

Centralized footer for all embeds.
The bot avatar is cached once the client is ready.

Author: Courier Maintainers
"""

from typing import Optional

import discord

from src.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

FOOTER_TEXT = "Courier Modmail"
"""Footer text displayed on all embeds."""


# =============================================================================
# Module State
# =============================================================================

_cached_avatar_url: Optional[str] = None
"""Cached bot avatar URL."""


# =============================================================================
# Initialization
# =============================================================================

def init_footer(bot: discord.Client) -> None:
    """
    Cache the bot avatar for embed footers.

    DESIGN:
        Called once from on_ready; bot.user is None before that.

    Args:
        bot: The Discord bot client.
    """
    global _cached_avatar_url

    if bot.user is None:
        _cached_avatar_url = None
        return

    _cached_avatar_url = bot.user.display_avatar.url
    logger.tree("Footer Initialized", [
        ("Text", FOOTER_TEXT),
        ("Avatar Cached", "Yes" if _cached_avatar_url else "No"),
    ], emoji="📝")


# =============================================================================
# Footer Setter
# =============================================================================

def set_footer(
    embed: discord.Embed,
    text: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> discord.Embed:
    """
    Set the standard footer on an embed.

    Args:
        embed: The embed to add footer to.
        text: Extra text appended after the standard footer.
        avatar_url: Optional override avatar URL (uses cached if not provided).

    Returns:
        The embed with footer set.
    """
    url = avatar_url if avatar_url is not None else _cached_avatar_url
    footer = f"{FOOTER_TEXT} • {text}" if text else FOOTER_TEXT
    embed.set_footer(text=footer, icon_url=url)
    return embed


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "FOOTER_TEXT",
    "init_footer",
    "set_footer",
]
