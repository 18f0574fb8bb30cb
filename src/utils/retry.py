"""
Courier - Safe Fetch Utilities
==============================

Single-attempt Discord fetch/send helpers with timeouts.

DESIGN:
    The safe_* helpers return None for any failure instead of raising.
    fetch_channel_strict raises instead, for callers that act on "channel
    gone" and must not mistake an outage for a deletion. Each call is
    bounded by asyncio.wait_for; nothing is retried so a slow gateway
    can't stall a DM handler.

Author: Courier Maintainers
"""

import asyncio
from typing import Optional

import discord

from src.core.logger import logger
from src.core.constants import API_TIMEOUT


async def safe_fetch_channel(
    bot,
    channel_id: Optional[int],
    timeout: float = API_TIMEOUT,
) -> Optional[discord.abc.GuildChannel]:
    """
    Resolve a channel from cache, falling back to one API fetch.

    Args:
        bot: Bot instance.
        channel_id: Channel ID to fetch.
        timeout: Seconds to wait for the fetch.

    Returns:
        Channel object or None if not found/failed.
    """
    if not channel_id:
        return None

    channel = bot.get_channel(channel_id)
    if channel:
        return channel

    try:
        return await asyncio.wait_for(bot.fetch_channel(channel_id), timeout=timeout)
    except (discord.NotFound, discord.Forbidden):
        return None
    except asyncio.TimeoutError:
        logger.warning("Channel Fetch Timed Out", [
            ("Channel ID", str(channel_id)),
            ("Timeout", f"{timeout}s"),
        ])
        return None
    except discord.HTTPException as e:
        logger.warning("Channel Fetch Failed", [
            ("Channel ID", str(channel_id)),
            ("Status", str(e.status)),
            ("Error", str(e)[:100]),
        ])
        return None


async def fetch_channel_strict(
    bot,
    channel_id: int,
    timeout: float = API_TIMEOUT,
) -> discord.abc.GuildChannel:
    """
    Resolve a channel from cache, falling back to one API fetch.

    Unlike safe_fetch_channel, a missing channel and a failed lookup are
    told apart: only discord.NotFound means the channel is gone.

    Raises:
        discord.NotFound: The channel no longer exists.
        discord.HTTPException: Any other API failure (Forbidden, 5xx, 429).
        asyncio.TimeoutError: The fetch took longer than timeout.
    """
    channel = bot.get_channel(channel_id)
    if channel:
        return channel

    return await asyncio.wait_for(bot.fetch_channel(channel_id), timeout=timeout)


async def safe_fetch_user(
    bot,
    user_id: int,
    timeout: float = API_TIMEOUT,
) -> Optional[discord.User]:
    """
    Resolve a user from cache, falling back to one API fetch.

    Returns:
        User object or None if not found/failed.
    """
    user = bot.get_user(user_id)
    if user:
        return user

    try:
        return await asyncio.wait_for(bot.fetch_user(user_id), timeout=timeout)
    except discord.NotFound:
        return None
    except (asyncio.TimeoutError, discord.HTTPException) as e:
        logger.warning("User Fetch Failed", [
            ("User ID", str(user_id)),
            ("Error Type", type(e).__name__),
        ])
        return None


async def safe_send(
    channel: discord.abc.Messageable,
    content: Optional[str] = None,
    **kwargs,
) -> Optional[discord.Message]:
    """
    Send a message, returning None instead of raising on platform errors.

    Args:
        channel: Channel (or user) to send to.
        content: Message content.
        **kwargs: Additional arguments (embed, view, file, ...).

    Returns:
        Sent message or None on failure.
    """
    if not channel:
        return None

    try:
        return await channel.send(content, **kwargs)
    except discord.Forbidden:
        logger.debug("Send Forbidden", [("Target", str(getattr(channel, "id", "?")))])
        return None
    except discord.HTTPException as e:
        logger.warning("Send Failed", [
            ("Target", str(getattr(channel, "id", "?"))),
            ("Status", str(e.status)),
            ("Error", str(e)[:100]),
        ])
        return None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "safe_fetch_channel",
    "fetch_channel_strict",
    "safe_fetch_user",
    "safe_send",
]
