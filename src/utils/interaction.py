"""
Courier - Interaction Utilities
===============================

Shared helpers for Discord interaction handling.

Provides safe_respond() so command, button and modal handlers don't
repeat the interaction.response.is_done() / followup dance.

Author: Courier Maintainers
"""

from typing import Any, Optional, Union

import discord

from src.core.logger import logger


async def safe_respond(
    interaction: discord.Interaction,
    content: Optional[str] = None,
    *,
    embed: Optional[discord.Embed] = None,
    view: Optional[discord.ui.View] = None,
    ephemeral: bool = True,
    file: Optional[discord.File] = None,
) -> Optional[Union[discord.InteractionMessage, discord.WebhookMessage]]:
    """
    Respond to an interaction whether or not it was already answered.

    Uses response.send_message() for the first reply and followup.send()
    afterwards. HTTP errors are logged at debug level since they are
    expected for expired interactions.

    Args:
        interaction: The Discord interaction to respond to.
        content: The message content.
        embed: A single embed to send.
        view: A view to attach.
        ephemeral: Whether the response is ephemeral (default True).
        file: A file to attach.

    Returns:
        The sent message if successful, None if failed.
    """
    kwargs: dict[str, Any] = {"ephemeral": ephemeral}

    if content is not None:
        kwargs["content"] = content
    if embed is not None:
        kwargs["embed"] = embed
    if view is not None:
        kwargs["view"] = view
    if file is not None:
        kwargs["file"] = file

    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(**kwargs)
            try:
                return await interaction.original_response()
            except discord.HTTPException:
                return None
        return await interaction.followup.send(**kwargs)

    except discord.HTTPException as e:
        logger.debug(f"safe_respond failed: {e.status} - {str(e)[:50]}")
        return None


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["safe_respond"]
