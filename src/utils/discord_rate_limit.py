"""
Courier - Discord HTTP Error Utilities
======================================

Logging for Discord HTTP failures and best-effort reactions.

DESIGN:
    discord.py already honours 429 retry_after internally, so nothing
    here retries. Delivery failures are logged with a status-aware level
    and the caller decides what the user sees.

Usage:
    from src.utils.discord_rate_limit import log_http_error, add_reaction_safe

    try:
        await user.send(embed=embed)
    except discord.HTTPException as e:
        log_http_error(e, "Modmail DM", [("User", str(user.id))])

Author: Courier Maintainers
"""

from typing import List, Optional, Tuple

import discord

from src.core.logger import logger


# HTTP status code descriptions for logging
HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


# =============================================================================
# Logging Helper
# =============================================================================

def log_http_error(
    e: discord.HTTPException,
    operation: str,
    context: Optional[List[Tuple[str, str]]] = None,
) -> None:
    """
    Log a Discord HTTPException with status details.

    Args:
        e: The HTTPException that occurred.
        operation: Description of what operation failed.
        context: Additional context tuples for logging [(key, value), ...].
    """
    status = getattr(e, "status", 0)
    status_desc = HTTP_STATUS_DESCRIPTIONS.get(status, "Unknown")
    retry_after = getattr(e, "retry_after", None)

    log_items = [
        ("Status", f"{status} ({status_desc})"),
        ("Error", str(e.text) if getattr(e, "text", None) else str(e)),
    ]

    if retry_after:
        log_items.append(("Retry After", f"{retry_after:.1f}s"))

    if context:
        log_items.extend(context)

    # Expected states (closed DMs, deleted channels) are warnings
    if status == 429:
        logger.warning(f"🚦 {operation} Rate Limited", log_items)
    elif status == 403:
        logger.warning(f"🚫 {operation} Forbidden", log_items)
    elif status == 404:
        logger.warning(f"❓ {operation} Not Found", log_items)
    else:
        logger.error(f"{operation} Failed", log_items)


# =============================================================================
# Reactions
# =============================================================================

async def add_reaction_safe(message: discord.Message, emoji: str) -> bool:
    """
    React to a message, logging instead of raising.

    Returns:
        True if the reaction was added.
    """
    try:
        await message.add_reaction(emoji)
        return True
    except discord.HTTPException as e:
        log_http_error(e, "Add Reaction", [
            ("Message", str(message.id)),
            ("Emoji", emoji),
        ])
        return False


__all__ = [
    "log_http_error",
    "add_reaction_safe",
    "HTTP_STATUS_DESCRIPTIONS",
]
