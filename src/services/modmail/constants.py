"""
Courier - Modmail Constants
===========================

Emojis, custom_id templates and channel naming for the modmail system.

Author: Courier Maintainers
"""

import re

from src.core.constants import CHANNEL_NAME_MAX


# =============================================================================
# Emojis
# =============================================================================

MODMAIL_EMOJI = "📬"
REPLY_EMOJI = "💬"
CLOSE_EMOJI = "🔒"
TRANSCRIPT_EMOJI = "📄"
SERVER_EMOJI = "🏰"
THREAD_EMOJI = "🧵"
NEW_CONVERSATION_EMOJI = "➕"

DELIVERED_REACTION = "✅"
SENT_REACTION = "✉️"


# =============================================================================
# Persistent Component IDs
# =============================================================================

GUILD_SELECT_PREFIX = "modmail_guild_select"
THREAD_SELECT_PREFIX = "modmail_thread_select"
REPLY_BUTTON_PREFIX = "modmail_reply"
CLOSE_BUTTON_PREFIX = "modmail_close"
TRANSCRIPT_BUTTON_PREFIX = "modmail_transcript"


# =============================================================================
# Channel Naming
# =============================================================================

CHANNEL_PREFIX = "mm"
USER_ID_DIGITS = 8
TIMESTAMP_DIGITS = 6

CHANNEL_NAME_PATTERN = re.compile(
    rf"^{CHANNEL_PREFIX}-.*-(?P<uid>\d{{1,{USER_ID_DIGITS}}})-(?P<ts>\d{{{TIMESTAMP_DIGITS}}})$"
)
"""Matches mm-<name>-<uid8>-<ts6>; the name part may itself contain dashes."""

_UNSAFE_CHANNEL_CHARS = re.compile(r"[^a-z0-9_-]+")


def build_channel_name(username: str, user_id: int, timestamp: int) -> str:
    """
    Build the staff channel name for a thread.

    Discord lowercases channel names and strips most punctuation, so the
    username is normalised first to keep the name matchable later.
    """
    safe_name = _UNSAFE_CHANNEL_CHARS.sub("", username.lower().replace(" ", "-")) or "user"
    uid = str(user_id)[:USER_ID_DIGITS]
    ts = str(timestamp)[-TIMESTAMP_DIGITS:]
    return f"{CHANNEL_PREFIX}-{safe_name}-{uid}-{ts}"[:CHANNEL_NAME_MAX]


def parse_channel_user_prefix(channel_name: str):
    """Return the user id digits embedded in a modmail channel name, or None."""
    match = CHANNEL_NAME_PATTERN.match(channel_name or "")
    return match.group("uid") if match else None


__all__ = [
    "MODMAIL_EMOJI",
    "REPLY_EMOJI",
    "CLOSE_EMOJI",
    "TRANSCRIPT_EMOJI",
    "SERVER_EMOJI",
    "THREAD_EMOJI",
    "NEW_CONVERSATION_EMOJI",
    "DELIVERED_REACTION",
    "SENT_REACTION",
    "GUILD_SELECT_PREFIX",
    "THREAD_SELECT_PREFIX",
    "REPLY_BUTTON_PREFIX",
    "CLOSE_BUTTON_PREFIX",
    "TRANSCRIPT_BUTTON_PREFIX",
    "CHANNEL_NAME_PATTERN",
    "build_channel_name",
    "parse_channel_user_prefix",
]
