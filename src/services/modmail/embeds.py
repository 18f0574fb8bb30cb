"""
Courier - Modmail Embeds
========================

Embed builder functions for the modmail system.

Author: Courier Maintainers
"""

from datetime import datetime
from typing import List, Optional, Union

import discord

from src.core.config import EmbedColors, NY_TZ
from src.core.constants import EMBED_DESCRIPTION_MAX, EMBED_FIELD_MAX
from src.core.database import ModmailThreadRecord
from src.utils.footer import set_footer

from .constants import CLOSE_EMOJI, MODMAIL_EMOJI, THREAD_EMOJI, SERVER_EMOJI
from .models import InboundMessage


IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")


# =============================================================================
# Helpers
# =============================================================================

def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def _attachment_links(urls: List[str]) -> str:
    lines = []
    for index, url in enumerate(urls, start=1):
        name = url.split("?")[0].rsplit("/", 1)[-1] or f"attachment-{index}"
        lines.append(f"[{name}]({url})")
    return _truncate("\n".join(lines), EMBED_FIELD_MAX)


def _first_image(urls: List[str]) -> Optional[str]:
    for url in urls:
        if url.split("?")[0].lower().endswith(IMAGE_EXTENSIONS):
            return url
    return None


def _add_attachments(embed: discord.Embed, urls: List[str]) -> None:
    if not urls:
        return
    embed.add_field(name="Attachments", value=_attachment_links(urls), inline=False)
    image = _first_image(urls)
    if image:
        embed.set_image(url=image)


# =============================================================================
# Staff Channel Embeds
# =============================================================================

def build_thread_summary_embed(
    user: Union[discord.User, discord.Member],
    member: Optional[discord.Member],
    message: InboundMessage,
) -> discord.Embed:
    """First message in a new thread channel."""
    embed = discord.Embed(
        title=f"{MODMAIL_EMOJI} New Modmail Thread",
        description=_truncate(message.content, EMBED_DESCRIPTION_MAX) if message.content else "_No content_",
        color=EmbedColors.MODMAIL,
        timestamp=datetime.now(NY_TZ),
    )
    embed.set_author(name=str(user), icon_url=user.display_avatar.url)
    embed.set_thumbnail(url=user.display_avatar.url)

    embed.add_field(
        name="User Info",
        value=f"{user.mention} (`{user.id}`)\nCreated: <t:{int(user.created_at.timestamp())}:R>",
        inline=True,
    )

    if member is not None:
        roles = [r.mention for r in member.roles if r != member.guild.default_role]
        joined = f"<t:{int(member.joined_at.timestamp())}:R>" if member.joined_at else "Unknown"
        embed.add_field(
            name="Member Info",
            value=_truncate(f"Joined: {joined}\nRoles: {', '.join(roles) if roles else 'None'}", EMBED_FIELD_MAX),
            inline=True,
        )
    else:
        embed.add_field(name="Member Info", value="_User is not a member of this server_", inline=True)

    if message.attachments:
        count = len(message.attachments)
        embed.add_field(
            name="Attachment Count",
            value=f"This message includes {count} attachment{'s' if count != 1 else ''}",
            inline=False,
        )
    _add_attachments(embed, message.attachments)

    set_footer(embed, "User Message")
    return embed


def build_user_message_embed(
    user: Union[discord.User, discord.Member],
    message: InboundMessage,
) -> discord.Embed:
    """A follow-up DM relayed into the staff channel."""
    embed = discord.Embed(
        description=_truncate(message.content, EMBED_DESCRIPTION_MAX) if message.content else "_No text content_",
        color=EmbedColors.MODMAIL,
        timestamp=datetime.now(NY_TZ),
    )
    embed.set_author(name=str(user), icon_url=user.display_avatar.url)
    _add_attachments(embed, message.attachments)
    set_footer(embed, f"User Message • {user.id}")
    return embed


def build_close_notice_embed(
    closed_by_id: Optional[int],
    reason: Optional[str],
    delete_delay: int,
) -> discord.Embed:
    """Posted in the staff channel right before it is deleted."""
    closer = f"<@{closed_by_id}>" if closed_by_id else "Courier (automatic)"
    embed = discord.Embed(
        title=f"{CLOSE_EMOJI} Thread Closed",
        description=(
            f"**Closed by:** {closer}\n"
            f"**Reason:** {reason or 'No reason provided'}\n\n"
            f"This channel will be deleted in {delete_delay} seconds."
        ),
        color=EmbedColors.MODMAIL_CLOSED,
        timestamp=datetime.now(NY_TZ),
    )
    set_footer(embed)
    return embed


def build_staff_actions_embed() -> discord.Embed:
    embed = discord.Embed(
        description=(
            "**Staff Actions:**\n"
            "Type in this channel to reply to the user. "
            "Messages starting with `!` or `#` stay internal."
        ),
        color=EmbedColors.BLURPLE,
    )
    return embed


# =============================================================================
# DM Embeds
# =============================================================================

def build_staff_reply_embed(
    guild_name: str,
    staff_name: str,
    message: InboundMessage,
) -> discord.Embed:
    """A staff reply delivered to the user's DMs."""
    embed = discord.Embed(
        title=f"Reply from {guild_name}",
        description=_truncate(message.content, EMBED_DESCRIPTION_MAX) if message.content else "_No text content_",
        color=EmbedColors.MODMAIL_STAFF,
        timestamp=datetime.now(NY_TZ),
    )
    embed.set_author(name=f"{staff_name} (Staff)")
    _add_attachments(embed, message.attachments)
    set_footer(embed, guild_name)
    return embed


def build_delivered_embed(guild_name: str, new_thread: bool) -> discord.Embed:
    """Confirmation DM after a message reaches staff."""
    if new_thread:
        description = (
            f"Your message has been sent to the staff of **{guild_name}**.\n"
            "They will reply here. Any further messages you send will be added to this conversation."
        )
    else:
        description = f"Your message was delivered to the staff of **{guild_name}**."

    embed = discord.Embed(
        title=f"{MODMAIL_EMOJI} Message Delivered",
        description=description,
        color=EmbedColors.SUCCESS,
    )
    set_footer(embed)
    return embed


def build_thread_closed_dm_embed(guild_name: str, reason: Optional[str]) -> discord.Embed:
    embed = discord.Embed(
        title=f"{CLOSE_EMOJI} Conversation Closed",
        description=(
            f"Your modmail conversation with **{guild_name}** has been closed.\n"
            f"**Reason:** {reason or 'No reason provided'}\n\n"
            "Send another message at any time to start a new conversation."
        ),
        color=EmbedColors.MODMAIL_CLOSED,
        timestamp=datetime.now(NY_TZ),
    )
    set_footer(embed)
    return embed


def build_idle_warning_embed(guild_name: str, hours_left: int) -> discord.Embed:
    embed = discord.Embed(
        title="⏰ Conversation Inactive",
        description=(
            f"Your modmail conversation with **{guild_name}** has been quiet for a while.\n"
            f"It will close automatically in about **{hours_left} hours** unless someone replies."
        ),
        color=EmbedColors.WARNING,
    )
    set_footer(embed)
    return embed


def build_guild_select_embed() -> discord.Embed:
    embed = discord.Embed(
        title=f"{SERVER_EMOJI} Choose a Server",
        description=(
            "You share several servers with modmail enabled.\n"
            "Pick the one whose staff should receive your message."
        ),
        color=EmbedColors.MODMAIL,
    )
    set_footer(embed)
    return embed


def build_thread_select_embed() -> discord.Embed:
    embed = discord.Embed(
        title=f"{THREAD_EMOJI} Choose a Conversation",
        description=(
            "You have open conversations with more than one server.\n"
            "Pick where this message should go, or start a new conversation."
        ),
        color=EmbedColors.MODMAIL,
    )
    set_footer(embed)
    return embed


def build_notice_embed(description: str, color: int = EmbedColors.WARNING) -> discord.Embed:
    """Short DM notice (no destination, blocked, lost thread)."""
    embed = discord.Embed(description=description, color=color)
    set_footer(embed)
    return embed


# =============================================================================
# Log Channel Embeds
# =============================================================================

def build_log_created_embed(
    user: Union[discord.User, discord.Member],
    channel: discord.TextChannel,
    thread: ModmailThreadRecord,
) -> discord.Embed:
    embed = discord.Embed(
        title="Modmail Thread Created",
        description=f"New thread opened by {user.mention} ({user})",
        color=EmbedColors.MODMAIL,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(name="Channel", value=channel.mention, inline=True)
    embed.add_field(name="Thread ID", value=f"`{thread['id']}`", inline=True)
    if thread.get("subject"):
        embed.add_field(name="Subject", value=_truncate(thread["subject"], EMBED_FIELD_MAX), inline=False)
    set_footer(embed)
    return embed


def build_log_closed_embed(
    thread: ModmailThreadRecord,
    closed_by_id: Optional[int],
    reason: Optional[str],
) -> discord.Embed:
    closer = f"<@{closed_by_id}>" if closed_by_id else "Courier (automatic)"
    embed = discord.Embed(
        title="Modmail Thread Closed",
        description=f"Thread with <@{thread['user_id']}> (`{thread['user_id']}`) was closed.",
        color=EmbedColors.MODMAIL_CLOSED,
        timestamp=datetime.now(NY_TZ),
    )
    embed.add_field(name="Closed By", value=closer, inline=True)
    embed.add_field(name="Messages", value=str(thread.get("message_count", 0)), inline=True)
    embed.add_field(name="Opened", value=f"<t:{int(thread['created_at'])}:R>", inline=True)
    embed.add_field(name="Reason", value=_truncate(reason or "No reason provided", EMBED_FIELD_MAX), inline=False)
    set_footer(embed, f"Thread #{thread['id']}")
    return embed


def build_log_transcript_embed(
    thread: ModmailThreadRecord,
    requested_by: discord.abc.User,
) -> discord.Embed:
    embed = discord.Embed(
        title="Modmail Transcript Generated",
        description=f"Transcript of the thread with <@{thread['user_id']}> requested by {requested_by.mention}.",
        color=EmbedColors.INFO,
        timestamp=datetime.now(NY_TZ),
    )
    set_footer(embed, f"Thread #{thread['id']}")
    return embed


__all__ = [
    "build_thread_summary_embed",
    "build_user_message_embed",
    "build_close_notice_embed",
    "build_staff_actions_embed",
    "build_staff_reply_embed",
    "build_delivered_embed",
    "build_thread_closed_dm_embed",
    "build_idle_warning_embed",
    "build_guild_select_embed",
    "build_thread_select_embed",
    "build_notice_embed",
    "build_log_created_embed",
    "build_log_closed_embed",
    "build_log_transcript_embed",
]
