"""
Courier - Test Factories
========================

Builders for mock Discord objects and database state shared by tests.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional
from unittest.mock import AsyncMock, MagicMock

import discord


# =============================================================================
# Database State
# =============================================================================

def enable_modmail(db, guild_id: int, category_id: int = 7001, log_channel_id: Optional[int] = None) -> None:
    """Configure a guild the way /setup leaves it."""
    db.update_modmail_settings(guild_id, categoryId=category_id, logChannelId=log_channel_id)
    db.set_modmail_enabled(guild_id, True)


def set_last_activity(db, thread_id: int, seconds_ago: float) -> None:
    """Backdate a thread's last_message_at."""
    db.execute(
        "UPDATE modmail_threads SET last_message_at = ? WHERE id = ?",
        (time.time() - seconds_ago, thread_id),
    )


# =============================================================================
# Discord Objects
# =============================================================================

def not_found(text: str = "Unknown") -> discord.NotFound:
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), text)


def server_error(text: str = "Service Unavailable") -> discord.HTTPException:
    """Discord 503, the kind of failure that says nothing about whether a resource exists."""
    return discord.HTTPException(MagicMock(status=503, reason="Service Unavailable"), text)


def make_user(user_id: int = 123456789, name: str = "testuser") -> MagicMock:
    """Mock Discord user that can receive DMs."""
    user = MagicMock()
    user.id = user_id
    user.name = name
    user.display_name = name.title()
    user.display_avatar.url = "https://example.com/avatar.png"
    user.created_at = datetime(2020, 9, 13, 12, 0, 0, tzinfo=timezone.utc)
    user.mention = f"<@{user_id}>"
    user.bot = False
    user.send = AsyncMock(return_value=MagicMock(id=111222333))
    user.__str__ = MagicMock(return_value=name)
    return user


def make_member(user_id: int, guild_id: int) -> MagicMock:
    """Mock guild member with no roles."""
    member = MagicMock()
    member.id = user_id
    member.bot = False
    member.roles = []
    member.joined_at = datetime(2022, 4, 15, 10, 0, 0, tzinfo=timezone.utc)
    member.guild.id = guild_id
    return member


def make_channel(
    channel_id: int,
    name: str = "channel",
    guild=None,
    category_id: Optional[int] = None,
) -> MagicMock:
    """Mock Discord text channel."""
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.name = name
    channel.guild = guild
    channel.category_id = category_id
    channel.mention = f"<#{channel_id}>"
    channel.send = AsyncMock(return_value=MagicMock(id=channel_id + 1))
    channel.delete = AsyncMock()
    return channel


def make_category(category_id: int = 7001) -> MagicMock:
    """Mock category channel that passes isinstance checks."""
    category = MagicMock(spec=discord.CategoryChannel)
    category.id = category_id
    category.name = "MODMAIL TICKETS"
    return category


def make_guild(
    guild_id: int,
    name: str,
    member_ids: Iterable[int] = (),
    channels: Optional[Dict[int, object]] = None,
) -> MagicMock:
    """
    Mock Discord guild whose member cache holds member_ids.

    guild.channels_by_id is the live dict behind get_channel, so tests can
    add channels after building the guild.
    """
    members = {uid: make_member(uid, guild_id) for uid in member_ids}
    channel_map = dict(channels or {})

    guild = MagicMock()
    guild.id = guild_id
    guild.name = name
    guild.member_count = len(members)
    guild.me = MagicMock()
    guild.default_role = MagicMock()
    guild.get_member = MagicMock(side_effect=lambda uid: members.get(uid))
    guild.fetch_member = AsyncMock(side_effect=not_found("Unknown Member"))
    guild.get_channel = MagicMock(side_effect=lambda cid: channel_map.get(cid))
    guild.get_role = MagicMock(return_value=None)
    guild.create_text_channel = AsyncMock()
    guild.channels_by_id = channel_map
    return guild


def make_dm(user, content: str = "Hello") -> MagicMock:
    """Mock DM from user."""
    message = MagicMock()
    message.id = 222333444
    message.content = content
    message.author = user
    message.guild = None
    message.attachments = []
    message.embeds = []
    message.add_reaction = AsyncMock()
    return message


def add_guild(bot, guild) -> None:
    """Register a guild on the mock bot."""
    bot.guild_map[guild.id] = guild
    bot.guilds = list(bot.guild_map.values())
