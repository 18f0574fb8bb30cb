"""
Courier - Server Logging Service
================================

Per-guild server activity logging routed by category.

Author: Courier Maintainers
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Union

import discord

from src.core.config import EmbedColors, NY_TZ
from src.core.database import get_db
from src.core.logger import logger
from src.utils.discord_rate_limit import log_http_error
from src.utils.retry import safe_fetch_channel

from .categories import CATEGORY_INFO, LogCategory

if TYPE_CHECKING:
    from src.bot import CourierBot


class LoggingService:
    """
    Server activity logging.

    DESIGN:
        Every guild chooses its own destinations: a default log channel
        plus optional per-category overrides. log() is the single gate;
        it checks the category toggle, ignored channels and ignored roles
        before resolving the destination. The log_* helpers only build
        embeds and hand them to log().
    """

    def __init__(self, bot: "CourierBot") -> None:
        self.bot = bot
        self.db = get_db()

        logger.tree("Logging Service Created", [
            ("Categories", ", ".join(c.value for c in LogCategory)),
        ], emoji="📋")

    # =========================================================================
    # Routing
    # =========================================================================

    async def log(
        self,
        guild: Optional[discord.Guild],
        category: LogCategory,
        embed: discord.Embed,
        channel_id: Optional[int] = None,
        member: Optional[discord.Member] = None,
    ) -> Optional[discord.Message]:
        """
        Send a log embed to the guild's channel for this category.

        Args:
            guild: Guild the event happened in.
            category: Log category.
            embed: The log embed.
            channel_id: Channel the event happened in (checked against ignored channels).
            member: Member involved (checked against ignored roles).

        Returns:
            The sent message, or None when filtered or undeliverable.
        """
        if guild is None:
            return None

        settings = self.db.get_guild_settings(guild.id)

        if not settings.is_category_enabled(category.value):
            return None
        if channel_id is not None and settings.is_channel_ignored(channel_id):
            return None
        if member is not None and any(
            settings.is_role_ignored(role.id) for role in getattr(member, "roles", [])
        ):
            return None

        target_id = settings.get_category_channel(category.value)
        if target_id is None:
            return None

        target = await safe_fetch_channel(self.bot, target_id)
        if target is None:
            logger.debug("Log Channel Missing", [
                ("Guild", f"{guild.name} ({guild.id})"),
                ("Category", category.value),
                ("Channel", str(target_id)),
            ])
            return None

        try:
            return await target.send(embed=embed)
        except discord.HTTPException as e:
            log_http_error(e, "Send Server Log", [
                ("Guild", str(guild.id)),
                ("Category", category.value),
            ])
            return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _create_embed(
        self,
        title: str,
        color: int,
        description: Optional[str] = None,
        category: Optional[LogCategory] = None,
        user_id: Optional[int] = None,
    ) -> discord.Embed:
        """Create a standardized log embed."""
        embed = discord.Embed(
            title=title,
            description=description,
            color=color,
            timestamp=datetime.now(NY_TZ),
        )
        footer_parts = []
        if category:
            footer_parts.append(CATEGORY_INFO[category].name)
        if user_id:
            footer_parts.append(f"ID: {user_id}")
        footer_text = " • ".join(footer_parts) if footer_parts else datetime.now(NY_TZ).strftime("%B %d, %Y")
        embed.set_footer(text=footer_text)
        return embed

    def _format_user_field(self, user: Union[discord.User, discord.Member]) -> str:
        """Format user field without ID (ID goes in footer)."""
        return f"{user.mention}\n`{user.name}`"

    def _format_channel(self, channel) -> str:
        """Format channel reference with fallback to name."""
        if channel is None:
            return "#unknown"
        name = getattr(channel, "name", None)
        if name:
            return f"#{name}"
        channel_id = getattr(channel, "id", None)
        return f"#channel-{channel_id}" if channel_id else "#unknown"

    def _format_role(self, role) -> str:
        """Format role reference with fallback to name."""
        if role is None:
            return "unknown role"
        name = getattr(role, "name", None)
        if name:
            return f"`{name}`"
        role_id = getattr(role, "id", None)
        return f"`role-{role_id}`" if role_id else "unknown role"

    def _format_duration_precise(self, seconds: int) -> str:
        """Human-readable duration, two units at most."""
        if seconds < 60:
            return f"{seconds} second{'s' if seconds != 1 else ''}"
        elif seconds < 3600:
            minutes, secs = divmod(seconds, 60)
            return f"{minutes}m {secs}s" if secs else f"{minutes} minute{'s' if minutes != 1 else ''}"
        elif seconds < 86400:
            hours, rest = divmod(seconds, 3600)
            minutes = rest // 60
            return f"{hours}h {minutes}m" if minutes else f"{hours} hour{'s' if hours != 1 else ''}"
        elif seconds < 31536000:
            days, rest = divmod(seconds, 86400)
            hours = rest // 3600
            return f"{days}d {hours}h" if hours else f"{days} day{'s' if days != 1 else ''}"
        years, rest = divmod(seconds, 31536000)
        days = rest // 86400
        return f"{years}y {days}d" if days else f"{years} year{'s' if years != 1 else ''}"

    def _set_user_thumbnail(self, embed: discord.Embed, user: Union[discord.User, discord.Member]) -> None:
        """Set user avatar as thumbnail if available."""
        avatar = getattr(user, "display_avatar", None)
        if avatar:
            embed.set_thumbnail(url=avatar.url)

    def _diff(self, pairs: List[tuple]) -> List[str]:
        """Lines for (label, before, after) tuples that actually changed."""
        return [
            f"{label}: {before} → {after}"
            for label, before, after in pairs
            if before != after
        ]

    # =========================================================================
    # Messages
    # =========================================================================

    async def log_message_delete(self, message: discord.Message) -> None:
        """Log a message deletion."""
        if message.guild is None or message.author.bot:
            return

        embed = self._create_embed("🗑️ Message Deleted", EmbedColors.LOG_NEGATIVE, category=LogCategory.MESSAGES, user_id=message.author.id)
        embed.add_field(name="Author", value=self._format_user_field(message.author), inline=True)
        embed.add_field(name="Channel", value=self._format_channel(message.channel), inline=True)

        content = f"```{message.content[:900]}```" if message.content else "*(no content)*"
        embed.add_field(name="Content", value=content, inline=False)

        if message.attachments:
            embed.add_field(
                name="Attachments",
                value="\n".join(a.filename for a in message.attachments[:10]),
                inline=False,
            )
        self._set_user_thumbnail(embed, message.author)

        await self.log(
            message.guild, LogCategory.MESSAGES, embed,
            channel_id=message.channel.id,
            member=message.author if isinstance(message.author, discord.Member) else None,
        )

    async def log_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        """Log a message edit."""
        if after.guild is None or after.author.bot:
            return

        # Embed unfurls also fire edits
        if before.content == after.content:
            return

        embed = self._create_embed("✏️ Message Edited", EmbedColors.LOG_WARNING, category=LogCategory.MESSAGES, user_id=after.author.id)
        embed.add_field(name="Author", value=self._format_user_field(after.author), inline=True)
        embed.add_field(name="Channel", value=self._format_channel(after.channel), inline=True)
        embed.add_field(name="Jump", value=f"[Go to message]({after.jump_url})", inline=True)

        before_content = f"```{before.content[:400]}```" if before.content else "*(empty)*"
        after_content = f"```{after.content[:400]}```" if after.content else "*(empty)*"
        embed.add_field(name="Before", value=before_content, inline=False)
        embed.add_field(name="After", value=after_content, inline=False)
        self._set_user_thumbnail(embed, after.author)

        await self.log(
            after.guild, LogCategory.MESSAGES, embed,
            channel_id=after.channel.id,
            member=after.author if isinstance(after.author, discord.Member) else None,
        )

    async def log_bulk_delete(self, messages: List[discord.Message]) -> None:
        """Log a bulk message delete."""
        if not messages or messages[0].guild is None:
            return

        channel = messages[0].channel
        embed = self._create_embed("🗑️ Bulk Delete", EmbedColors.LOG_NEGATIVE, category=LogCategory.MESSAGES)
        embed.add_field(name="Channel", value=self._format_channel(channel), inline=True)
        embed.add_field(name="Messages", value=f"**{len(messages)}**", inline=True)

        await self.log(messages[0].guild, LogCategory.MESSAGES, embed, channel_id=channel.id)

    # =========================================================================
    # Members
    # =========================================================================

    async def log_member_join(self, member: discord.Member) -> None:
        """Log a member join."""
        embed = self._create_embed("📥 Member Joined", EmbedColors.LOG_POSITIVE, category=LogCategory.MEMBERS, user_id=member.id)
        embed.add_field(name="User", value=self._format_user_field(member), inline=True)
        embed.add_field(name="Account Created", value=f"<t:{int(member.created_at.timestamp())}:R>", inline=True)
        embed.add_field(name="Member Count", value=str(member.guild.member_count or "?"), inline=True)
        self._set_user_thumbnail(embed, member)

        await self.log(member.guild, LogCategory.MEMBERS, embed)

    async def log_member_leave(self, member: discord.Member) -> None:
        """Log a member leave with roles and time in server."""
        embed = self._create_embed("📤 Member Left", EmbedColors.LOG_NEGATIVE, category=LogCategory.MEMBERS, user_id=member.id)
        embed.add_field(name="User", value=self._format_user_field(member), inline=True)

        if member.joined_at:
            stayed = int((datetime.now(NY_TZ) - member.joined_at).total_seconds())
            embed.add_field(name="Time In Server", value=self._format_duration_precise(max(stayed, 0)), inline=True)

        roles = [r.mention for r in member.roles if r != member.guild.default_role]
        if roles:
            embed.add_field(name="Roles", value=", ".join(roles)[:1024], inline=False)
        self._set_user_thumbnail(embed, member)

        await self.log(member.guild, LogCategory.MEMBERS, embed, member=member)

    async def log_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Log nickname and role changes."""
        if before.nick != after.nick:
            embed = self._create_embed("✨ Nickname Changed", EmbedColors.LOG_INFO, category=LogCategory.MEMBERS, user_id=after.id)
            embed.add_field(name="User", value=self._format_user_field(after), inline=True)
            embed.add_field(name="Before", value=f"`{before.nick or before.name}`", inline=True)
            embed.add_field(name="After", value=f"`{after.nick or after.name}`", inline=True)
            self._set_user_thumbnail(embed, after)
            await self.log(after.guild, LogCategory.MEMBERS, embed, member=after)

        added = [r for r in after.roles if r not in before.roles]
        removed = [r for r in before.roles if r not in after.roles]
        if added or removed:
            embed = self._create_embed("🏷️ Member Roles Updated", EmbedColors.LOG_INFO, category=LogCategory.MEMBERS, user_id=after.id)
            embed.add_field(name="User", value=self._format_user_field(after), inline=True)
            if added:
                embed.add_field(name="Added", value=", ".join(self._format_role(r) for r in added), inline=False)
            if removed:
                embed.add_field(name="Removed", value=", ".join(self._format_role(r) for r in removed), inline=False)
            self._set_user_thumbnail(embed, after)
            await self.log(after.guild, LogCategory.MEMBERS, embed, member=after)

    # =========================================================================
    # Voice
    # =========================================================================

    async def log_voice_state(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Log voice joins, leaves and moves."""
        if before.channel == after.channel:
            return

        if before.channel is None:
            embed = self._create_embed("🔊 Voice Join", EmbedColors.LOG_POSITIVE, category=LogCategory.VOICE, user_id=member.id)
            embed.add_field(name="Channel", value=f"🔊 {after.channel.name}", inline=True)
            channel_id = after.channel.id
        elif after.channel is None:
            embed = self._create_embed("🔇 Voice Leave", EmbedColors.LOG_NEGATIVE, category=LogCategory.VOICE, user_id=member.id)
            embed.add_field(name="Channel", value=f"🔊 {before.channel.name}", inline=True)
            channel_id = before.channel.id
        else:
            embed = self._create_embed("🔀 Voice Move", EmbedColors.LOG_INFO, category=LogCategory.VOICE, user_id=member.id)
            embed.add_field(name="From", value=f"🔊 {before.channel.name}", inline=True)
            embed.add_field(name="To", value=f"🔊 {after.channel.name}", inline=True)
            channel_id = after.channel.id

        embed.insert_field_at(0, name="User", value=self._format_user_field(member), inline=True)
        self._set_user_thumbnail(embed, member)

        await self.log(member.guild, LogCategory.VOICE, embed, channel_id=channel_id, member=member)

    # =========================================================================
    # Channels
    # =========================================================================

    async def log_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        """Log a channel creation."""
        embed = self._create_embed("📁 Channel Created", EmbedColors.LOG_POSITIVE, category=LogCategory.CHANNELS)
        embed.add_field(name="Channel", value=self._format_channel(channel), inline=True)
        embed.add_field(name="Type", value=str(channel.type).title(), inline=True)
        if getattr(channel, "category", None):
            embed.add_field(name="Category", value=channel.category.name, inline=True)

        await self.log(channel.guild, LogCategory.CHANNELS, embed, channel_id=channel.id)

    async def log_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        """Log a channel deletion."""
        embed = self._create_embed("📁 Channel Deleted", EmbedColors.LOG_NEGATIVE, category=LogCategory.CHANNELS)
        embed.add_field(name="Channel", value=f"`{channel.name}`", inline=True)
        embed.add_field(name="Type", value=str(channel.type).title(), inline=True)

        await self.log(channel.guild, LogCategory.CHANNELS, embed, channel_id=channel.id)

    async def log_channel_update(
        self,
        before: discord.abc.GuildChannel,
        after: discord.abc.GuildChannel,
    ) -> None:
        """Log name, topic, category, slowmode and NSFW changes."""
        changes = self._diff([
            ("Name", before.name, after.name),
            ("Topic", getattr(before, "topic", None), getattr(after, "topic", None)),
            ("Category", getattr(before.category, "name", None), getattr(after.category, "name", None)),
            ("Slowmode", getattr(before, "slowmode_delay", None), getattr(after, "slowmode_delay", None)),
            ("NSFW", getattr(before, "nsfw", None), getattr(after, "nsfw", None)),
        ])
        if not changes:
            return

        embed = self._create_embed("📁 Channel Updated", EmbedColors.LOG_WARNING, category=LogCategory.CHANNELS)
        embed.add_field(name="Channel", value=self._format_channel(after), inline=True)
        embed.add_field(name="Changes", value=f"```{chr(10).join(changes)[:1000]}```", inline=False)

        await self.log(after.guild, LogCategory.CHANNELS, embed, channel_id=after.id)

    # =========================================================================
    # Roles
    # =========================================================================

    async def log_role_create(self, role: discord.Role) -> None:
        """Log a role creation."""
        embed = self._create_embed("🎭 Role Created", EmbedColors.LOG_POSITIVE, category=LogCategory.ROLES)
        embed.add_field(name="Role", value=self._format_role(role), inline=True)
        embed.add_field(name="Color", value=str(role.color), inline=True)

        await self.log(role.guild, LogCategory.ROLES, embed)

    async def log_role_delete(self, role: discord.Role) -> None:
        """Log a role deletion."""
        embed = self._create_embed("🎭 Role Deleted", EmbedColors.LOG_NEGATIVE, category=LogCategory.ROLES)
        embed.add_field(name="Role", value=self._format_role(role), inline=True)

        await self.log(role.guild, LogCategory.ROLES, embed)

    async def log_role_update(self, before: discord.Role, after: discord.Role) -> None:
        """Log name, color, hoist, mentionable and permission changes."""
        changes = self._diff([
            ("Name", before.name, after.name),
            ("Color", str(before.color), str(after.color)),
            ("Hoisted", before.hoist, after.hoist),
            ("Mentionable", before.mentionable, after.mentionable),
            ("Permissions", before.permissions.value, after.permissions.value),
        ])
        if not changes:
            return

        embed = self._create_embed("🎭 Role Updated", EmbedColors.LOG_WARNING, category=LogCategory.ROLES)
        embed.add_field(name="Role", value=self._format_role(after), inline=True)
        embed.add_field(name="Changes", value=f"```{chr(10).join(changes)[:1000]}```", inline=False)

        await self.log(after.guild, LogCategory.ROLES, embed)

    # =========================================================================
    # Server
    # =========================================================================

    async def log_server_update(self, before: discord.Guild, after: discord.Guild) -> None:
        """Log server setting changes."""
        changes = self._diff([
            ("Name", before.name, after.name),
            ("Description", before.description, after.description),
            ("Owner", before.owner_id, after.owner_id),
            ("Verification", str(before.verification_level), str(after.verification_level)),
            ("AFK Channel", getattr(before.afk_channel, "name", None), getattr(after.afk_channel, "name", None)),
            ("Icon", getattr(before.icon, "key", None), getattr(after.icon, "key", None)),
        ])
        if not changes:
            return

        embed = self._create_embed("⚙️ Server Updated", EmbedColors.LOG_WARNING, category=LogCategory.SERVER)
        embed.add_field(name="Changes", value=f"```{chr(10).join(changes)[:1000]}```", inline=False)
        if after.icon:
            embed.set_thumbnail(url=after.icon.url)

        await self.log(after, LogCategory.SERVER, embed)


__all__ = ["LoggingService"]
