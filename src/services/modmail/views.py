"""
Courier - Modmail Views
=======================

Persistent buttons and selects for modmail.

DESIGN:
    Every component is a DynamicItem whose custom_id carries the id it
    acts on (thread id for staff buttons, user id for DM selects), so
    they keep working after a restart without stored view state.

Author: Courier Maintainers
"""

import re
from typing import TYPE_CHECKING, Optional, Sequence

import discord

from src.core.config import check_staff_permission
from src.core.constants import NEW_CONVERSATION_VALUE
from src.core.logger import logger
from src.utils.error_handler import ErrorHandler
from src.utils.interaction import safe_respond

from .constants import (
    CLOSE_BUTTON_PREFIX,
    CLOSE_EMOJI,
    GUILD_SELECT_PREFIX,
    MODMAIL_EMOJI,
    NEW_CONVERSATION_EMOJI,
    REPLY_BUTTON_PREFIX,
    REPLY_EMOJI,
    SERVER_EMOJI,
    THREAD_EMOJI,
    THREAD_SELECT_PREFIX,
    TRANSCRIPT_BUTTON_PREFIX,
    TRANSCRIPT_EMOJI,
)
from .modals import ModmailCloseModal, ModmailReplyModal

if TYPE_CHECKING:
    from src.bot import CourierBot
    from .router import RouteOption


GENERIC_ERROR = "❌ Something went wrong. Please try again."
SERVICE_UNAVAILABLE = "Modmail service unavailable."


def _get_service(interaction: discord.Interaction):
    return getattr(interaction.client, "modmail_service", None)


async def _handle_component_error(
    interaction: discord.Interaction,
    e: Exception,
    location: str,
) -> None:
    ErrorHandler.handle(e, location=location, interaction=interaction)
    await safe_respond(interaction, GENERIC_ERROR)


async def _get_open_thread(interaction: discord.Interaction, thread_id: int):
    """Open thread for a staff button, answering the interaction when it's gone."""
    service = _get_service(interaction)
    if service is None:
        await safe_respond(interaction, SERVICE_UNAVAILABLE)
        return None

    thread = service.db.get_thread(thread_id)
    if thread is None or not thread["open"]:
        await safe_respond(interaction, "This thread is already closed.")
        return None
    return thread


# =============================================================================
# Staff Buttons
# =============================================================================

class ModmailReplyButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"modmail_reply:(?P<thread_id>\d+)"
):
    """Opens the reply modal."""

    def __init__(self, thread_id: int) -> None:
        super().__init__(
            discord.ui.Button(
                label="Reply",
                style=discord.ButtonStyle.secondary,
                emoji=REPLY_EMOJI,
                custom_id=f"{REPLY_BUTTON_PREFIX}:{thread_id}",
            )
        )
        self.thread_id = thread_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "ModmailReplyButton":
        return cls(int(match.group("thread_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            if not await check_staff_permission(interaction):
                return
            if await _get_open_thread(interaction, self.thread_id) is None:
                return
            await interaction.response.send_modal(ModmailReplyModal(self.thread_id))
        except Exception as e:
            await _handle_component_error(interaction, e, "Modmail Reply Button")


class ModmailCloseButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"modmail_close:(?P<thread_id>\d+)"
):
    """Opens the close modal."""

    def __init__(self, thread_id: int) -> None:
        super().__init__(
            discord.ui.Button(
                label="Close Thread",
                style=discord.ButtonStyle.danger,
                emoji=CLOSE_EMOJI,
                custom_id=f"{CLOSE_BUTTON_PREFIX}:{thread_id}",
            )
        )
        self.thread_id = thread_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "ModmailCloseButton":
        return cls(int(match.group("thread_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            if not await check_staff_permission(interaction):
                return
            if await _get_open_thread(interaction, self.thread_id) is None:
                return
            await interaction.response.send_modal(ModmailCloseModal(self.thread_id))
        except Exception as e:
            await _handle_component_error(interaction, e, "Modmail Close Button")


class ModmailTranscriptButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"modmail_transcript:(?P<thread_id>\d+)"
):
    """Sends a text transcript ephemerally."""

    def __init__(self, thread_id: int) -> None:
        super().__init__(
            discord.ui.Button(
                label="Export Transcript",
                style=discord.ButtonStyle.primary,
                emoji=TRANSCRIPT_EMOJI,
                custom_id=f"{TRANSCRIPT_BUTTON_PREFIX}:{thread_id}",
            )
        )
        self.thread_id = thread_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match: re.Match[str],
    ) -> "ModmailTranscriptButton":
        return cls(int(match.group("thread_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            if not await check_staff_permission(interaction):
                return

            service = _get_service(interaction)
            if service is None:
                await safe_respond(interaction, SERVICE_UNAVAILABLE)
                return

            thread = service.db.get_thread(self.thread_id)
            if thread is None:
                await safe_respond(interaction, "Thread not found.")
                return

            await interaction.response.defer(ephemeral=True, thinking=True)
            file = await service.export_transcript(thread, interaction.user)
            if file is None:
                await interaction.followup.send("The thread channel could not be read.", ephemeral=True)
                return
            await interaction.followup.send(
                f"{TRANSCRIPT_EMOJI} Transcript for thread #{thread['id']}",
                file=file,
                ephemeral=True,
            )
        except Exception as e:
            await _handle_component_error(interaction, e, "Modmail Transcript Button")


class ThreadActionsView(discord.ui.View):
    """Reply / Close / Transcript row posted in every thread channel."""

    def __init__(self, thread_id: int) -> None:
        super().__init__(timeout=None)
        self.add_item(ModmailReplyButton(thread_id))
        self.add_item(ModmailCloseButton(thread_id))
        self.add_item(ModmailTranscriptButton(thread_id))


# =============================================================================
# DM Selects
# =============================================================================

def _build_select_options(options: Sequence["RouteOption"], emoji: str) -> list:
    select_options = []
    for option in options:
        is_new = option.value == NEW_CONVERSATION_VALUE
        select_options.append(discord.SelectOption(
            label=option.label[:100],
            value=option.value,
            emoji=NEW_CONVERSATION_EMOJI if is_new else emoji,
        ))
    return select_options


class ModmailGuildSelect(
    discord.ui.DynamicItem[discord.ui.Select],
    template=r"modmail_guild_select:(?P<user_id>\d+)"
):
    """Lets a user pick which server receives their message."""

    def __init__(self, user_id: int, options: Optional[Sequence["RouteOption"]] = None) -> None:
        super().__init__(
            discord.ui.Select(
                custom_id=f"{GUILD_SELECT_PREFIX}:{user_id}",
                placeholder="Choose a server...",
                min_values=1,
                max_values=1,
                options=_build_select_options(options or [], SERVER_EMOJI),
            )
        )
        self.user_id = user_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Select,
        match: re.Match[str],
    ) -> "ModmailGuildSelect":
        return cls(int(match.group("user_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            service = _get_service(interaction)
            if service is None:
                await safe_respond(interaction, SERVICE_UNAVAILABLE)
                return
            await service.handle_guild_selection(
                interaction, self.user_id, int(self.item.values[0])
            )
        except Exception as e:
            await _handle_component_error(interaction, e, "Modmail Guild Select")


class ModmailThreadSelect(
    discord.ui.DynamicItem[discord.ui.Select],
    template=r"modmail_thread_select:(?P<user_id>\d+)"
):
    """Lets a user pick which open conversation receives their message."""

    def __init__(self, user_id: int, options: Optional[Sequence["RouteOption"]] = None) -> None:
        super().__init__(
            discord.ui.Select(
                custom_id=f"{THREAD_SELECT_PREFIX}:{user_id}",
                placeholder="Choose a conversation...",
                min_values=1,
                max_values=1,
                options=_build_select_options(options or [], THREAD_EMOJI),
            )
        )
        self.user_id = user_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Select,
        match: re.Match[str],
    ) -> "ModmailThreadSelect":
        return cls(int(match.group("user_id")))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            service = _get_service(interaction)
            if service is None:
                await safe_respond(interaction, SERVICE_UNAVAILABLE)
                return
            await service.handle_thread_selection(
                interaction, self.user_id, self.item.values[0]
            )
        except Exception as e:
            await _handle_component_error(interaction, e, "Modmail Thread Select")


class GuildSelectView(discord.ui.View):
    def __init__(self, user_id: int, options: Sequence["RouteOption"]) -> None:
        super().__init__(timeout=None)
        self.add_item(ModmailGuildSelect(user_id, options))


class ThreadSelectView(discord.ui.View):
    def __init__(self, user_id: int, options: Sequence["RouteOption"]) -> None:
        super().__init__(timeout=None)
        self.add_item(ModmailThreadSelect(user_id, options))


# =============================================================================
# Registration
# =============================================================================

def setup_modmail_views(bot: "CourierBot") -> None:
    """Register modmail dynamic items."""
    bot.add_dynamic_items(
        ModmailReplyButton,
        ModmailCloseButton,
        ModmailTranscriptButton,
        ModmailGuildSelect,
        ModmailThreadSelect,
    )
    logger.tree("Modmail Views Registered", [
        ("Buttons", "Reply, Close, Transcript"),
        ("Selects", "Guild, Thread"),
    ], emoji=MODMAIL_EMOJI)


__all__ = [
    "ModmailReplyButton",
    "ModmailCloseButton",
    "ModmailTranscriptButton",
    "ModmailGuildSelect",
    "ModmailThreadSelect",
    "ThreadActionsView",
    "GuildSelectView",
    "ThreadSelectView",
    "setup_modmail_views",
]
