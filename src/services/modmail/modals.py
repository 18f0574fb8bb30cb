"""
Courier - Modmail Modals
========================

Reply and close dialogs opened from the thread action buttons.

Author: Courier Maintainers
"""

from typing import TYPE_CHECKING

import discord

from src.core.logger import logger
from src.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from src.bot import CourierBot


# =============================================================================
# Reply Modal
# =============================================================================

class ModmailReplyModal(discord.ui.Modal, title="Reply to User"):
    """Modal for replying to the user of a thread."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

        self.message = discord.ui.TextInput(
            label="Message",
            style=discord.TextStyle.paragraph,
            placeholder="Your reply will be sent to the user's DMs...",
            required=True,
            min_length=1,
            max_length=2000,
        )
        self.add_item(self.message)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        """Handle modal submission."""
        await interaction.response.defer(ephemeral=True)

        bot: "CourierBot" = interaction.client
        service = getattr(bot, "modmail_service", None)
        if service is None:
            await interaction.followup.send("Modmail service unavailable.", ephemeral=True)
            return

        thread = service.db.get_thread(self.thread_id)
        if thread is None or not thread["open"]:
            await interaction.followup.send("This thread is already closed.", ephemeral=True)
            return

        success, message = await service.reply_from_staff(thread, interaction.user, self.message.value)
        await interaction.followup.send(
            f"✅ {message}" if success else f"❌ {message}",
            ephemeral=True,
        )

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        """Handle modal errors."""
        ErrorHandler.handle(error, location="Modmail Reply Modal", interaction=interaction)
        try:
            if interaction.response.is_done():
                await interaction.followup.send("An error occurred. Please try again.", ephemeral=True)
            else:
                await interaction.response.send_message("An error occurred. Please try again.", ephemeral=True)
        except discord.HTTPException as e:
            logger.debug(f"Reply modal error response failed: {e}")


# =============================================================================
# Close Modal
# =============================================================================

class ModmailCloseModal(discord.ui.Modal, title="Close Thread"):
    """Modal for closing a thread with an optional reason."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

        self.reason = discord.ui.TextInput(
            label="Reason",
            style=discord.TextStyle.paragraph,
            placeholder="Optional - shown to the user",
            required=False,
            max_length=500,
        )
        self.add_item(self.reason)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        """Handle modal submission."""
        await interaction.response.defer(ephemeral=True)

        bot: "CourierBot" = interaction.client
        service = getattr(bot, "modmail_service", None)
        if service is None:
            await interaction.followup.send("Modmail service unavailable.", ephemeral=True)
            return

        thread = service.db.get_thread(self.thread_id)
        if thread is None:
            await interaction.followup.send("Thread not found.", ephemeral=True)
            return

        success, message = await service.close_thread(
            thread,
            interaction.user.id,
            self.reason.value.strip() or None,
        )
        await interaction.followup.send(
            f"🔒 {message}" if success else f"❌ {message}",
            ephemeral=True,
        )

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        """Handle modal errors."""
        ErrorHandler.handle(error, location="Modmail Close Modal", interaction=interaction)
        try:
            if interaction.response.is_done():
                await interaction.followup.send("An error occurred. Please try again.", ephemeral=True)
            else:
                await interaction.response.send_message("An error occurred. Please try again.", ephemeral=True)
        except discord.HTTPException as e:
            logger.debug(f"Close modal error response failed: {e}")


__all__ = ["ModmailReplyModal", "ModmailCloseModal"]
