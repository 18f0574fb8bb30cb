"""
Courier - Modmail Service Tests
===============================

Tests for the thread lifecycle, DM handling and the idle sweep.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from src.core.constants import INACTIVITY_REASON
from src.services.modmail.constants import DELIVERED_REACTION, SENT_REACTION
from src.services.modmail.handlers import (
    BLOCKED_NOTICE,
    EMPTY_NOTICE,
    NO_GUILDS_NOTICE,
)
from src.services.modmail.models import Direction, InboundMessage, ThreadDeliveryError
from src.services.modmail.router import RouteAction
from src.services.modmail.service import ALREADY_CLOSED
from src.services.modmail.views import GuildSelectView

from factories import (
    add_guild,
    enable_modmail,
    make_category,
    make_channel,
    make_dm,
    make_guild,
    make_user,
    server_error,
    set_last_activity,
)


USER_ID = 123456789
HOUR = 3600


def _sent_embeds(mock_send):
    return [c.kwargs["embed"] for c in mock_send.await_args_list if "embed" in c.kwargs]


def _modmail_guild(bot, db, guild_id=1001, name="Alpha", category_id=7001, new_channel_id=5001):
    """Guild with modmail set up whose create_text_channel returns a fresh channel."""
    category = make_category(category_id)
    guild = make_guild(guild_id, name, member_ids=[USER_ID], channels={category_id: category})
    channel = make_channel(new_channel_id, name="mm-testuser-12345678-000000", guild=guild, category_id=category_id)
    guild.create_text_channel.return_value = channel
    add_guild(bot, guild)
    enable_modmail(db, guild_id, category_id=category_id)
    return guild, category, channel


# =============================================================================
# Create
# =============================================================================

class TestCreateThread:
    """Tests for create_thread."""

    @pytest.mark.asyncio
    async def test_first_dm_opens_thread(self, modmail_service, test_db, mock_bot):
        """A first DM with one eligible guild opens a thread under its category."""
        guild, category, channel = _modmail_guild(mock_bot, test_db)
        user = make_user(USER_ID)
        message = make_dm(user, "Hello")

        await modmail_service.handle_dm(message)

        thread = test_db.get_open_thread(USER_ID, 1001)
        assert thread is not None
        assert thread["message_count"] == 1
        assert thread["channel_id"] == channel.id
        assert guild.create_text_channel.await_args.kwargs["category"] is category

        summary = _sent_embeds(channel.send)[0]
        assert "Hello" in summary.description

        message.add_reaction.assert_awaited_with(DELIVERED_REACTION)
        delivered = _sent_embeds(user.send)[-1]
        assert "Message Delivered" in delivered.title

    @pytest.mark.asyncio
    async def test_channel_is_private(self, modmail_service, test_db, mock_bot):
        """@everyone can't see the thread channel; the bot can."""
        guild, _, _ = _modmail_guild(mock_bot, test_db)

        await modmail_service.create_thread(make_user(USER_ID), 1001, InboundMessage(content="Hi"))

        overwrites = guild.create_text_channel.await_args.kwargs["overwrites"]
        assert overwrites[guild.default_role].view_channel is False
        assert overwrites[guild.me].view_channel is True

    @pytest.mark.asyncio
    async def test_missing_category(self, modmail_service, test_db, mock_bot):
        """A configured category that no longer exists gives an explanation."""
        guild = make_guild(1001, "Alpha", member_ids=[USER_ID])
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001, category_id=7001)

        thread, reply = await modmail_service.create_thread(make_user(USER_ID), 1001, InboundMessage(content="Hi"))

        assert thread is None
        assert "missing" in reply
        guild.create_text_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_modmail_not_configured(self, modmail_service, test_db, mock_bot):
        """A guild without a category can't open threads."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))

        thread, reply = await modmail_service.create_thread(make_user(USER_ID), 1001, None)

        assert thread is None
        assert "not set up" in reply

    @pytest.mark.asyncio
    async def test_forbidden_channel_creation(self, modmail_service, test_db, mock_bot):
        """Missing permissions leave no thread row behind."""
        guild, _, _ = _modmail_guild(mock_bot, test_db)
        guild.create_text_channel.side_effect = discord.Forbidden(
            MagicMock(status=403, reason="Forbidden"), "Missing Permissions"
        )

        thread, reply = await modmail_service.create_thread(make_user(USER_ID), 1001, InboundMessage(content="Hi"))

        assert thread is None
        assert "permission" in reply
        assert test_db.get_open_thread(USER_ID, 1001) is None

    @pytest.mark.asyncio
    async def test_duplicate_create_reuses_thread(self, modmail_service, test_db, mock_bot):
        """Losing the create race deletes the new channel and forwards to the existing thread."""
        guild, _, new_channel = _modmail_guild(mock_bot, test_db, new_channel_id=5002)
        existing, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        existing_channel = make_channel(5001, guild=guild)
        mock_bot.channel_map[5001] = existing_channel

        thread, reply = await modmail_service.create_thread(make_user(USER_ID), 1001, InboundMessage(content="Hi"))

        assert thread["id"] == existing["id"]
        assert "open conversation" in reply
        new_channel.delete.assert_awaited_once()
        existing_channel.send.assert_awaited_once()
        assert test_db.get_thread(existing["id"])["message_count"] == 2


# =============================================================================
# Relay
# =============================================================================

class TestRelay:
    """Tests for forwarding in both directions."""

    @pytest.mark.asyncio
    async def test_follow_up_dm_is_forwarded(self, modmail_service, test_db, mock_bot):
        """A second DM lands in the existing thread channel."""
        _, _, channel = _modmail_guild(mock_bot, test_db)
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))
        await modmail_service.handle_dm(make_dm(user, "More details"))

        thread = test_db.get_open_thread(USER_ID, 1001)
        assert thread["message_count"] == 2
        assert "More details" in _sent_embeds(channel.send)[-1].description

    @pytest.mark.asyncio
    async def test_failed_relay_is_reported(self, modmail_service, test_db, mock_bot):
        """A failed relay to staff tells the user and doesn't count the message."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        channel = make_channel(5001)
        channel.send.side_effect = discord.HTTPException(MagicMock(status=500, reason="Server Error"), "boom")
        mock_bot.channel_map[5001] = channel
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))

        assert "could not reach" in _sent_embeds(user.send)[-1].description
        assert test_db.get_thread(thread["id"])["message_count"] == 1

    @pytest.mark.asyncio
    async def test_forward_to_missing_channel_raises(self, modmail_service, test_db):
        """forward_to_thread raises ThreadDeliveryError when the channel is gone."""
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)

        with pytest.raises(ThreadDeliveryError):
            await modmail_service.forward_to_thread(
                thread, InboundMessage(content="Hi", author=make_user(USER_ID)), Direction.USER_TO_STAFF
            )

    @pytest.mark.asyncio
    async def test_staff_message_reaches_user(self, modmail_service, test_db, mock_bot):
        """Typing in the thread channel DMs the user and reacts."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        user = make_user(USER_ID)
        mock_bot.user_map[USER_ID] = user

        message = make_dm(make_user(111222333, "staffer"), "We're looking into it")
        message.channel = make_channel(5001)

        handled = await modmail_service.handle_staff_message(message)

        assert handled is True
        reply = _sent_embeds(user.send)[-1]
        assert reply.title == "Reply from Alpha"
        assert reply.description == "We're looking into it"
        message.add_reaction.assert_awaited_with(SENT_REACTION)
        assert test_db.get_thread(thread["id"])["message_count"] == 2

    @pytest.mark.asyncio
    async def test_internal_note_is_not_relayed(self, modmail_service, test_db, mock_bot):
        """Messages starting with ! stay in the channel."""
        test_db.create_thread_record(USER_ID, 1001, 5001)
        user = make_user(USER_ID)
        mock_bot.user_map[USER_ID] = user

        message = make_dm(make_user(111222333, "staffer"), "!note to self")
        message.channel = make_channel(5001)

        assert await modmail_service.handle_staff_message(message) is False
        user.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_dms_are_reported_in_channel(self, modmail_service, test_db, mock_bot):
        """When the user can't be DMed, staff see why."""
        test_db.create_thread_record(USER_ID, 1001, 5001)
        user = make_user(USER_ID)
        user.send.side_effect = discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Cannot send")
        mock_bot.user_map[USER_ID] = user

        message = make_dm(make_user(111222333, "staffer"), "Hello?")
        message.channel = make_channel(5001)

        await modmail_service.handle_staff_message(message)

        notice = message.channel.send.await_args.args[0]
        assert notice.startswith("⚠️ Not delivered")

    @pytest.mark.asyncio
    async def test_reply_from_staff_echoes(self, modmail_service, test_db, mock_bot):
        """Modal and slash command replies are echoed into the channel."""
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        channel = make_channel(5001)
        mock_bot.channel_map[5001] = channel
        mock_bot.user_map[USER_ID] = make_user(USER_ID)

        success, result = await modmail_service.reply_from_staff(thread, make_user(111222333, "staffer"), "Done")

        assert success is True
        assert result == "Reply sent."
        assert _sent_embeds(channel.send)[-1].description == "Done"


# =============================================================================
# DM Outcomes
# =============================================================================

class TestDmOutcomes:
    """Tests for the notices and prompts a DM can produce."""

    @pytest.mark.asyncio
    async def test_no_guilds_notice(self, modmail_service):
        """A user with no eligible guild is told modmail is unavailable."""
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))

        assert _sent_embeds(user.send)[-1].description == NO_GUILDS_NOTICE

    @pytest.mark.asyncio
    async def test_empty_dm_notice(self, modmail_service):
        """A DM with nothing to relay is answered, not routed."""
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "   "))

        assert _sent_embeds(user.send)[-1].description == EMPTY_NOTICE

    @pytest.mark.asyncio
    async def test_block_notice_is_rate_limited(self, modmail_service, test_db, mock_bot):
        """A blocked user is told once per cooldown."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        test_db.block_user(USER_ID, 1001, 999)
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))
        await modmail_service.handle_dm(make_dm(user, "Hello again"))

        assert user.send.await_count == 1
        assert _sent_embeds(user.send)[0].description == BLOCKED_NOTICE

    @pytest.mark.asyncio
    async def test_guild_prompt_stores_pending(self, modmail_service, test_db, mock_bot):
        """Several guilds store the DM and send a server picker."""
        _modmail_guild(mock_bot, test_db, 1001, "Alpha", 7001, 5001)
        _modmail_guild(mock_bot, test_db, 1002, "Beta", 7002, 5002)
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))

        assert test_db.get_pending_message(USER_ID)["content"] == "Hello"
        assert isinstance(user.send.await_args.kwargs["view"], GuildSelectView)

    @pytest.mark.asyncio
    async def test_quick_follow_up_merges_into_prompt(self, modmail_service, test_db, mock_bot):
        """A second DM before answering is appended, not prompted again."""
        _modmail_guild(mock_bot, test_db, 1001, "Alpha", 7001, 5001)
        _modmail_guild(mock_bot, test_db, 1002, "Beta", 7002, 5002)
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "Hello"))
        await modmail_service.handle_dm(make_dm(user, "Are you there?"))

        assert test_db.get_pending_message(USER_ID)["content"] == "Hello\nAre you there?"
        assert user.send.await_count == 1

    @pytest.mark.asyncio
    async def test_guild_selection_opens_thread(self, modmail_service, test_db, mock_bot, mock_interaction):
        """Choosing a server delivers the pending DM there."""
        _modmail_guild(mock_bot, test_db, 1001, "Alpha", 7001, 5001)
        _, _, beta_channel = _modmail_guild(mock_bot, test_db, 1002, "Beta", 7002, 5002)
        user = make_user(USER_ID)
        mock_interaction.user = user
        test_db.save_pending_message(USER_ID, "Hello")

        await modmail_service.handle_guild_selection(mock_interaction, USER_ID, 1002)

        thread = test_db.get_open_thread(USER_ID, 1002)
        assert thread["channel_id"] == beta_channel.id
        assert thread["subject"] == "Hello"
        assert test_db.get_pending_message(USER_ID) is None
        mock_interaction.response.edit_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_selection_by_other_user_is_refused(self, modmail_service, test_db, mock_interaction):
        """Only the user who got the prompt can answer it."""
        test_db.save_pending_message(USER_ID, "Hello")

        await modmail_service.handle_guild_selection(mock_interaction, USER_ID, 1001)

        mock_interaction.response.send_message.assert_awaited_once()
        assert test_db.get_pending_message(USER_ID) is not None

    @pytest.mark.asyncio
    async def test_expired_selection(self, modmail_service, mock_interaction):
        """Answering after the pending DM expired says so."""
        mock_interaction.user = make_user(USER_ID)

        await modmail_service.handle_guild_selection(mock_interaction, USER_ID, 1001)

        embed = mock_interaction.response.edit_message.await_args.kwargs["embed"]
        assert "expired" in embed.description

    @pytest.mark.asyncio
    async def test_first_auto_forward_is_announced(self, modmail_service, test_db, mock_bot):
        """The first DM auto-routed among several threads names the server, later ones don't."""
        alpha = make_guild(1001, "Alpha", member_ids=[USER_ID])
        beta = make_guild(1002, "Beta", member_ids=[USER_ID])
        add_guild(mock_bot, alpha)
        add_guild(mock_bot, beta)
        enable_modmail(test_db, 1001)
        enable_modmail(test_db, 1002)
        a, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        b, _ = test_db.create_thread_record(USER_ID, 1002, 5002)
        mock_bot.channel_map[5001] = make_channel(5001, guild=alpha)
        mock_bot.channel_map[5002] = make_channel(5002, guild=beta)
        set_last_activity(test_db, a["id"], 2 * HOUR)
        set_last_activity(test_db, b["id"], 600)
        user = make_user(USER_ID)

        await modmail_service.handle_dm(make_dm(user, "one"))
        await modmail_service.handle_dm(make_dm(user, "two"))

        notices = _sent_embeds(user.send)
        assert len(notices) == 1
        assert "**Beta**" in notices[0].description

    @pytest.mark.asyncio
    async def test_selection_keeps_thread_when_channel_unreachable(
        self, modmail_service, test_db, mock_bot, mock_interaction
    ):
        """A 503 on the existing thread's channel doesn't close it or open a second one."""
        guild, _, _ = _modmail_guild(mock_bot, test_db, 1001, "Alpha", 7001, 5001)
        _modmail_guild(mock_bot, test_db, 1002, "Beta", 7002, 5002)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 4001)
        mock_bot.fetch_channel.side_effect = server_error()
        user = make_user(USER_ID)
        mock_interaction.user = user
        test_db.save_pending_message(USER_ID, "Hello")

        await modmail_service.handle_guild_selection(mock_interaction, USER_ID, 1001)

        assert test_db.get_thread(thread["id"])["open"] == 1
        guild.create_text_channel.assert_not_awaited()
        assert "could not be reached" in _sent_embeds(user.send)[-1].description


# =============================================================================
# Close
# =============================================================================

class TestCloseThread:
    """Tests for close_thread."""

    @pytest.mark.asyncio
    async def test_close_once(self, modmail_service, test_db, mock_bot):
        """The second close reports the thread is already closed."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        user = make_user(USER_ID)
        mock_bot.user_map[USER_ID] = user

        first = await modmail_service.close_thread(thread, 999, "resolved")
        second = await modmail_service.close_thread(thread, 999, "resolved")

        assert first == (True, "Thread closed.")
        assert second == (False, ALREADY_CLOSED)
        assert user.send.await_count == 1
        assert "Conversation Closed" in _sent_embeds(user.send)[0].title

    @pytest.mark.asyncio
    async def test_close_posts_notice_and_deletes_channel(self, modmail_service, test_db, mock_bot):
        """The channel gets a close notice and is deleted after the delay."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        channel = make_channel(5001)
        mock_bot.channel_map[5001] = channel

        with patch(
            "src.services.modmail.service.create_transcript_file",
            AsyncMock(return_value=MagicMock(spec=discord.File)),
        ):
            success, _ = await modmail_service.close_thread(thread, 999, "resolved")

        assert success is True
        assert "Thread Closed" in _sent_embeds(channel.send)[-1].title

        task = modmail_service._pending_deletions.get(thread["id"])
        assert task is not None
        await task
        channel.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_sends_transcript_to_log_channel(self, modmail_service, test_db, mock_bot):
        """The modmail log channel receives the close embed with the transcript."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        enable_modmail(test_db, 1001, log_channel_id=6000)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        log_channel = make_channel(6000)
        mock_bot.channel_map[5001] = make_channel(5001)
        mock_bot.channel_map[6000] = log_channel
        transcript = MagicMock(spec=discord.File)

        with patch(
            "src.services.modmail.service.create_transcript_file",
            AsyncMock(return_value=transcript),
        ):
            await modmail_service.close_thread(thread, None, "done")

        kwargs = log_channel.send.await_args.kwargs
        assert kwargs["file"] is transcript
        assert kwargs["embed"].title == "Modmail Thread Closed"

    @pytest.mark.asyncio
    async def test_close_unblocks_new_thread(self, modmail_service, test_db, mock_bot):
        """After closing, the next DM opens a fresh thread."""
        _modmail_guild(mock_bot, test_db)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 4001)
        mock_bot.channel_map[4001] = make_channel(4001)

        await modmail_service.close_thread(thread, 999)
        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.CREATE


# =============================================================================
# Idle Sweep
# =============================================================================

class TestIdleSweep:
    """Tests for sweep_idle_threads."""

    @pytest.mark.asyncio
    async def test_idle_thread_is_closed(self, modmail_service, test_db, mock_bot):
        """An idle thread past the window is closed and stops receiving DMs."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        mock_bot.channel_map[5001] = make_channel(5001)
        set_last_activity(test_db, thread["id"], 73 * HOUR)

        with patch(
            "src.services.modmail.service.create_transcript_file",
            AsyncMock(return_value=MagicMock(spec=discord.File)),
        ):
            results = await modmail_service.sweep_idle_threads(timedelta(hours=72))

        assert results == {"warned": 0, "closed": 1, "failed": 0}
        closed = test_db.get_thread(thread["id"])
        assert closed["open"] == 0
        assert closed["close_reason"] == INACTIVITY_REASON
        assert closed["closed_by"] is None

        decision = await modmail_service.route_inbound_dm(USER_ID)
        assert decision.action is RouteAction.CREATE

    @pytest.mark.asyncio
    async def test_quiet_thread_is_warned_once(self, modmail_service, test_db, mock_bot):
        """A thread past the warning threshold is warned on one sweep only."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        set_last_activity(test_db, thread["id"], 50 * HOUR)
        user = make_user(USER_ID)
        mock_bot.user_map[USER_ID] = user

        first = await modmail_service.sweep_idle_threads(timedelta(hours=72))
        second = await modmail_service.sweep_idle_threads(timedelta(hours=72))

        assert first["warned"] == 1
        assert second["warned"] == 0
        assert test_db.get_thread(thread["id"])["warning_sent"] == 1
        assert "Inactive" in _sent_embeds(user.send)[0].title

    @pytest.mark.asyncio
    async def test_warning_marked_when_undeliverable(self, modmail_service, test_db):
        """The warning flag is set even if nobody could be reached."""
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        set_last_activity(test_db, thread["id"], 50 * HOUR)

        results = await modmail_service.sweep_idle_threads(timedelta(hours=72))

        assert results["warned"] == 1
        assert test_db.get_thread(thread["id"])["warning_sent"] == 1

    @pytest.mark.asyncio
    async def test_active_thread_untouched(self, modmail_service, test_db):
        """Recently active threads are neither warned nor closed."""
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        set_last_activity(test_db, thread["id"], HOUR)

        results = await modmail_service.sweep_idle_threads(timedelta(hours=72))

        assert results == {"warned": 0, "closed": 0, "failed": 0}
        assert test_db.get_thread(thread["id"])["open"] == 1

    @pytest.mark.asyncio
    async def test_failed_close_does_not_stop_sweep(self, modmail_service, test_db, mock_bot):
        """One thread failing to close is counted and the rest still close."""
        add_guild(mock_bot, make_guild(1001, "Alpha"))
        add_guild(mock_bot, make_guild(1002, "Beta"))
        broken, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        healthy, _ = test_db.create_thread_record(USER_ID, 1002, 5002)
        set_last_activity(test_db, broken["id"], 73 * HOUR)
        set_last_activity(test_db, healthy["id"], 73 * HOUR)
        original = modmail_service.close_thread

        async def flaky(thread, closed_by=None, reason=None):
            if thread["id"] == broken["id"]:
                raise RuntimeError("transcript upload failed")
            return await original(thread, closed_by, reason)

        with patch.object(modmail_service, "close_thread", new=flaky):
            results = await modmail_service.sweep_idle_threads(timedelta(hours=72))

        assert results == {"warned": 0, "closed": 1, "failed": 1}
        assert test_db.get_thread(broken["id"])["open"] == 1
        assert test_db.get_thread(healthy["id"])["open"] == 0


# =============================================================================
# Lifecycle
# =============================================================================

class TestServiceLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, modmail_service):
        """stop cancels the sweep loop."""
        await modmail_service.start()
        task = modmail_service._auto_close_task
        assert modmail_service._running is True

        await modmail_service.stop()

        assert modmail_service._running is False
        assert task.done()
