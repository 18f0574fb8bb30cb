"""
Courier - Modmail Router Tests
==============================

Tests for DM routing and staff channel lookup.
"""

import sqlite3
from unittest.mock import patch

import pytest

from src.core.constants import CHANNEL_MISSING_REASON, NEW_CONVERSATION_VALUE
from src.services.modmail.constants import build_channel_name, parse_channel_user_prefix
from src.services.modmail.router import (
    REASON_BLOCKED,
    REASON_NO_GUILDS,
    REASON_UNAVAILABLE,
    RouteAction,
)

from factories import (
    add_guild,
    enable_modmail,
    make_channel,
    make_guild,
    server_error,
    set_last_activity,
)


USER_ID = 123456789
HOUR = 3600


def _setup_two_threads(service, db, bot, alpha_idle: float, beta_idle: float):
    """User with an open thread in Alpha and Beta, both channels alive."""
    alpha = make_guild(1001, "Alpha", member_ids=[USER_ID])
    beta = make_guild(1002, "Beta", member_ids=[USER_ID])
    add_guild(bot, alpha)
    add_guild(bot, beta)
    enable_modmail(db, 1001)
    enable_modmail(db, 1002)

    a, _ = db.create_thread_record(USER_ID, 1001, 5001)
    b, _ = db.create_thread_record(USER_ID, 1002, 5002)
    bot.channel_map[5001] = make_channel(5001, guild=alpha)
    bot.channel_map[5002] = make_channel(5002, guild=beta)
    set_last_activity(db, a["id"], alpha_idle)
    set_last_activity(db, b["id"], beta_idle)
    return a, b


class TestCandidateGuilds:
    """Tests for guild eligibility."""

    @pytest.mark.asyncio
    async def test_no_shared_guilds(self, modmail_service):
        """Without eligible guilds a DM has no destination."""
        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.NO_DESTINATION
        assert decision.reason == REASON_NO_GUILDS

    @pytest.mark.asyncio
    async def test_shared_guild_without_modmail(self, modmail_service, mock_bot):
        """A shared guild with modmail disabled is not a candidate."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))

        decision = await modmail_service.route_inbound_dm(USER_ID)
        assert decision.action is RouteAction.NO_DESTINATION

    @pytest.mark.asyncio
    async def test_blocked_user(self, modmail_service, test_db, mock_bot):
        """A block in the only candidate guild reports the blocking guild."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        test_db.block_user(USER_ID, 1001, 999, "spam")

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.NO_DESTINATION
        assert decision.reason == REASON_BLOCKED
        assert decision.blocked_guild_ids == [1001]

    @pytest.mark.asyncio
    async def test_uncached_member_is_fetched(self, modmail_service, test_db, mock_bot):
        """Modmail guilds fall back to an API member fetch."""
        guild = make_guild(1001, "Alpha")
        guild.fetch_member.side_effect = None
        guild.fetch_member.return_value = object()
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.CREATE
        guild.fetch_member.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_membership_is_cached(self, modmail_service, test_db, mock_bot):
        """The second lookup within the TTL skips the guild scan."""
        guild = make_guild(1001, "Alpha", member_ids=[USER_ID])
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001)

        await modmail_service.get_mutual_guild_ids(USER_ID)
        await modmail_service.get_mutual_guild_ids(USER_ID)

        assert guild.get_member.call_count == 1

    @pytest.mark.asyncio
    async def test_membership_rechecked_after_modmail_enabled(self, modmail_service, test_db, mock_bot):
        """A DM sent before setup doesn't hide the guild once modmail is enabled."""
        guild = make_guild(1001, "Alpha")
        guild.fetch_member.side_effect = None
        guild.fetch_member.return_value = object()
        add_guild(mock_bot, guild)

        first = await modmail_service.route_inbound_dm(USER_ID)
        assert first.action is RouteAction.NO_DESTINATION
        assert modmail_service.membership_cache.get(USER_ID) is None

        enable_modmail(test_db, 1001)
        second = await modmail_service.route_inbound_dm(USER_ID)

        assert second.action is RouteAction.CREATE
        assert second.guild_id == 1001

    @pytest.mark.asyncio
    async def test_failed_member_fetch_is_not_cached(self, modmail_service, test_db, mock_bot):
        """A member fetch that errors leaves membership unknown for the next DM."""
        guild = make_guild(1001, "Alpha")
        guild.fetch_member.side_effect = server_error()
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001)

        assert await modmail_service.get_mutual_guild_ids(USER_ID) == ()

        guild.fetch_member.side_effect = None
        guild.fetch_member.return_value = object()

        assert await modmail_service.get_mutual_guild_ids(USER_ID) == (1001,)


class TestRouteInboundDm:
    """Tests for route_inbound_dm decisions."""

    @pytest.mark.asyncio
    async def test_single_guild_creates(self, modmail_service, test_db, mock_bot):
        """One candidate and no thread means CREATE there."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.CREATE
        assert decision.guild_id == 1001

    @pytest.mark.asyncio
    async def test_several_guilds_prompt(self, modmail_service, test_db, mock_bot):
        """Several candidates and no thread asks which server, sorted by name."""
        add_guild(mock_bot, make_guild(1002, "beta", member_ids=[USER_ID]))
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        enable_modmail(test_db, 1002)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.PROMPT_GUILD_SELECT
        assert [o.label for o in decision.options] == ["Alpha", "beta"]
        assert [o.value for o in decision.options] == ["1001", "1002"]

    @pytest.mark.asyncio
    async def test_single_open_thread_forwards(self, modmail_service, test_db, mock_bot):
        """One live thread is forwarded to regardless of age."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        add_guild(mock_bot, make_guild(1002, "Beta", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        enable_modmail(test_db, 1002)
        thread, _ = test_db.create_thread_record(USER_ID, 1002, 5002)
        mock_bot.channel_map[5002] = make_channel(5002)
        set_last_activity(test_db, thread["id"], 10 * HOUR)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.FORWARD
        assert decision.thread["id"] == thread["id"]
        assert decision.auto_selected is False

    @pytest.mark.asyncio
    async def test_recent_thread_is_auto_selected(self, modmail_service, test_db, mock_bot):
        """The most recently active thread wins inside the sticky window."""
        a, b = _setup_two_threads(modmail_service, test_db, mock_bot, alpha_idle=2 * HOUR, beta_idle=600)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.FORWARD
        assert decision.thread["id"] == b["id"]
        assert decision.auto_selected is True

    @pytest.mark.asyncio
    async def test_idle_threads_prompt(self, modmail_service, test_db, mock_bot):
        """Two threads outside the sticky window make the user choose."""
        _setup_two_threads(modmail_service, test_db, mock_bot, alpha_idle=3 * HOUR, beta_idle=3 * HOUR + 5)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.PROMPT_THREAD_SELECT
        labels = [o.label for o in decision.options]
        assert labels == ["Alpha", "Beta", "New Conversation"]
        assert decision.options[-1].value == NEW_CONVERSATION_VALUE

    @pytest.mark.asyncio
    async def test_zero_window_always_prompts(self, modmail_service, test_db, mock_bot, mock_config):
        """A zero recent window disables auto-selection."""
        mock_config.modmail_recent_window_minutes = 0
        _setup_two_threads(modmail_service, test_db, mock_bot, alpha_idle=60, beta_idle=30)

        decision = await modmail_service.route_inbound_dm(USER_ID)
        assert decision.action is RouteAction.PROMPT_THREAD_SELECT

    @pytest.mark.asyncio
    async def test_routing_is_deterministic(self, modmail_service, test_db, mock_bot):
        """The same store state gives the same decision."""
        _setup_two_threads(modmail_service, test_db, mock_bot, alpha_idle=600, beta_idle=1200)

        first = await modmail_service.route_inbound_dm(USER_ID)
        second = await modmail_service.route_inbound_dm(USER_ID)

        assert first.action is second.action
        assert first.thread["id"] == second.thread["id"]

    @pytest.mark.asyncio
    async def test_lost_thread_is_closed(self, modmail_service, test_db, mock_bot):
        """A thread whose channel vanished is closed and reported."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.CREATE
        assert [t["id"] for t in decision.lost_threads] == [thread["id"]]
        closed = test_db.get_thread(thread["id"])
        assert closed["open"] == 0
        assert closed["close_reason"] == CHANNEL_MISSING_REASON

    @pytest.mark.asyncio
    async def test_thread_in_ineligible_guild_is_ignored(self, modmail_service, test_db, mock_bot):
        """Open threads in guilds that disabled modmail don't attract DMs."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        add_guild(mock_bot, make_guild(1002, "Beta", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        test_db.create_thread_record(USER_ID, 1002, 5002)
        mock_bot.channel_map[5002] = make_channel(5002)

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.CREATE
        assert decision.guild_id == 1001

    @pytest.mark.asyncio
    async def test_unreachable_channel_keeps_thread_open(self, modmail_service, test_db, mock_bot):
        """A 503 while checking the channel keeps forwarding to the thread."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)
        mock_bot.fetch_channel.side_effect = server_error()

        decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.FORWARD
        assert decision.thread["id"] == thread["id"]
        assert decision.lost_threads == []
        assert test_db.get_thread(thread["id"])["open"] == 1

    @pytest.mark.asyncio
    async def test_store_error_fails_closed(self, modmail_service, test_db, mock_bot):
        """A thread store error answers unavailable instead of opening a thread."""
        add_guild(mock_bot, make_guild(1001, "Alpha", member_ids=[USER_ID]))
        enable_modmail(test_db, 1001)

        with patch.object(test_db, "get_open_threads_for_user", side_effect=sqlite3.Error("database is locked")):
            decision = await modmail_service.route_inbound_dm(USER_ID)

        assert decision.action is RouteAction.NO_DESTINATION
        assert decision.reason == REASON_UNAVAILABLE
        assert test_db.get_open_threads_for_user(USER_ID) == []


class TestRouteChannelEvent:
    """Tests for route_channel_event."""

    @pytest.mark.asyncio
    async def test_bound_channel(self, modmail_service, test_db):
        """The thread bound to a channel is found directly."""
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)

        found = await modmail_service.route_channel_event(5001)
        assert found["id"] == thread["id"]

    @pytest.mark.asyncio
    async def test_unknown_channel(self, modmail_service):
        """A channel that isn't cached and isn't bound has no thread."""
        assert await modmail_service.route_channel_event(9999) is None

    @pytest.mark.asyncio
    async def test_recreated_channel_is_rebound(self, modmail_service, test_db, mock_bot):
        """A channel in the modmail category named for the user takes over a lost thread."""
        guild = make_guild(1001, "Alpha")
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001, category_id=7001)
        thread, _ = test_db.create_thread_record(USER_ID, 1001, 5001)

        name = build_channel_name("testuser", USER_ID, 1700000000)
        mock_bot.channel_map[6001] = make_channel(6001, name=name, guild=guild, category_id=7001)

        found = await modmail_service.route_channel_event(6001)

        assert found["id"] == thread["id"]
        assert found["channel_id"] == 6001

    @pytest.mark.asyncio
    async def test_no_rebind_while_old_channel_exists(self, modmail_service, test_db, mock_bot):
        """A thread whose own channel still exists keeps it."""
        guild = make_guild(1001, "Alpha")
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001, category_id=7001)
        test_db.create_thread_record(USER_ID, 1001, 5001)
        mock_bot.channel_map[5001] = make_channel(5001, guild=guild, category_id=7001)

        name = build_channel_name("testuser", USER_ID, 1700000000)
        mock_bot.channel_map[6001] = make_channel(6001, name=name, guild=guild, category_id=7001)

        assert await modmail_service.route_channel_event(6001) is None
        assert test_db.get_thread_by_channel(5001) is not None

    @pytest.mark.asyncio
    async def test_channel_outside_category_is_ignored(self, modmail_service, test_db, mock_bot):
        """Name matching only applies inside the modmail category."""
        guild = make_guild(1001, "Alpha")
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001, category_id=7001)
        test_db.create_thread_record(USER_ID, 1001, 5001)

        name = build_channel_name("testuser", USER_ID, 1700000000)
        mock_bot.channel_map[6001] = make_channel(6001, name=name, guild=guild, category_id=8888)

        assert await modmail_service.route_channel_event(6001) is None

    @pytest.mark.asyncio
    async def test_no_rebind_when_old_channel_unreachable(self, modmail_service, test_db, mock_bot):
        """A failed lookup of the old channel isn't treated as a deletion."""
        guild = make_guild(1001, "Alpha")
        add_guild(mock_bot, guild)
        enable_modmail(test_db, 1001, category_id=7001)
        test_db.create_thread_record(USER_ID, 1001, 5001)
        mock_bot.fetch_channel.side_effect = server_error()

        name = build_channel_name("testuser", USER_ID, 1700000000)
        mock_bot.channel_map[6001] = make_channel(6001, name=name, guild=guild, category_id=7001)

        assert await modmail_service.route_channel_event(6001) is None
        assert test_db.get_thread_by_channel(5001) is not None


class TestChannelNames:
    """Tests for modmail channel naming."""

    def test_name_round_trip(self):
        """The user id prefix can be read back from a built name."""
        name = build_channel_name("Some User!", 123456789012345678, 1700000123)
        assert name == "mm-some-user-12345678-000123"
        assert parse_channel_user_prefix(name) == "12345678"

    def test_name_with_dashes(self):
        """Dashes in the username don't confuse the parser."""
        name = build_channel_name("a-b-c", 987654321, 1700000000)
        assert parse_channel_user_prefix(name) == "98765432"

    def test_unrelated_name(self):
        """Ordinary channel names have no user prefix."""
        assert parse_channel_user_prefix("general") is None

    def test_empty_username(self):
        """A username with no safe characters still gets a name."""
        assert build_channel_name("!!!", 1, 1700000000).startswith("mm-user-1-")
