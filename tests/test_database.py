"""
Courier - Database Tests
========================

Tests for the database layer to ensure data integrity.
"""

import sqlite3
import time

import pytest

from factories import enable_modmail, set_last_activity


class TestGuildSettings:
    """Tests for guild settings rows."""

    def test_defaults_created_on_first_read(self, test_db):
        """A new guild gets modmail disabled and every log category enabled."""
        settings = test_db.get_guild_settings(1001)

        assert settings.guild_id == 1001
        assert settings.modmail_enabled is False
        assert settings.nested_modmail_enabled is False
        assert settings.logging_channel_id is None
        assert all(settings.enabled_categories.values())
        assert settings.setup_completed is False

    def test_is_modmail_enabled_does_not_create_row(self, test_db):
        """Checking the flag for an unknown guild leaves the table empty."""
        assert test_db.is_modmail_enabled(1001) is False
        assert test_db.get_all_guild_settings() == []

    def test_set_modmail_enabled_writes_both_flags(self, test_db):
        """The column and the nested projection always change together."""
        test_db.set_modmail_enabled(1001, True)
        settings = test_db.get_guild_settings(1001)
        assert settings.modmail_enabled is True
        assert settings.nested_modmail_enabled is True

        test_db.set_modmail_enabled(1001, False)
        settings = test_db.get_guild_settings(1001)
        assert settings.modmail_enabled is False
        assert settings.nested_modmail_enabled is False

    def test_update_modmail_settings_stores_ids(self, test_db):
        """Modmail ids are stored as strings and read back as ints."""
        settings = test_db.update_modmail_settings(1001, categoryId=7001, logChannelId=7002, staffRoleId=7003)

        assert settings.settings["modmail"]["categoryId"] == "7001"
        assert settings.modmail_category_id == 7001
        assert settings.modmail_log_channel_id == 7002
        assert settings.staff_role_id == 7003

    def test_update_modmail_settings_none_clears_key(self, test_db):
        """Passing None removes a key."""
        test_db.update_modmail_settings(1001, logChannelId=7002)
        settings = test_db.update_modmail_settings(1001, logChannelId=None)
        assert settings.modmail_log_channel_id is None

    def test_update_modmail_settings_keeps_enabled_projection(self, test_db):
        """Updating ids does not touch the enabled flag."""
        test_db.set_modmail_enabled(1001, True)
        settings = test_db.update_modmail_settings(1001, categoryId=7001)
        assert settings.nested_modmail_enabled is True
        assert settings.modmail_enabled is True

    def test_update_modmail_settings_rejects_unknown_key(self, test_db):
        """Unknown keys raise instead of being silently stored."""
        with pytest.raises(ValueError):
            test_db.update_modmail_settings(1001, channel=5)

    def test_category_channel_override_falls_back(self, test_db):
        """A category without an override uses the default log channel."""
        test_db.set_logging_channel(1001, 5000)
        test_db.set_category_channel(1001, "VOICE", 5001)
        settings = test_db.get_guild_settings(1001)

        assert settings.get_category_channel("VOICE") == 5001
        assert settings.get_category_channel("MESSAGES") == 5000

        test_db.set_category_channel(1001, "VOICE", None)
        assert test_db.get_guild_settings(1001).get_category_channel("VOICE") == 5000

    def test_set_category_enabled(self, test_db):
        """Disabling a category is reflected in is_category_enabled."""
        test_db.set_category_enabled(1001, "MEMBERS", False)
        settings = test_db.get_guild_settings(1001)
        assert settings.is_category_enabled("MEMBERS") is False
        assert settings.is_category_enabled("MESSAGES") is True

    def test_unknown_category_is_disabled(self, test_db):
        """Only an explicit True enables a category."""
        assert test_db.get_guild_settings(1001).is_category_enabled("NOPE") is False

    def test_toggle_ignored_channel(self, test_db):
        """Toggling twice adds then removes the channel."""
        assert test_db.toggle_ignored_channel(1001, 42) is True
        assert test_db.get_guild_settings(1001).is_channel_ignored(42) is True
        assert test_db.toggle_ignored_channel(1001, 42) is False
        assert test_db.get_guild_settings(1001).is_channel_ignored(42) is False

    def test_toggle_ignored_role(self, test_db):
        """Roles toggle the same way as channels."""
        assert test_db.toggle_ignored_role(1001, 77) is True
        assert test_db.get_guild_settings(1001).ignored_roles == [77]

    def test_reset_guild_settings(self, test_db):
        """Reset restores defaults and disables modmail."""
        enable_modmail(test_db, 1001)
        test_db.set_logging_channel(1001, 5000)
        test_db.toggle_ignored_channel(1001, 42)
        test_db.mark_setup_completed(1001)

        settings = test_db.reset_guild_settings(1001)

        assert settings.modmail_enabled is False
        assert settings.nested_modmail_enabled is False
        assert settings.modmail_category_id is None
        assert settings.logging_channel_id is None
        assert settings.ignored_channels == []
        assert settings.setup_completed is False

    def test_settings_summary(self, test_db):
        """Summary counts guilds, enabled modmail and completed setups."""
        enable_modmail(test_db, 1001)
        test_db.mark_setup_completed(1001)
        test_db.get_guild_settings(1002)

        assert test_db.get_settings_summary() == {
            "total": 2,
            "modmail_enabled": 1,
            "setup_completed": 1,
        }


class TestModmailThreads:
    """Tests for modmail thread records."""

    def test_create_thread_record(self, test_db):
        """A new thread starts open with one message."""
        record, created = test_db.create_thread_record(123, 1001, 5001, "Hello")

        assert created is True
        assert record["open"] == 1
        assert record["message_count"] == 1
        assert record["subject"] == "Hello"
        assert record["warning_sent"] == 0

    def test_subject_is_trimmed(self, test_db):
        """Long opening messages are cut to 50 characters."""
        record, _ = test_db.create_thread_record(123, 1001, 5001, "x" * 200)
        assert len(record["subject"]) == 50

    def test_duplicate_open_thread_returns_existing(self, test_db):
        """A second insert for the same (user, guild) resolves to the first thread."""
        first, _ = test_db.create_thread_record(123, 1001, 5001, "Hello")
        second, created = test_db.create_thread_record(123, 1001, 5002, "Again")

        assert created is False
        assert second["id"] == first["id"]
        assert second["channel_id"] == 5001
        assert len(test_db.get_open_threads_for_user(123)) == 1

    def test_same_user_different_guilds(self, test_db):
        """One user can have one open thread per guild."""
        test_db.create_thread_record(123, 1001, 5001)
        test_db.create_thread_record(123, 1002, 5002)
        assert len(test_db.get_open_threads_for_user(123)) == 2

    def test_channel_conflict_raises(self, test_db):
        """Binding a channel that already belongs to another thread is an error."""
        test_db.create_thread_record(123, 1001, 5001)
        with pytest.raises(sqlite3.IntegrityError):
            test_db.create_thread_record(456, 1001, 5001)

    def test_new_thread_after_close(self, test_db):
        """Closing frees the (user, guild) slot."""
        first, _ = test_db.create_thread_record(123, 1001, 5001)
        test_db.close_thread_record(first["id"], None, "done")

        second, created = test_db.create_thread_record(123, 1001, 5002)
        assert created is True
        assert second["id"] != first["id"]

    def test_close_transitions_once(self, test_db):
        """The second close reports False and keeps the first close's data."""
        record, _ = test_db.create_thread_record(123, 1001, 5001)

        assert test_db.close_thread_record(record["id"], 999, "resolved") is True
        assert test_db.close_thread_record(record["id"], 888, "again") is False

        closed = test_db.get_thread(record["id"])
        assert closed["open"] == 0
        assert closed["closed_by"] == 999
        assert closed["close_reason"] == "resolved"
        assert closed["closed_at"] is not None

    def test_record_activity_clears_warning(self, test_db):
        """New activity bumps the count and re-arms the idle warning."""
        record, _ = test_db.create_thread_record(123, 1001, 5001)
        test_db.mark_thread_warned(record["id"])

        test_db.record_thread_activity(record["id"])

        updated = test_db.get_thread(record["id"])
        assert updated["message_count"] == 2
        assert updated["warning_sent"] == 0

    def test_open_threads_ordered_by_recency(self, test_db):
        """Most recently active thread comes first."""
        old, _ = test_db.create_thread_record(123, 1001, 5001)
        new, _ = test_db.create_thread_record(123, 1002, 5002)
        set_last_activity(test_db, old["id"], 600)
        set_last_activity(test_db, new["id"], 60)

        threads = test_db.get_open_threads_for_user(123)
        assert [t["id"] for t in threads] == [new["id"], old["id"]]

    def test_update_thread_channel(self, test_db):
        """Rebinding moves the thread to the new channel id."""
        record, _ = test_db.create_thread_record(123, 1001, 5001)
        test_db.update_thread_channel(record["id"], 6001)

        assert test_db.get_thread_by_channel(5001) is None
        assert test_db.get_thread_by_channel(6001)["id"] == record["id"]

    def test_idle_and_warning_queries(self, test_db):
        """Idle threads and warning candidates are split by the two cutoffs."""
        now = time.time()
        hour = 3600
        due_close, _ = test_db.create_thread_record(1, 1001, 5001)
        due_warning, _ = test_db.create_thread_record(2, 1001, 5002)
        fresh, _ = test_db.create_thread_record(3, 1001, 5003)
        set_last_activity(test_db, due_close["id"], 73 * hour)
        set_last_activity(test_db, due_warning["id"], 50 * hour)
        set_last_activity(test_db, fresh["id"], hour)

        idle = test_db.get_idle_threads(now - 72 * hour)
        warn = test_db.get_threads_needing_warning(now - 48 * hour, now - 72 * hour)

        assert [t["id"] for t in idle] == [due_close["id"]]
        assert [t["id"] for t in warn] == [due_warning["id"]]

        test_db.mark_thread_warned(due_warning["id"])
        assert test_db.get_threads_needing_warning(now - 48 * hour, now - 72 * hour) == []

    def test_modmail_stats(self, test_db):
        """Stats count open and closed threads per guild."""
        a, _ = test_db.create_thread_record(1, 1001, 5001)
        test_db.create_thread_record(2, 1001, 5002)
        test_db.create_thread_record(3, 1002, 5003)
        test_db.close_thread_record(a["id"], None)

        stats = test_db.get_modmail_stats(1001)
        assert stats["total"] == 2
        assert stats["open"] == 1
        assert stats["closed"] == 1
        assert stats["last_24h"] == 2
        assert test_db.count_open_threads() == 2


class TestBlocks:
    """Tests for modmail blocks."""

    def test_block_and_unblock(self, test_db):
        """Blocks are per guild and can be lifted."""
        assert test_db.block_user(123, 1001, 999, "spam") is True
        assert test_db.is_user_blocked(123, 1001) is True
        assert test_db.is_user_blocked(123, 1002) is False

        assert test_db.unblock_user(123, 1001) is True
        assert test_db.is_user_blocked(123, 1001) is False
        assert test_db.unblock_user(123, 1001) is False

    def test_reblock_refreshes(self, test_db):
        """Blocking again updates the existing block instead of adding one."""
        test_db.block_user(123, 1001, 999, "spam")
        assert test_db.block_user(123, 1001, 888, "still spam") is False

        blocks = test_db.get_blocked_users(1001)
        assert len(blocks) == 1
        assert blocks[0]["blocked_by"] == 888
        assert blocks[0]["reason"] == "still spam"

    def test_block_after_unblock_creates_new_row(self, test_db):
        """History is kept; only one block is active."""
        test_db.block_user(123, 1001, 999)
        test_db.unblock_user(123, 1001)
        assert test_db.block_user(123, 1001, 999) is True
        assert test_db.get_block(123, 1001) is not None


class TestPendingMessages:
    """Tests for pending selection messages."""

    def test_save_and_pop(self, test_db):
        """Popping returns the message once."""
        test_db.save_pending_message(123, "Hello", ["https://cdn.example.com/a.png"])

        pending = test_db.pop_pending_message(123)
        assert pending["content"] == "Hello"
        assert pending["attachments"] == ["https://cdn.example.com/a.png"]
        assert test_db.pop_pending_message(123) is None

    def test_save_replaces(self, test_db):
        """A user has at most one pending message."""
        test_db.save_pending_message(123, "first")
        test_db.save_pending_message(123, "second")
        assert test_db.get_pending_message(123)["content"] == "second"

    def test_expired_pending_is_missing(self, test_db):
        """Messages older than the TTL are dropped on read."""
        test_db.save_pending_message(123, "Hello")
        assert test_db.get_pending_message(123, max_age=-1) is None
        assert test_db.get_pending_message(123) is None

    def test_cleanup_expired(self, test_db):
        """Cleanup deletes rows older than max_age."""
        test_db.save_pending_message(123, "a")
        test_db.save_pending_message(456, "b")
        assert test_db.cleanup_expired_pending_messages(max_age=-1) == 2
