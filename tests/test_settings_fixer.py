"""
Courier - Settings Fixer Tests
==============================

Tests for the startup modmail flag repair.
"""

from unittest.mock import patch

from src.services.settings_fixer import audit_and_fix, is_consistent, resolve_modmail_flag


def _flags(db, guild_id):
    settings = db.get_guild_settings(guild_id)
    return settings.modmail_enabled, settings.nested_modmail_enabled


class TestAuditAndFix:
    """Tests for audit_and_fix."""

    def test_missing_nested_key_takes_column(self, test_db):
        """A guild enabled in the column but missing the nested key gets nested true."""
        test_db.write_modmail_flags(1001, column_value=True, nested_value=None)

        results = audit_and_fix(test_db)

        assert results["fixed"] == 1
        assert _flags(test_db, 1001) == (True, True)

    def test_nested_value_wins(self, test_db):
        """When both are present and disagree, the nested value is kept."""
        test_db.write_modmail_flags(1001, column_value=False, nested_value=True)
        test_db.write_modmail_flags(1002, column_value=True, nested_value=False)

        results = audit_and_fix(test_db)

        assert results["fixed"] == 2
        assert _flags(test_db, 1001) == (True, True)
        assert _flags(test_db, 1002) == (False, False)

    def test_consistent_rows_untouched(self, test_db):
        """Matching flags are counted as consistent."""
        test_db.set_modmail_enabled(1001, True)
        test_db.get_guild_settings(1002)

        results = audit_and_fix(test_db)

        assert results == {"total": 2, "fixed": 0, "consistent": 2, "errors": 0}

    def test_second_run_is_noop(self, test_db):
        """Running the fixer again reports nothing to fix."""
        test_db.write_modmail_flags(1001, column_value=True, nested_value=None)
        test_db.write_modmail_flags(1002, column_value=False, nested_value=True)

        audit_and_fix(test_db)
        second = audit_and_fix(test_db)

        assert second["fixed"] == 0
        assert second["consistent"] == 2
        for settings in test_db.get_all_guild_settings():
            assert settings.modmail_enabled == settings.nested_modmail_enabled

    def test_non_boolean_nested_value_uses_column(self, test_db):
        """A nested value that isn't a boolean is treated as missing."""
        test_db.write_modmail_flags(1001, column_value=True, nested_value=None)
        test_db.execute(
            "UPDATE guild_settings SET settings = ? WHERE guild_id = ?",
            ('{"modmail": {"enabled": "yes"}}', 1001),
        )

        audit_and_fix(test_db)

        assert _flags(test_db, 1001) == (True, True)

    def test_failure_is_counted_and_others_continue(self, test_db):
        """An error on one guild doesn't stop the audit."""
        test_db.write_modmail_flags(1001, column_value=True, nested_value=None)
        test_db.write_modmail_flags(1002, column_value=True, nested_value=None)
        original = test_db.set_modmail_enabled

        def flaky(guild_id, enabled):
            if guild_id == 1001:
                raise RuntimeError("disk full")
            return original(guild_id, enabled)

        with patch.object(test_db, "set_modmail_enabled", side_effect=flaky):
            results = audit_and_fix(test_db)

        assert results["errors"] == 1
        assert results["fixed"] == 1
        assert _flags(test_db, 1002) == (True, True)


class TestResolution:
    """Tests for the resolution helpers."""

    def test_resolve_prefers_nested(self, test_db):
        """resolve_modmail_flag follows the nested boolean when present."""
        test_db.write_modmail_flags(1001, column_value=False, nested_value=True)
        settings = test_db.get_guild_settings(1001)

        assert resolve_modmail_flag(settings) is True
        assert is_consistent(settings) is False

    def test_resolve_falls_back_to_column(self, test_db):
        """Without a nested key the column decides."""
        test_db.write_modmail_flags(1001, column_value=True, nested_value=None)
        settings = test_db.get_guild_settings(1001)

        assert resolve_modmail_flag(settings) is True
        assert is_consistent(settings) is False

    def test_disabled_column_without_nested_key_is_consistent(self, test_db):
        """A missing nested key reads as disabled, matching a False column."""
        test_db.write_modmail_flags(1001, column_value=False, nested_value=None)
        settings = test_db.get_guild_settings(1001)

        assert is_consistent(settings) is True

        results = audit_and_fix(test_db)

        assert results["fixed"] == 0
        assert results["consistent"] == 1
        assert test_db.get_guild_settings(1001).modmail_enabled is False
