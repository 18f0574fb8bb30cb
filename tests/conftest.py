"""
Courier - Test Fixtures
=======================

Shared fixtures for all tests.
"""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Required config must exist before any module calls get_config()
os.environ.setdefault("DISCORD_TOKEN", "test-token")
os.environ.setdefault("CLIENT_ID", "100000000000000001")

from factories import make_user, not_found  # noqa: E402


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path for testing."""
    return tmp_path / "test_courier.db"


@pytest.fixture
def test_db(temp_db_path, monkeypatch):
    """Create a fresh test database instance."""
    from src.core.database import manager as manager_module

    # Reset singleton
    manager_module.DatabaseManager._instance = None

    # Patch the DB path
    monkeypatch.setattr(manager_module, "DB_PATH", temp_db_path)
    monkeypatch.setattr(manager_module, "DATA_DIR", temp_db_path.parent)

    db = manager_module.DatabaseManager()

    yield db

    # Cleanup
    db.close()
    manager_module.DatabaseManager._instance = None


# =============================================================================
# Config
# =============================================================================

@pytest.fixture
def mock_config():
    """Create a mock config object."""
    config = MagicMock()
    config.owner_id = None
    config.support_guild_id = None
    config.reply_cooldown_seconds = 3
    config.block_notice_cooldown = 3600
    config.modmail_idle_hours = 72
    config.modmail_warning_hours = 48
    config.modmail_recent_window_minutes = 60
    config.modmail_delete_delay = 0
    config.error_webhook_url = None
    config.health_check_port = 0
    return config


# =============================================================================
# Mock Discord Objects
# =============================================================================

@pytest.fixture
def mock_user():
    return make_user()


@pytest.fixture
def mock_bot():
    """
    Mock bot with registries for guilds, channels and users.

    Tests fill guild_map (via factories.add_guild), channel_map and
    user_map; cache lookups that miss return None, channel fetches raise
    NotFound and user fetches return None.
    """
    bot = MagicMock()
    bot.guild_map = {}
    bot.channel_map = {}
    bot.user_map = {}
    bot.guilds = []

    bot.get_guild = MagicMock(side_effect=lambda gid: bot.guild_map.get(gid))
    bot.get_channel = MagicMock(side_effect=lambda cid: bot.channel_map.get(cid))
    bot.get_user = MagicMock(side_effect=lambda uid: bot.user_map.get(uid))
    bot.fetch_channel = AsyncMock(side_effect=not_found("Unknown Channel"))
    bot.fetch_user = AsyncMock(return_value=None)
    bot.wait_until_ready = AsyncMock()
    bot.modmail_service = None
    bot.logging_service = None
    return bot


@pytest.fixture
def mock_interaction():
    """Create a mock Discord interaction."""
    interaction = MagicMock()
    interaction.user = make_user(111222333, "staffer")
    interaction.guild = MagicMock()
    interaction.guild.id = 987654321
    interaction.channel_id = 555666777
    interaction.response = MagicMock()
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.edit_message = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def modmail_service(test_db, mock_config, mock_bot):
    """ModmailService wired to the temp database and mock bot."""
    with patch("src.services.modmail.service.get_config", return_value=mock_config):
        with patch("src.services.modmail.service.get_db", return_value=test_db):
            from src.services.modmail import ModmailService
            service = ModmailService(mock_bot)
            mock_bot.modmail_service = service
            yield service


@pytest.fixture
def logging_service(test_db, mock_bot):
    """LoggingService wired to the temp database and mock bot."""
    with patch("src.services.server_logs.service.get_db", return_value=test_db):
        from src.services.server_logs import LoggingService
        service = LoggingService(mock_bot)
        mock_bot.logging_service = service
        yield service
