"""
Courier - Health Check Tests
============================

Tests for the /health endpoint payload.
"""

import json
import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from src.core.health import HealthCheckServer


def _ready(bot, ready: bool = True):
    bot.is_ready = MagicMock(return_value=ready)
    bot.latency = 0.05
    return bot


async def _check(bot, db):
    with patch("src.core.health.get_db", return_value=db):
        response = await HealthCheckServer(bot, port=0).health_handler(None)
    return response.status, json.loads(response.text)


class TestHealthHandler:
    """Tests for health_handler."""

    @pytest.mark.asyncio
    async def test_healthy_when_connected_with_modmail(self, mock_bot, test_db):
        """A ready bot with modmail running reports healthy and its thread count."""
        _ready(mock_bot)
        mock_bot.modmail_service = MagicMock()
        test_db.create_thread_record(123456789, 1001, 5001)

        status, body = await _check(mock_bot, test_db)

        assert status == 200
        assert body["status"] == "healthy"
        assert body["modmail"] == "running"
        assert body["open_threads"] == 1
        assert body["latency_ms"] == 50

    @pytest.mark.asyncio
    async def test_starting_before_ready(self, mock_bot, test_db):
        """Before on_ready the bot reports starting without latency."""
        _ready(mock_bot, ready=False)

        status, body = await _check(mock_bot, test_db)

        assert status == 200
        assert body["status"] == "starting"
        assert body["modmail"] == "stopped"
        assert body["latency_ms"] is None

    @pytest.mark.asyncio
    async def test_store_error_is_degraded(self, mock_bot, test_db):
        """An unreadable thread store answers 503 degraded."""
        _ready(mock_bot)
        mock_bot.modmail_service = MagicMock()

        with patch.object(test_db, "count_open_threads", side_effect=sqlite3.Error("disk I/O error")):
            status, body = await _check(mock_bot, test_db)

        assert status == 503
        assert body["status"] == "degraded"
        assert body["open_threads"] is None
