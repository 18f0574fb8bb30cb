"""
Courier - Error Handler
=======================

Detailed error context and categorized logging for handler boundaries.

Features:
- Error categorization (discord, database, network, general)
- Recovery suggestions in the log line
- Discord-specific context capture (message, interaction, member)
- Critical errors saved as JSON under logs/errors/

Author: Courier Maintainers
"""

import json
import sqlite3
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import aiohttp
import discord

from src.core.logger import logger


ERRORS_DIR = Path("logs/errors")


class ErrorContext:
    """Captures and formats detailed error context."""

    @staticmethod
    def get_full_context(e: Exception, location: str, **kwargs) -> Dict[str, Any]:
        """
        Get comprehensive error context.

        Args:
            e: The exception.
            location: Where the error occurred.
            **kwargs: Additional context (message, interaction, member, ids).

        Returns:
            Dictionary with full error context.
        """
        context = {
            "timestamp": datetime.now().isoformat(),
            "location": location,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            "python_version": sys.version,
            "additional_context": {
                k: v for k, v in kwargs.items()
                if k not in ("message", "interaction", "member")
            },
        }

        message = kwargs.get("message")
        if isinstance(message, discord.Message):
            context["discord_context"] = {
                "guild": message.guild.name if message.guild else "DM",
                "channel": getattr(message.channel, "name", None) or "DM",
                "author": str(message.author),
                "author_id": message.author.id,
                "content": message.content[:100] if message.content else None,
            }

        interaction = kwargs.get("interaction")
        if isinstance(interaction, discord.Interaction):
            context["discord_context"] = {
                "guild": interaction.guild.name if interaction.guild else "DM",
                "channel": getattr(interaction.channel, "name", None) or "DM",
                "author": str(interaction.user),
                "author_id": interaction.user.id,
                "command": interaction.command.qualified_name if interaction.command else None,
            }

        member = kwargs.get("member")
        if isinstance(member, discord.Member):
            context["member_context"] = {
                "name": str(member),
                "id": member.id,
                "roles": [role.name for role in member.roles],
                "joined_at": member.joined_at.isoformat() if member.joined_at else None,
            }

        return context


class ErrorHandler:
    """Categorized error logging used at every handler boundary."""

    ERROR_CATEGORIES = {
        "discord": (discord.DiscordException,),
        "database": (sqlite3.Error,),
        "network": (aiohttp.ClientError, ConnectionError, TimeoutError, OSError),
    }

    SUGGESTIONS = {
        discord.Forbidden: "Check bot permissions in server settings",
        discord.NotFound: "Resource not found - channel or message was deleted",
        discord.HTTPException: "Discord API issue - usually transient",
        sqlite3.OperationalError: "Database locked or schema mismatch - check data/courier.db",
        sqlite3.IntegrityError: "Database constraint violation - duplicate open thread or block",
        sqlite3.Error: "General database error - check database file",
        aiohttp.ClientError: "HTTP client error - check outbound network",
        ConnectionError: "Network connection issue - check internet connection",
        TimeoutError: "Request timed out",
    }

    @classmethod
    def categorize_error(cls, e: Exception) -> str:
        """
        Categorize the error type.

        Returns:
            One of "discord", "database", "network" or "general".
        """
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return "general"

    @classmethod
    def get_recovery_suggestion(cls, e: Exception) -> str:
        """Most specific suggestion for the exception type (MRO order)."""
        for klass in type(e).__mro__:
            if klass in cls.SUGGESTIONS:
                return cls.SUGGESTIONS[klass]
        return "Unexpected error - check logs for details"

    @classmethod
    def handle(cls, e: Exception, location: str, critical: bool = False, **context) -> None:
        """
        Handle an error with full context.

        Args:
            e: The exception.
            location: Where the error occurred.
            critical: Whether this error is fatal (also saved to logs/errors/).
            **context: Additional context (message=, interaction=, member=, ids).
        """
        category = cls.categorize_error(e)
        suggestion = cls.get_recovery_suggestion(e)
        full_context = ErrorContext.get_full_context(e, location, **context)

        details = [
            ("Location", location),
            ("Category", category),
            ("Error Type", full_context["error_type"]),
            ("Error", str(e)[:200]),
            ("Recovery", suggestion),
        ]
        if "discord_context" in full_context:
            dc = full_context["discord_context"]
            details.append(("Context", f"Guild={dc['guild']}, User={dc['author']}"))
        for key, value in full_context["additional_context"].items():
            details.append((key, str(value)[:100]))

        if critical:
            logger.error("CRITICAL ERROR", details)
            logger.critical(f"Traceback:\n{full_context['traceback']}")
            cls._store_critical_error(full_context)
        else:
            logger.error(f"Handler Error [{category.upper()}]", details)
            logger.debug(f"Traceback:\n{full_context['traceback']}")

    @staticmethod
    def _store_critical_error(context: Dict[str, Any]) -> None:
        """Store critical error context as JSON for later analysis."""
        try:
            ERRORS_DIR.mkdir(exist_ok=True, parents=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            error_file = ERRORS_DIR / f"error_{timestamp}.json"

            with open(error_file, "w", encoding="utf-8") as f:
                json.dump(context, f, indent=2, default=str)

            logger.info(f"Critical error saved to {error_file}")
        except OSError as save_error:
            logger.warning(f"Failed to save error details: {save_error}")


__all__ = ["ErrorHandler", "ErrorContext"]
