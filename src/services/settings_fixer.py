"""
Courier - Settings Consistency Fixer
====================================

Startup repair for the duplicated modmail flag.

DESIGN:
    guild_settings.modmail_enabled is authoritative and every normal write
    updates settings.modmail.enabled with it. Rows written by older
    versions or edited by hand can still disagree, so this pass runs once
    in on_ready, before services start, and rewrites both places.

    Resolution when the flags differ:
        nested key present and boolean -> nested value wins
        otherwise                      -> column value wins

    Running it twice is a no-op the second time.

Author: Courier Maintainers
"""

from typing import Dict

from src.core.database import DatabaseManager, GuildSettings
from src.core.logger import logger


def resolve_modmail_flag(settings: GuildSettings) -> bool:
    """Value both flags should hold for this guild."""
    nested = settings.nested_modmail_enabled
    if nested is not None:
        return nested
    return settings.modmail_enabled


def is_consistent(settings: GuildSettings) -> bool:
    """
    True when the effective nested flag matches the column.

    A missing nested key reads as disabled, so a disabled column with no
    nested key is already consistent.
    """
    return (settings.nested_modmail_enabled is True) == settings.modmail_enabled


def audit_and_fix(db: DatabaseManager) -> Dict[str, int]:
    """
    Make modmail_enabled and settings.modmail.enabled agree for every guild.

    Args:
        db: Database manager.

    Returns:
        {"total", "fixed", "consistent", "errors"} counts.
    """
    results = {"total": 0, "fixed": 0, "consistent": 0, "errors": 0}

    for settings in db.get_all_guild_settings():
        results["total"] += 1
        guild_id = settings.guild_id

        try:
            if is_consistent(settings):
                results["consistent"] += 1
                continue

            resolved = resolve_modmail_flag(settings)
            db.set_modmail_enabled(guild_id, resolved)
            results["fixed"] += 1

            logger.tree("Modmail Flag Repaired", [
                ("Guild ID", str(guild_id)),
                ("Column", str(settings.modmail_enabled)),
                ("Nested", "missing" if settings.nested_modmail_enabled is None else str(settings.nested_modmail_enabled)),
                ("Resolved", str(resolved)),
            ], emoji="🔧")

        except Exception as e:
            results["errors"] += 1
            logger.error("Modmail Flag Repair Failed", [
                ("Guild ID", str(guild_id)),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    logger.tree("Settings Audit Complete", [
        ("Guilds", str(results["total"])),
        ("Consistent", str(results["consistent"])),
        ("Fixed", str(results["fixed"])),
        ("Errors", str(results["errors"])),
    ], emoji="✅" if results["errors"] == 0 else "⚠️")

    return results


__all__ = ["audit_and_fix", "resolve_modmail_flag", "is_consistent"]
