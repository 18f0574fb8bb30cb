"""
Courier - Source Package
========================

The main source package for Courier, a multi-guild modmail bot.
Users DM the bot and their messages are routed into private staff
channels on the guild they picked, with replies relayed back.

Package Structure:
- bot.py: Main Discord bot class and lifecycle hooks
- commands/: Slash command cogs (/setup, /modmail, /logs, ...)
- core/: Config, database, logging and health check
- events/: Gateway event listeners (DMs, relays, server logs)
- services/: Modmail routing/lifecycle, settings fixer, server logs
- utils/: Shared helpers (async tasks, caches, safe fetch)

Author: Courier Maintainers
Version: v1.0.0
"""
