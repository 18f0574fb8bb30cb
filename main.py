#!/usr/bin/env python3
"""
Courier - Entry Point
=====================

Multi-server modmail bot with per-server activity logging.

Features:
- DM-to-server modmail threads with staff replies
- Idle warning and auto-close
- Per-server activity logs
- Single instance enforcement
- Graceful error handling

Author: Courier Maintainers
"""

import asyncio
import fcntl
import os
import sys
from pathlib import Path
from typing import IO, Optional

from dotenv import load_dotenv

from src.core.logger import logger
from src.utils.error_handler import ErrorHandler


PID_FILE = Path("data") / "courier.pid"

_lock_handle: Optional[IO[str]] = None


def check_running_instance() -> bool:
    """
    Take an exclusive lock on the PID file.

    Returns:
        True if lock acquired successfully, False if another instance holds it.
    """
    global _lock_handle

    PID_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        handle = open(PID_FILE, "a+")
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        logger.error("Another Courier instance is already running", [
            ("Lock File", str(PID_FILE)),
        ])
        return False
    except OSError as e:
        logger.error("Failed to acquire lock file", [
            ("Lock File", str(PID_FILE)),
            ("Error", str(e)),
        ])
        return False

    handle.seek(0)
    handle.truncate()
    handle.write(str(os.getpid()))
    handle.flush()
    _lock_handle = handle

    logger.info(f"Instance lock acquired - PID: {os.getpid()}")
    return True


async def main() -> None:
    """
    Main entry point for Courier.

    Handles the complete bot lifecycle:
    1. Loads environment configuration
    2. Validates configuration
    3. Initializes bot instance with proper intents
    4. Establishes connection to Discord API
    5. Handles graceful shutdown on interruption
    """
    from src.core.config import ConfigValidationError, get_config, validate_and_log_config

    try:
        validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    config = get_config()

    logger.tree("COURIER STARTING", [
        ("Application ID", str(config.client_id)),
        ("Support Guild", str(config.support_guild_id) if config.support_guild_id else "None"),
    ], "📬")

    from src.bot import CourierBot

    bot = CourierBot()
    try:
        async with bot:
            await bot.start(config.discord_token)
    except Exception as e:
        ErrorHandler.handle(
            e,
            location="main.main",
            critical=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    load_dotenv()

    if not check_running_instance():
        logger.error("Startup aborted - another instance is already running")
        sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as e:
        ErrorHandler.handle(
            e,
            location="main.__main__",
            critical=True,
        )
        sys.exit(1)
