#!/usr/bin/env python3
"""
Airlock - Onboarding Gate Bot Entry Point
=========================================

Gates new members behind a role selection panel and a captcha, and kicks
members who are still gated once the enforcement window has passed.

Features:
- Single instance enforcement
- Fail-fast configuration validation
- Graceful error handling
"""

import asyncio
import fcntl
import os
import sys
from typing import IO, Optional

from dotenv import load_dotenv

from airlock.core.config import ConfigValidationError, validate_and_log_config
from airlock.core.logger import logger
from airlock.utils.error_handler import ErrorHandler


_lock_handle: Optional[IO[str]] = None


def check_running_instance(pid_file: str) -> bool:
    """
    Take an exclusive lock on the PID file.

    Returns:
        True if lock acquired successfully, False if another instance holds it
    """
    global _lock_handle
    current_pid = os.getpid()

    try:
        handle = open(pid_file, "a+")
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        logger.error("Another Airlock instance is already running", [
            ("Lock File", pid_file),
        ])
        return False
    except OSError as e:
        logger.error("Failed to acquire lock file", [
            ("Lock File", pid_file),
            ("Error", str(e)),
        ])
        return False

    handle.seek(0)
    handle.truncate()
    handle.write(str(current_pid))
    handle.flush()
    _lock_handle = handle

    logger.info(f"Instance lock acquired - PID: {current_pid}, Lock file: {pid_file}")
    return True


async def main() -> None:
    """
    Main entry point for the Airlock bot.

    Handles the complete bot lifecycle:
    1. Validates configuration from the environment
    2. Initializes the bot and its onboarding stores
    3. Connects to Discord and runs until interrupted
    """
    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Configuration Invalid", [("Error", str(e))])
        sys.exit(1)

    logger.tree("AIRLOCK STARTING", [
        ("Guild", str(config.guild_id)),
        ("Mode", "Testing" if config.testing else "Production"),
    ], "🔥")

    from airlock.bot import AirlockBot

    bot = AirlockBot(config)
    try:
        async with bot:
            await bot.start(config.discord_token)
    except Exception as e:
        ErrorHandler.handle(e, location="main.main", critical=True)
        sys.exit(1)


if __name__ == "__main__":
    load_dotenv()

    if not check_running_instance(os.getenv("AIRLOCK_LOCK_FILE", "/tmp/airlock.pid")):
        logger.error("Startup aborted - another instance is already running")
        sys.exit(1)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
