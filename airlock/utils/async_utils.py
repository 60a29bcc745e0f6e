"""
Airlock - Async Utilities
=========================

Fire-and-forget helper that never fails silently.

Usage:
    from airlock.utils.async_utils import create_safe_task

    # Instead of:
    asyncio.create_task(channel.send(embed=embed))

    # Use:
    create_safe_task(channel.send(embed=embed), "Audit Embed")
"""

import asyncio
from typing import Any, Coroutine

from airlock.core.logger import logger


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: str = "Background Task",
) -> asyncio.Task:
    """
    Create a background task with automatic error logging.

    Args:
        coro: The coroutine to run as a background task.
        name: Name for logging purposes.

    Returns:
        The created asyncio.Task.
    """
    async def wrapped():
        try:
            await coro
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Background Task Failed", [
                ("Task", name),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ])

    return asyncio.create_task(wrapped(), name=name)


__all__ = ["create_safe_task"]
