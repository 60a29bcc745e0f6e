"""
Airlock - Session Sweeper
=========================

Background loop that drops expired captcha sessions.

DESIGN:
    Validation already purges an expired session lazily, but a member who
    never submits would leave theirs behind. The sweeper runs
    SessionStore.sweep_expired() every SESSION_SWEEP_INTERVAL seconds and
    keeps running even if one pass fails.
"""

import asyncio
from typing import Optional

from airlock.core.logger import logger
from airlock.onboarding.sessions import SessionStore


class SessionSweeper:
    """
    Periodic sweep of the session store.

    Attributes:
        sessions: Store to sweep.
        interval: Seconds between passes.
    """

    def __init__(self, sessions: SessionStore, interval: float) -> None:
        self.sessions = sessions
        self.interval = interval
        self.running = False
        self.task: Optional[asyncio.Task] = None

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Start the sweep loop, replacing any previous one."""
        if self.task and not self.task.done():
            self.task.cancel()

        self.running = True
        self.task = asyncio.create_task(self._sweep_loop(), name="session-sweeper")

        logger.tree("Session Sweeper Started", [
            ("Interval", f"{self.interval:g} seconds"),
            ("Status", "Running"),
        ], emoji="🧹")

    async def stop(self) -> None:
        self.running = False

        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Session Sweeper Stopped")

    # =========================================================================
    # Sweep Loop
    # =========================================================================

    async def _sweep_loop(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                self.sessions.sweep_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Session Sweeper Error", [
                    ("Error Type", type(e).__name__),
                    ("Error", str(e)[:100]),
                ])


__all__ = ["SessionSweeper"]
