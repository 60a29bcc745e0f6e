"""
Airlock - Health Check Server
=============================

HTTP health check endpoint for external monitoring.

DESIGN:
    A lightweight aiohttp server running inside the bot's event loop. The
    /health endpoint returns JSON with the gateway connection state and the
    onboarding load (pending enforcement timers, live captcha sessions)
    without exposing member IDs.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from aiohttp import web

from airlock.core.logger import LOG_TZ, logger

if TYPE_CHECKING:
    from airlock.bot import AirlockBot


# =============================================================================
# Health Check Server
# =============================================================================

class HealthCheckServer:
    """
    Simple HTTP health check server for monitoring.

    Attributes:
        bot: Reference to the main bot instance.
        port: Port number for the HTTP server.
        app: aiohttp Application instance.
        runner: aiohttp AppRunner for lifecycle management.
    """

    def __init__(self, bot: "AirlockBot", port: int = 8080) -> None:
        self.bot = bot
        self.port = port
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None

        self.app.router.add_get("/health", self.health_handler)
        self.app.router.add_get("/", self.health_handler)

    # =========================================================================
    # Request Handlers
    # =========================================================================

    def build_status(self) -> dict:
        """
        Snapshot of bot and onboarding state.

        "healthy" means connected to Discord; "starting" means the gateway
        is not ready yet.
        """
        is_connected = self.bot.is_ready()
        return {
            "status": "healthy" if is_connected else "starting",
            "bot": "Airlock",
            "connected": is_connected,
            "guilds": len(self.bot.guilds),
            "pending_enforcements": self.bot.scheduler.pending_count(),
            "active_sessions": len(self.bot.sessions),
            "pending_selections": len(self.bot.selections),
            "mode": "testing" if self.bot.config.testing else "production",
            "timestamp": datetime.now(LOG_TZ).isoformat(),
        }

    async def health_handler(self, request: web.Request) -> web.Response:
        try:
            status = self.build_status()
            logger.debug(f"Health check: {status['status']}")
            return web.json_response(status)

        except Exception as e:
            logger.error("Health Check Error", [
                ("Error", str(e)[:100]),
            ])
            return web.json_response(
                {"status": "error", "error": str(e)},
                status=500,
            )

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def start(self) -> None:
        """Start serving on 0.0.0.0 without blocking the bot."""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, "0.0.0.0", self.port)
            await site.start()

            logger.tree("Health Server Started", [
                ("Port", str(self.port)),
                ("Endpoint", f"http://0.0.0.0:{self.port}/health"),
            ], emoji="🏥")

        except OSError as e:
            logger.error("Health Server Startup Failed", [
                ("Port", str(self.port)),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """Stop the server. Safe to call if it never started."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health check server stopped")


__all__ = ["HealthCheckServer"]
