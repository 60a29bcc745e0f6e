"""
Airlock - Main Bot Class
========================

Discord client that gates new members behind an onboarding captcha.

Features:
- Persistent onboarding panel (role menus, Finish button, captcha modal)
- Timed enforcement: members still gated after the window are kicked
- Audit trail in the log files and an optional audit channel
- Health check HTTP endpoint
"""

from datetime import datetime
from typing import Optional

import discord
from discord.ext import commands

from airlock.core.config import Config, get_config
from airlock.core.logger import logger
from airlock.onboarding.categories import load_categories
from airlock.onboarding.scheduler import DelayedTaskScheduler
from airlock.onboarding.selections import SelectionState
from airlock.onboarding.sessions import SessionStore
from airlock.onboarding.verification import VerificationService
from airlock.onboarding.workflow import EnforcementSettings, GateEnforcementWorkflow
from airlock.services.gateway import DiscordMembershipGateway


# =============================================================================
# AirlockBot Class
# =============================================================================

class AirlockBot(commands.Bot):
    """
    Main Discord bot class for Airlock.

    DESIGN: Central orchestrator that:
    - Owns the onboarding stores and passes them to the workflow
    - Routes member events and panel interactions to the workflow
    - Manages the lifecycle of the health server and session sweeper

    SERVICE INITIALIZATION ORDER:
    1. __init__: stores, scheduler, gateway, workflow, verification
    2. setup_hook: cogs, dynamic panel items, command sync
    3. on_ready: health server, session sweeper, error webhook
    """

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or get_config()

        intents = discord.Intents.default()
        intents.members = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now()

        # Onboarding core
        self.categories = load_categories(self.config.categories_file)
        self.sessions = SessionStore(
            expiration_ms=self.config.session_expiration_ms,
            alphabet=self.config.code_alphabet,
            code_length=self.config.code_length,
        )
        self.selections = SelectionState(category.key for category in self.categories)
        self.scheduler = DelayedTaskScheduler(name="Enforcement")
        self.gateway = DiscordMembershipGateway(
            self,
            guild_id=self.config.guild_id,
            audit_channel_id=self.config.audit_channel_id,
        )
        self.workflow = GateEnforcementWorkflow(
            gateway=self.gateway,
            scheduler=self.scheduler,
            settings=EnforcementSettings.from_config(self.config),
            sessions=self.sessions,
            selections=self.selections,
        )
        self.verification = VerificationService(
            sessions=self.sessions,
            selections=self.selections,
            workflow=self.workflow,
            categories=self.categories,
        )

        # Service placeholders
        self.health_server = None
        self.session_sweeper = None

        # Ready state guard
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load cogs, register the panel and sync commands before on_ready."""
        from airlock.commands import COMMAND_COGS
        for cog in COMMAND_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        from airlock.events import EVENT_COGS
        for cog in EVENT_COGS:
            try:
                await self.load_extension(cog)
                logger.debug(f"Event Cog Loaded: {cog.split('.')[-1]}")
            except commands.ExtensionError as e:
                logger.error("Failed to Load Event Cog", [("Cog", cog), ("Error", str(e))])

        from airlock.views.onboarding import setup_onboarding_views
        setup_onboarding_views(self)

        try:
            synced = await self.tree.sync()
            logger.tree("Commands Synced", [("Count", str(len(synced)))], emoji="✅")
        except discord.HTTPException as e:
            logger.error("Command Sync Failed", [("Error", str(e))])

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Start background services once connected."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        await self._init_services()

        guild = self.get_guild(self.config.guild_id)
        if guild is None:
            logger.warning("Gated Guild Not Found", [("Guild ID", str(self.config.guild_id))])
        elif guild.get_role(self.config.gate_role_id) is None:
            logger.warning("Gate Role Not Found", [("Role ID", str(self.config.gate_role_id))])

        logger.tree("AIRLOCK READY", [
            ("Guild", guild.name if guild else "Missing"),
            ("Categories", ", ".join(c.name for c in self.categories)),
            ("Mode", "Testing" if self.config.testing else "Production"),
            ("Health Server", "Running" if self.health_server else "Stopped"),
            ("Session Sweeper", "Running" if self.session_sweeper else "Stopped"),
        ], emoji="🔥")

    async def _init_services(self) -> None:
        from airlock.core.health import HealthCheckServer
        self.health_server = HealthCheckServer(self, port=self.config.health_port)
        await self.health_server.start()

        from airlock.services.maintenance import SessionSweeper
        self.session_sweeper = SessionSweeper(self.sessions, self.config.session_sweep_interval)
        await self.session_sweeper.start()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        if self.session_sweeper:
            await self.session_sweeper.stop()

        await self.scheduler.shutdown()

        if self.health_server:
            await self.health_server.stop()

        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


__all__ = ["AirlockBot"]
