"""
Airlock - Member Events
=======================

Feeds member join and leave events into the enforcement workflow.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from airlock.core.logger import logger

if TYPE_CHECKING:
    from airlock.bot import AirlockBot


class MemberEvents(commands.Cog):
    """Member event handlers."""

    def __init__(self, bot: "AirlockBot") -> None:
        self.bot = bot
        self.config = bot.config

    def _is_gated(self, member: discord.Member) -> bool:
        return member.guild.id == self.config.guild_id and not member.bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        """Start the enforcement timer for every human joining the gated guild."""
        if not self._is_gated(member):
            return

        account_age = "Unknown"
        if member.created_at:
            account_age = f"{(discord.utils.utcnow() - member.created_at).days} days"

        logger.tree("Onboarding: Member Joined", [
            ("User", f"{member} ({member.id})"),
            ("Account Age", account_age),
            ("Step", "0/4"),
        ], emoji="📥")

        self.bot.workflow.on_subject_joined(member.id)

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        """Drop timers, sessions and selections of a member who left."""
        if not self._is_gated(member):
            return

        cancelled = self.bot.workflow.on_subject_left(member.id)
        logger.tree("Onboarding: Member Left", [
            ("User", f"{member} ({member.id})"),
            ("Pending Kick Dropped", "Yes" if cancelled else "No"),
        ], emoji="📤")


async def setup(bot: "AirlockBot") -> None:
    """Add the member events cog to the bot."""
    await bot.add_cog(MemberEvents(bot))
    logger.debug("Member Events Loaded")
