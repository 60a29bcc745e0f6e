"""
Airlock - Onboarding Panel Command
==================================

/onboarding-panel posts the persistent onboarding panel in the current
channel and replies with a report of the configured roles, so missing
role IDs are caught before members hit them.
"""

from typing import TYPE_CHECKING, Iterable, List

import discord
from discord import app_commands
from discord.ext import commands

from airlock.core.logger import logger
from airlock.onboarding.categories import OnboardingCategory
from airlock.utils.error_handler import ErrorHandler
from airlock.views.onboarding import OnboardingPanelView, build_panel_embed

if TYPE_CHECKING:
    from airlock.bot import AirlockBot


DIVIDER = "━━━━━━━━━━━━━━━━━━━━━━━━━━"
MESSAGE_LIMIT = 2000


def build_role_report(guild: discord.Guild, gate_role_id: int, categories: Iterable[OnboardingCategory]) -> str:
    """Markdown report of the gate role and every category role, flagging missing ones."""
    lines: List[str] = ["✅ **Onboarding panel posted successfully!**", "", DIVIDER, ""]

    gate_role = guild.get_role(gate_role_id)
    if gate_role:
        lines.append(f"**🚪 Gate Role:** {gate_role.name} (ID: `{gate_role_id}`)")
        lines.append("This role will be removed when users complete the captcha.")
    else:
        lines.append(f"**🚪 Gate Role:** ⚠️ **[ROLE NOT FOUND]** (ID: `{gate_role_id}`)")
    lines.extend(["", DIVIDER, ""])

    for category in categories:
        lines.append(f"**{category.emoji or ''} {category.name}** (key: `{category.key}`)")
        for role in category.roles:
            if guild.get_role(role.id) is None:
                lines.append(f"  ⚠️ **{role.name}** - ID: `{role.id}` - **[ROLE NOT FOUND]**")
            else:
                lines.append(f"  • **{role.name}** - ID: `{role.id}` - Key: `{role.key}`")
        lines.append("")
    lines.append(DIVIDER)

    report = "\n".join(lines)
    if len(report) > MESSAGE_LIMIT:
        report = report[:MESSAGE_LIMIT - 4] + "\n..."
    return report


class OnboardingPanelCog(commands.Cog):
    """Administrator command for posting the onboarding panel."""

    def __init__(self, bot: "AirlockBot") -> None:
        self.bot = bot

    @app_commands.command(name="onboarding-panel", description="Post the onboarding panel with role menus and captcha")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def onboarding_panel(self, interaction: discord.Interaction) -> None:
        """Post the panel in this channel and reply with a role report."""
        guild = interaction.guild
        channel = interaction.channel
        if guild is None or not isinstance(channel, discord.abc.Messageable):
            await interaction.response.send_message("❌ This command can only be used inside a server channel.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)

        config = self.bot.config
        categories = self.bot.categories
        try:
            await channel.send(
                embed=build_panel_embed(categories, config.session_expiration_ms),
                view=OnboardingPanelView(categories),
            )
        except discord.HTTPException as e:
            ErrorHandler.handle(e, location="onboarding-panel", interaction=interaction)
            await interaction.followup.send(f"❌ Could not post the panel: {str(e)[:100]}", ephemeral=True)
            return

        logger.tree("Onboarding Panel Posted", [
            ("By", f"{interaction.user} ({interaction.user.id})"),
            ("Channel", f"#{getattr(channel, 'name', channel.id)}"),
            ("Categories", str(len(categories))),
        ], emoji="📋")

        await interaction.followup.send(
            build_role_report(guild, config.gate_role_id, categories),
            ephemeral=True,
        )


async def setup(bot: "AirlockBot") -> None:
    """Add the onboarding panel cog to the bot."""
    await bot.add_cog(OnboardingPanelCog(bot))
    logger.debug("Onboarding Panel Command Loaded")
