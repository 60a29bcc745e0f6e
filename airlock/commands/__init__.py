"""
Airlock - Commands Package
==========================

Slash command implementations for the Airlock bot.

DESIGN:
    Each command file contains a Cog class with related commands and an
    async setup(bot) function. Add new cogs to COMMAND_COGS to have them
    loaded on startup.

Available Commands:
    /onboarding-panel: Post the onboarding panel (administrator)
"""

# =============================================================================
# Command Cog Registry
# =============================================================================

COMMAND_COGS = [
    "airlock.commands.onboarding_panel",
]


__all__ = [
    "COMMAND_COGS",
]
