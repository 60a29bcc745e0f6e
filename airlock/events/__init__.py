"""
Airlock - Events Package
========================

Event handler Cogs for the Airlock bot.

DESIGN:
    Each event file contains a Cog class with @commands.Cog.listener decorators.
    Cogs are loaded dynamically by the bot using load_extension().

    Event routing:
    - members.py: Member join/leave feeding the enforcement workflow
"""

# =============================================================================
# Event Cog Registry
# =============================================================================

EVENT_COGS = [
    "airlock.events.members",
]


__all__ = [
    "EVENT_COGS",
]
