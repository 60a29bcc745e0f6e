"""
Airlock - Services Package
==========================

Discord-facing services wired up by the bot:
- gateway.py: DiscordMembershipGateway (workflow port implementation)
- maintenance.py: SessionSweeper (expired captcha cleanup loop)
"""
