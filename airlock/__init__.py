"""
Airlock - Source Package
========================

Discord bot that gates new members behind an onboarding panel and a
captcha, and removes members who never finish.

Package Structure:
- bot.py: Main Discord bot class and service wiring
- onboarding/: Sessions, selections, scheduler and enforcement workflow
- services/: Discord gateway adapter and background maintenance
- views/: Onboarding panel (selects, Finish button, captcha modal)
- commands/: Slash commands (/onboarding-panel)
- events/: Member join/leave listeners
- core/: Configuration, logging and health monitoring
- utils/: Error handling and async helpers
"""

__version__ = "1.0.0"
