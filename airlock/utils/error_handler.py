"""
Airlock - Error Handler
=======================

Categorized logging for unexpected exceptions raised by interactions and
background work.

DESIGN:
    The enforcement workflow turns its own failures into audit records.
    Everything else that escapes (a panel callback, a slash command, a
    maintenance loop) lands here so it is logged with the same context
    and a recovery hint.
"""

import json
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import discord

from airlock.core.config import ConfigValidationError
from airlock.core.logger import LOG_TZ, logger


class ErrorContext:
    """Captures and formats detailed error context"""

    @staticmethod
    def get_full_context(e: Exception, location: str, **kwargs) -> Dict[str, Any]:
        """
        Get comprehensive error context.

        Args:
            e: The exception
            location: Where the error occurred
            **kwargs: Additional context (member, interaction, ...)

        Returns:
            Dictionary with full error context
        """
        context = {
            "timestamp": datetime.now(LOG_TZ).isoformat(),
            "location": location,
            "error_type": type(e).__name__,
            "error_message": str(e),
            "traceback": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            "additional_context": {k: str(v)[:100] for k, v in kwargs.items()},
        }

        interaction = kwargs.get("interaction")
        if isinstance(interaction, discord.Interaction):
            context["interaction_context"] = {
                "user": str(interaction.user),
                "user_id": interaction.user.id,
                "guild_id": interaction.guild_id,
                "custom_id": (interaction.data or {}).get("custom_id"),
            }

        member = kwargs.get("member")
        if isinstance(member, discord.Member):
            context["member_context"] = {
                "name": str(member),
                "id": member.id,
                "roles": [role.name for role in member.roles],
                "joined_at": member.joined_at.isoformat() if member.joined_at else None,
            }

        return context


class ErrorHandler:
    """Categorized error logging with recovery hints"""

    ERROR_CATEGORIES = {
        "discord": (
            discord.Forbidden,
            discord.NotFound,
            discord.HTTPException,
        ),
        "network": (
            ConnectionError,
            TimeoutError,
            OSError,
        ),
        "config": (
            ConfigValidationError,
        ),
    }

    RECOVERY_SUGGESTIONS = {
        discord.Forbidden: "Check the bot's Manage Roles / Kick Members permissions and role position",
        discord.NotFound: "Resource not found - check role, channel and guild IDs",
        discord.HTTPException: "Discord API issue - the member can retry the panel",
        ConnectionError: "Network connection issue - check connectivity",
        TimeoutError: "Request timed out - will be retried on the next interaction",
        OSError: "System resource issue - check disk space and permissions",
        ConfigValidationError: "Fix the environment variables and restart",
    }

    @classmethod
    def categorize_error(cls, e: Exception) -> str:
        for category, error_types in cls.ERROR_CATEGORIES.items():
            if isinstance(e, error_types):
                return category
        return "general"

    @classmethod
    def get_recovery_suggestion(cls, e: Exception) -> str:
        # Most specific first: Forbidden and NotFound subclass HTTPException
        for error_type, suggestion in cls.RECOVERY_SUGGESTIONS.items():
            if isinstance(e, error_type):
                return suggestion
        return "Unexpected error - check logs for details"

    @classmethod
    def handle(cls, e: Exception, location: str, critical: bool = False, **context) -> None:
        """
        Log an error with full context.

        Args:
            e: The exception
            location: Where the error occurred
            critical: Also persist the context under logs/errors/
            **context: Additional context
        """
        category = cls.categorize_error(e)
        suggestion = cls.get_recovery_suggestion(e)
        full_context = ErrorContext.get_full_context(e, location, **context)

        details = [
            ("Location", location),
            ("Category", category),
            ("Error Type", full_context["error_type"]),
            ("Error", full_context["error_message"][:100]),
            ("Recovery", suggestion),
        ]
        if "interaction_context" in full_context:
            ic = full_context["interaction_context"]
            details.append(("User", f"{ic['user']} ({ic['user_id']})"))
            if ic["custom_id"]:
                details.append(("Component", ic["custom_id"]))

        if critical:
            logger.error("Critical Error", details)
            cls._store_critical_error(full_context)
        else:
            logger.warning("Unhandled Error", details)

    @staticmethod
    def _store_critical_error(context: Dict[str, Any]) -> None:
        try:
            error_dir = Path("logs/errors")
            error_dir.mkdir(exist_ok=True, parents=True)

            timestamp = datetime.now(LOG_TZ).strftime("%Y%m%d_%H%M%S")
            error_file = error_dir / f"error_{timestamp}.json"

            with open(error_file, "w", encoding="utf-8") as f:
                json.dump(context, f, indent=2, default=str)

            logger.info(f"Critical error saved to {error_file}")
        except OSError as save_error:
            logger.warning(f"Failed to save error details: {save_error}")


__all__ = ["ErrorContext", "ErrorHandler"]
