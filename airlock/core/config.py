"""
Airlock - Configuration Module
==============================

Centralized configuration management with environment variable validation.

DESIGN:
    Single source of truth for all configuration, loaded from environment
    variables at startup. A dataclass keeps every setting typed, and the
    enforcement timings are resolved once here so the workflow never has
    to know about the testing toggle.

    Key patterns:
    - Singleton via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
    - All Discord IDs are integers
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Set

from airlock.core.constants import (
    CODE_ALPHABET,
    CODE_LENGTH,
    GRACE_PERIOD_MS,
    HEALTH_CHECK_PORT,
    PROD_LOWER_AGE_MS,
    SESSION_EXPIRATION_MS,
    SESSION_SWEEP_INTERVAL,
    TEST_LOWER_AGE_MS,
    UPPER_AGE_FACTOR,
)


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        guild_id: Guild whose new members are gated.
        gate_role_id: Restricted role held until verification.
        exempt_role_ids: Roles that unconditionally excuse a member.
        lower_age_ms: Minimum membership age before the first check.
        upper_age_ms: Maximum membership age still considered actionable.
        grace_period_ms: Wait between detection and the final re-check.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str
    guild_id: int
    gate_role_id: int

    # -------------------------------------------------------------------------
    # Optional: Roles & Channels
    # -------------------------------------------------------------------------

    exempt_role_ids: Set[int] = field(default_factory=set)
    audit_channel_id: Optional[int] = None
    welcome_channel_id: Optional[int] = None

    # -------------------------------------------------------------------------
    # Optional: Verification Sessions
    # -------------------------------------------------------------------------

    session_expiration_ms: int = SESSION_EXPIRATION_MS
    code_alphabet: str = CODE_ALPHABET
    code_length: int = CODE_LENGTH
    session_sweep_interval: int = SESSION_SWEEP_INTERVAL  # seconds

    # -------------------------------------------------------------------------
    # Optional: Enforcement Window
    # -------------------------------------------------------------------------

    testing: bool = False
    lower_age_ms: int = PROD_LOWER_AGE_MS
    upper_age_ms: int = PROD_LOWER_AGE_MS * UPPER_AGE_FACTOR
    grace_period_ms: int = GRACE_PERIOD_MS

    # -------------------------------------------------------------------------
    # Optional: Onboarding Panel
    # -------------------------------------------------------------------------

    categories_file: Optional[str] = None

    # -------------------------------------------------------------------------
    # Optional: Operations
    # -------------------------------------------------------------------------

    health_port: int = HEALTH_CHECK_PORT
    error_webhook_url: Optional[str] = None


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Color palette for audit and panel embeds."""

    GREEN = 0x1F5E2E
    GOLD = 0xE6B84A
    RED = 0xDC3545
    BLUE = 0x3498DB
    BLURPLE = 0x5865F2

    LOG_NEGATIVE = RED    # revokes, failures
    LOG_WARNING = GOLD    # pending revocations, authority aborts
    LOG_POSITIVE = GREEN  # compliance, verification
    LOG_INFO = BLUE       # scheduling, silent aborts
    PANEL = BLURPLE


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int(value: Optional[str], name: str) -> int:
    """
    Parse string to integer with descriptive error handling.

    Raises:
        ConfigValidationError: If value is missing or not a valid integer.
    """
    if not value:
        raise ConfigValidationError(f"Missing required: {name}")
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_optional(value: Optional[str]) -> Optional[int]:
    """Parse optional string to integer, returning None on failure."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Args:
        value: Comma-separated string of integers (e.g., "123,456,789").

    Returns:
        Set of parsed integers, empty set if input is None or empty.
    """
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if part:
            try:
                result.add(int(part))
            except ValueError:
                pass  # Skip invalid entries silently
    return result


def _parse_bool(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int_with_default(value: Optional[str], default: int, name: str, min_val: int = None, max_val: int = None) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
        if min_val is not None and parsed < min_val:
            from airlock.core.logger import logger
            logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
            return min_val
        if max_val is not None and parsed > max_val:
            from airlock.core.logger import logger
            logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
            return max_val
        return parsed
    except ValueError:
        from airlock.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Validate URL format for webhooks, returning None when invalid."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from airlock.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


def _validate_alphabet(value: Optional[str]) -> str:
    if not value:
        return CODE_ALPHABET
    alphabet = "".join(dict.fromkeys(value.strip().upper()))
    if len(alphabet) < 2:
        raise ConfigValidationError(f"CODE_ALPHABET needs at least 2 distinct characters: {value!r}")
    return alphabet


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    DESIGN:
        Validates all required variables upfront before creating the
        Config object. The enforcement window is resolved here: testing
        mode picks the short lower bound, explicit LOWER_AGE_MS and
        UPPER_AGE_MS override either, and an inverted window is rejected.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    missing = []

    # -------------------------------------------------------------------------
    # Collect Required Variables
    # -------------------------------------------------------------------------

    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        missing.append("DISCORD_TOKEN")

    guild_id_str = os.getenv("GUILD_ID")
    if not guild_id_str:
        missing.append("GUILD_ID")

    gate_role_id_str = os.getenv("GATE_ROLE_ID")
    if not gate_role_id_str:
        missing.append("GATE_ROLE_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    # -------------------------------------------------------------------------
    # Enforcement Window
    # -------------------------------------------------------------------------

    testing = _parse_bool(os.getenv("ONBOARDING_TESTING"))
    default_lower = TEST_LOWER_AGE_MS if testing else PROD_LOWER_AGE_MS

    lower_age_ms = _parse_int_with_default(
        os.getenv("LOWER_AGE_MS"), default_lower, "LOWER_AGE_MS", min_val=0
    )
    upper_age_ms = _parse_int_with_default(
        os.getenv("UPPER_AGE_MS"), lower_age_ms * UPPER_AGE_FACTOR, "UPPER_AGE_MS", min_val=0
    )
    if upper_age_ms < lower_age_ms:
        raise ConfigValidationError(
            f"UPPER_AGE_MS ({upper_age_ms}) must not be below LOWER_AGE_MS ({lower_age_ms})"
        )

    # -------------------------------------------------------------------------
    # Build Config Object
    # -------------------------------------------------------------------------

    return Config(
        discord_token=discord_token,
        guild_id=_parse_int(guild_id_str, "GUILD_ID"),
        gate_role_id=_parse_int(gate_role_id_str, "GATE_ROLE_ID"),
        exempt_role_ids=_parse_int_set(os.getenv("EXEMPT_ROLE_IDS")),
        audit_channel_id=_parse_int_optional(os.getenv("AUDIT_CHANNEL_ID")),
        welcome_channel_id=_parse_int_optional(os.getenv("WELCOME_CHANNEL_ID")),
        session_expiration_ms=_parse_int_with_default(
            os.getenv("SESSION_EXPIRATION_MS"), SESSION_EXPIRATION_MS, "SESSION_EXPIRATION_MS",
            min_val=1000, max_val=15 * 60 * 1000,
        ),
        code_alphabet=_validate_alphabet(os.getenv("CODE_ALPHABET")),
        code_length=_parse_int_with_default(
            os.getenv("CODE_LENGTH"), CODE_LENGTH, "CODE_LENGTH", min_val=4, max_val=10
        ),
        session_sweep_interval=_parse_int_with_default(
            os.getenv("SESSION_SWEEP_INTERVAL"), SESSION_SWEEP_INTERVAL, "SESSION_SWEEP_INTERVAL",
            min_val=5, max_val=3600,
        ),
        testing=testing,
        lower_age_ms=lower_age_ms,
        upper_age_ms=upper_age_ms,
        grace_period_ms=_parse_int_with_default(
            os.getenv("GRACE_PERIOD_MS"), GRACE_PERIOD_MS, "GRACE_PERIOD_MS", min_val=0, max_val=60_000
        ),
        categories_file=os.getenv("ONBOARDING_CATEGORIES_FILE") or None,
        health_port=_parse_int_with_default(
            os.getenv("HEALTH_PORT"), HEALTH_CHECK_PORT, "HEALTH_PORT", min_val=1, max_val=65535
        ),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> Config:
    """
    Validate configuration and log a summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from airlock.core.logger import logger

    config = get_config()

    if not config.audit_channel_id:
        logger.info("Optional config not set: AUDIT_CHANNEL_ID")
    if not config.welcome_channel_id:
        logger.info("Optional config not set: WELCOME_CHANNEL_ID")

    logger.tree("Configuration Validated", [
        ("Guild", str(config.guild_id)),
        ("Gate Role", str(config.gate_role_id)),
        ("Exempt Roles", str(len(config.exempt_role_ids))),
        ("Mode", "Testing" if config.testing else "Production"),
        ("Window", f"{config.lower_age_ms // 1000}s - {config.upper_age_ms // 1000}s"),
        ("Grace Period", f"{config.grace_period_ms}ms"),
        ("Session TTL", f"{config.session_expiration_ms // 1000}s"),
    ], emoji="⚙️")

    return config


__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "load_config",
    "validate_and_log_config",
]
