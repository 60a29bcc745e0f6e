"""
Airlock - Centralized Constants
===============================

Default values for the onboarding gate. Every value here can be
overridden from the environment through core.config.
"""

# =============================================================================
# Time Constants
# =============================================================================

MS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
MS_PER_MINUTE = MS_PER_SECOND * SECONDS_PER_MINUTE

# =============================================================================
# Verification Sessions
# =============================================================================

SESSION_EXPIRATION_MS = 1 * MS_PER_MINUTE
CODE_LENGTH = 4

# No I, O, 0 or 1: they are easy to misread in the modal label
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

SESSION_SWEEP_INTERVAL = 60           # seconds between expired-session sweeps

# =============================================================================
# Enforcement Window
# =============================================================================

TEST_LOWER_AGE_MS = 30 * MS_PER_SECOND
PROD_LOWER_AGE_MS = TEST_LOWER_AGE_MS * 5
UPPER_AGE_FACTOR = 2                  # upper bound = lower bound * factor

GRACE_PERIOD_MS = 5 * MS_PER_SECOND

# =============================================================================
# Selection Categories
# =============================================================================

SELECTION_CATEGORIES = ("pronoun", "continent", "age", "gaming")

# =============================================================================
# Network / Display
# =============================================================================

HEALTH_CHECK_PORT = 8080


__all__ = [
    "MS_PER_SECOND",
    "SECONDS_PER_MINUTE",
    "MS_PER_MINUTE",
    "SESSION_EXPIRATION_MS",
    "CODE_LENGTH",
    "CODE_ALPHABET",
    "SESSION_SWEEP_INTERVAL",
    "TEST_LOWER_AGE_MS",
    "PROD_LOWER_AGE_MS",
    "UPPER_AGE_FACTOR",
    "GRACE_PERIOD_MS",
    "SELECTION_CATEGORIES",
    "HEALTH_CHECK_PORT",
]
