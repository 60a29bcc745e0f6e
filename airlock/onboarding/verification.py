"""
Airlock - Verification Service
==============================

Glue between the onboarding panel and the core stores.

DESIGN:
    Speaks plain ids and role id sets only, so the panel view stays a thin
    discord.py layer and every decision here can be tested without a bot.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from airlock.core.logger import logger
from airlock.onboarding.categories import DEFAULT_CATEGORIES, OnboardingCategory
from airlock.onboarding.models import (
    SelectionSnapshot,
    SessionFailure,
    ValidationResult,
    VerificationSession,
)
from airlock.onboarding.selections import SelectionState
from airlock.onboarding.sessions import SessionStore
from airlock.onboarding.workflow import GateEnforcementWorkflow


FAILURE_MESSAGES = {
    SessionFailure.EXPIRED: "The captcha has expired. Click the finish button again to receive a new code.",
    SessionFailure.MISSING: "No active captcha found. Click the finish button to receive a fresh code.",
}
DEFAULT_FAILURE_MESSAGE = "The code you entered was incorrect or expired. Please try again."


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class BeginResult:
    """Outcome of pressing Finish."""

    snapshot: SelectionSnapshot
    session: Optional[VerificationSession] = None
    missing: Optional[OnboardingCategory] = None

    @property
    def ready(self) -> bool:
        return self.session is not None


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of submitting the captcha modal."""

    validation: ValidationResult
    kick_cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.validation.success


# =============================================================================
# Service
# =============================================================================

class VerificationService:
    """Drives one member from role selection to a validated captcha."""

    def __init__(
        self,
        sessions: SessionStore,
        selections: SelectionState,
        workflow: GateEnforcementWorkflow,
        categories: Tuple[OnboardingCategory, ...] = DEFAULT_CATEGORIES,
    ) -> None:
        self.sessions = sessions
        self.selections = selections
        self.workflow = workflow
        self.categories = tuple(categories)

    def record_selection(self, subject_id: int, category: str, choice: Any) -> SelectionSnapshot:
        snapshot = self.selections.set(subject_id, category, choice)
        logger.debug("Onboarding Selection Stored", [
            ("User ID", str(subject_id)),
            ("Category", category),
            ("Filled", f"{len(self.categories) - len(self.selections.missing_categories(snapshot))}/{len(self.categories)}"),
        ])
        return snapshot

    def begin(self, subject_id: int, member_role_ids: Iterable[int]) -> BeginResult:
        """
        Issue a captcha once every category has an answer.

        Categories missing from the stored snapshot are filled from roles
        the member already holds, so a member who picked roles elsewhere is
        not asked twice.
        """
        role_ids = set(member_role_ids)
        snapshot = self.selections.get(subject_id)

        for category in self.categories:
            if snapshot.get(category.key):
                continue
            from_roles = category.selection_from_roles(role_ids)
            if from_roles is not None:
                snapshot[category.key] = from_roles

        for category in self.categories:
            if not snapshot.get(category.key):
                return BeginResult(snapshot=snapshot, missing=category)

        self.sessions.sweep_expired()
        session = self.sessions.create_session(subject_id, snapshot)
        return BeginResult(snapshot=snapshot, session=session)

    def submit(self, subject_id: int, code: Optional[str]) -> SubmitResult:
        """Validate a code; on success pre-empt enforcement for the member."""
        validation = self.sessions.validate(subject_id, code)
        if not validation.success:
            logger.info("Captcha Attempt Failed", [
                ("User ID", str(subject_id)),
                ("Reason", validation.reason.value if validation.reason else "unknown"),
            ])
            return SubmitResult(validation=validation)

        cancelled = self.workflow.on_verification_succeeded(subject_id)
        logger.tree("Captcha Verified", [
            ("User ID", str(subject_id)),
            ("Kick Cancelled", "Yes" if cancelled else "No"),
        ], emoji="✅")
        return SubmitResult(validation=validation, kick_cancelled=cancelled)

    @staticmethod
    def failure_message(reason: Optional[SessionFailure]) -> str:
        return FAILURE_MESSAGES.get(reason, DEFAULT_FAILURE_MESSAGE)


__all__ = [
    "BeginResult",
    "SubmitResult",
    "VerificationService",
    "DEFAULT_FAILURE_MESSAGE",
    "FAILURE_MESSAGES",
]
