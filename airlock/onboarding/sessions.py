"""
Airlock - Verification Session Store
====================================

Issues and validates short-lived captcha codes, one live session per member.

DESIGN:
    Sessions live in an owned dict keyed by user id. Expired sessions are
    purged lazily on validation and eagerly by sweep_expired(), which the
    bot runs before issuing a new code and from its maintenance loop.
    Validation never raises: every failure is a ValidationResult.
"""

import secrets
from typing import Callable, Dict, Optional

from airlock.core.constants import CODE_ALPHABET, CODE_LENGTH, SESSION_EXPIRATION_MS
from airlock.core.logger import logger
from airlock.onboarding.models import (
    SelectionSnapshot,
    SessionFailure,
    ValidationResult,
    VerificationSession,
    now_ms,
)


class SessionStore:
    """
    In-memory verification sessions.

    Attributes:
        expiration_ms: Lifetime of an issued code.
        alphabet: Characters a code is drawn from.
        code_length: Number of characters per code.
    """

    def __init__(
        self,
        expiration_ms: int = SESSION_EXPIRATION_MS,
        alphabet: str = CODE_ALPHABET,
        code_length: int = CODE_LENGTH,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.expiration_ms = expiration_ms
        self.alphabet = alphabet
        self.code_length = code_length
        self._clock = clock
        self._sessions: Dict[int, VerificationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # =========================================================================
    # Issuance
    # =========================================================================

    def generate_code(self) -> str:
        """Draw a code uniformly at random from the alphabet."""
        return "".join(secrets.choice(self.alphabet) for _ in range(self.code_length))

    def create_session(
        self,
        subject_id: int,
        meta: Optional[SelectionSnapshot] = None,
    ) -> VerificationSession:
        """
        Issue a fresh code for a member, replacing any previous session.

        Args:
            subject_id: Member the code is issued to.
            meta: Selection snapshot to hand back on successful validation.

        Returns:
            The stored session (code and expires_at are what callers need).
        """
        created_at = self._clock()
        session = VerificationSession(
            subject_id=subject_id,
            code=self.generate_code(),
            meta=dict(meta) if meta is not None else None,
            created_at=created_at,
            expires_at=created_at + self.expiration_ms,
        )
        replaced = subject_id in self._sessions
        self._sessions[subject_id] = session

        logger.debug("Captcha Session Created", [
            ("User ID", str(subject_id)),
            ("Expires In", f"{self.expiration_ms // 1000}s"),
            ("Replaced", "Yes" if replaced else "No"),
        ])
        return session

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, subject_id: int, submitted_code: Optional[str]) -> ValidationResult:
        """
        Check a submitted code against the member's live session.

        Comparison trims whitespace and ignores case. A successful check
        consumes the session; an expired one is purged; a mismatch keeps
        the session so the member can retry until it expires.
        """
        session = self._sessions.get(subject_id)
        if session is None:
            return ValidationResult.fail(SessionFailure.MISSING)

        if session.is_expired(self._clock()):
            del self._sessions[subject_id]
            return ValidationResult.fail(SessionFailure.EXPIRED)

        sanitized = (submitted_code or "").strip().upper()
        if sanitized != session.code.upper():
            return ValidationResult.fail(SessionFailure.MISMATCH)

        del self._sessions[subject_id]
        return ValidationResult.ok(session.meta)

    # =========================================================================
    # Removal
    # =========================================================================

    def clear_session(self, subject_id: int) -> None:
        self._sessions.pop(subject_id, None)

    def has_session(self, subject_id: int) -> bool:
        return subject_id in self._sessions

    def sweep_expired(self) -> int:
        """
        Drop every session at or past its expiry.

        Returns:
            Number of sessions removed.
        """
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if s.expires_at <= now]
        for sid in expired:
            del self._sessions[sid]

        if expired:
            logger.debug("Expired Captcha Sessions Swept", [
                ("Removed", str(len(expired))),
                ("Remaining", str(len(self._sessions))),
            ])
        return len(expired)


__all__ = ["SessionStore"]
