"""
Airlock - Session Store Tests
=============================

Captcha code issuance, validation outcomes and expiry sweeping.
"""

from airlock.core.constants import CODE_ALPHABET
from airlock.onboarding.models import SessionFailure
from airlock.onboarding.sessions import SessionStore


# =============================================================================
# Issuance
# =============================================================================

class TestCreateSession:
    """Tests for create_session."""

    def test_code_shape(self, sessions):
        """Codes have the configured length and only alphabet characters."""
        for subject_id in range(50):
            code = sessions.create_session(subject_id).code
            assert len(code) == 4
            assert set(code) <= set(CODE_ALPHABET)

    def test_alphabet_excludes_ambiguous_characters(self):
        """The default alphabet has no I, O, 0 or 1."""
        assert not set("IO01") & set(CODE_ALPHABET)

    def test_expiry_is_creation_plus_ttl(self, sessions, clock):
        """expires_at is exactly created_at + expiration."""
        session = sessions.create_session(1)
        assert session.created_at == clock.now
        assert session.expires_at == clock.now + 60_000

    def test_replaces_previous_session(self, sessions, monkeypatch):
        """A second create replaces the first; only the new code validates."""
        codes = iter(["AAAA", "BBBB"])
        monkeypatch.setattr(sessions, "generate_code", lambda: next(codes))

        sessions.create_session(1)
        sessions.create_session(1)

        assert len(sessions) == 1
        assert sessions.validate(1, "AAAA").reason is SessionFailure.MISMATCH
        assert sessions.validate(1, "BBBB").success is True

    def test_meta_is_copied(self, sessions):
        """Later changes to the caller's dict do not leak into the session."""
        meta = {"pronoun": "hehim"}
        sessions.create_session(1, meta)
        meta["pronoun"] = "changed"

        result = sessions.validate(1, sessions._sessions[1].code)
        assert result.meta == {"pronoun": "hehim"}

    def test_custom_alphabet_and_length(self, clock):
        """Alphabet and length come from the constructor."""
        store = SessionStore(alphabet="XY", code_length=6, clock=clock)
        code = store.create_session(1).code
        assert len(code) == 6
        assert set(code) <= {"X", "Y"}


# =============================================================================
# Validation
# =============================================================================

class TestValidate:
    """Tests for validate outcomes."""

    def test_missing(self, sessions):
        """No session gives MISSING."""
        result = sessions.validate(1, "ABCD")
        assert result.success is False
        assert result.reason is SessionFailure.MISSING

    def test_success_returns_meta_and_consumes(self, sessions):
        """A correct code succeeds once and deletes the session."""
        session = sessions.create_session(1, {"age": "25+"})

        result = sessions.validate(1, session.code)
        assert result.success is True
        assert result.meta == {"age": "25+"}
        assert sessions.has_session(1) is False
        assert sessions.validate(1, session.code).reason is SessionFailure.MISSING

    def test_trims_and_ignores_case(self, sessions):
        """Whitespace and lowercase input are accepted."""
        session = sessions.create_session(1)
        assert sessions.validate(1, f"  {session.code.lower()} \n").success is True

    def test_mismatch_keeps_session(self, sessions, monkeypatch):
        """A wrong code keeps the session for another try."""
        monkeypatch.setattr(sessions, "generate_code", lambda: "ABCD")
        sessions.create_session(1)

        assert sessions.validate(1, "WXYZ").reason is SessionFailure.MISMATCH
        assert sessions.has_session(1) is True
        assert sessions.validate(1, "ABCD").success is True

    def test_none_code_is_mismatch(self, sessions):
        """Submitting nothing is a mismatch, not an error."""
        sessions.create_session(1)
        assert sessions.validate(1, None).reason is SessionFailure.MISMATCH

    def test_valid_at_exact_expiry(self, sessions, clock):
        """A code submitted at expires_at is still accepted."""
        session = sessions.create_session(1)
        clock.advance(60_000)
        assert sessions.validate(1, session.code).success is True

    def test_expired_is_purged(self, sessions, clock):
        """After expiry the session reports EXPIRED once, then MISSING."""
        session = sessions.create_session(1)
        clock.advance(60_001)

        assert sessions.validate(1, session.code).reason is SessionFailure.EXPIRED
        assert sessions.has_session(1) is False
        assert sessions.validate(1, session.code).reason is SessionFailure.MISSING


# =============================================================================
# Removal
# =============================================================================

class TestRemoval:
    """Tests for clear_session and sweep_expired."""

    def test_clear_is_idempotent(self, sessions):
        """Clearing twice, or clearing nothing, is fine."""
        sessions.create_session(1)
        sessions.clear_session(1)
        sessions.clear_session(1)
        sessions.clear_session(2)
        assert len(sessions) == 0

    def test_sweep_removes_only_expired(self, sessions, clock):
        """Sessions at or past expiry are swept; fresh ones stay."""
        sessions.create_session(1)
        clock.advance(30_000)
        sessions.create_session(2)
        clock.advance(30_000)

        assert sessions.sweep_expired() == 1
        assert sessions.has_session(1) is False
        assert sessions.has_session(2) is True

    def test_sweep_empty(self, sessions):
        """Sweeping an empty store removes nothing."""
        assert sessions.sweep_expired() == 0
