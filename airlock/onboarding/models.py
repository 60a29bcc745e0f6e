"""
Airlock - Onboarding Models
===========================

Data types shared by the session store, selection state, scheduler and
enforcement workflow. All timestamps are epoch milliseconds.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple, Union


SelectionSnapshot = Dict[str, Optional[Any]]
Callback = Callable[[], Union[Awaitable[Any], Any]]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Verification Sessions
# =============================================================================

class SessionFailure(str, Enum):
    """Why a submitted code was rejected."""

    MISSING = "missing"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


@dataclass
class VerificationSession:
    """One issued code and its expiry."""

    subject_id: int
    code: str
    meta: Optional[SelectionSnapshot]
    created_at: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of SessionStore.validate; never raised, always returned."""

    success: bool
    reason: Optional[SessionFailure] = None
    meta: Optional[SelectionSnapshot] = None

    @classmethod
    def ok(cls, meta: Optional[SelectionSnapshot]) -> "ValidationResult":
        return cls(success=True, meta=meta)

    @classmethod
    def fail(cls, reason: SessionFailure) -> "ValidationResult":
        return cls(success=False, reason=reason)


# =============================================================================
# Scheduler
# =============================================================================

@dataclass(eq=False)
class ScheduledTask:
    """
    Registry entry for one pending enforcement timer.

    The asyncio task is the timer handle. `fired` flips once the delay has
    elapsed and the callback has started; from then on cancellation no
    longer interrupts it.
    """

    subject_id: int
    fire_at: int
    callback: Callback
    task: Optional[asyncio.Task] = None
    fired: bool = False


# =============================================================================
# Platform Facts
# =============================================================================

@dataclass(frozen=True)
class Membership:
    """Fresh snapshot of one member as reported by the platform."""

    subject_id: int
    roles: FrozenSet[int]
    joined_at: int


@dataclass(frozen=True)
class ActorPermissions:
    """What the enforcing bot account is currently allowed to do."""

    can_revoke: bool
    top_role_position: int


# =============================================================================
# Enforcement
# =============================================================================

class Stage(str, Enum):
    """Workflow stage that produced a decision."""

    SCHEDULED = "scheduled"
    EVALUATING = "evaluating"
    PENDING_REVOCATION = "pending_revocation"
    RE_EVALUATING = "re_evaluating"
    CANCELLED = "cancelled"


class Outcome(str, Enum):
    """Result of one evaluation pass."""

    SCHEDULED = "scheduled"
    COMPLIANCE_MET = "compliance_met"
    PENDING_REVOCATION = "pending_revocation"
    ABORTED = "aborted"
    REVOKED = "revoked"
    REVOKE_FAILED = "revoke_failed"
    CANCELLED = "cancelled"


class AbortReason(str, Enum):
    """Why an enforcement run stopped without revoking."""

    INSUFFICIENT_AUTHORITY = "insufficient_authority"
    SUBJECT_GONE = "subject_gone"
    COMPLIANCE_RESTORED = "compliance_restored"


@dataclass(frozen=True)
class ConditionSnapshot:
    """The three independent enforcement conditions at one instant."""

    membership_age_ms: int
    age_in_window: bool
    still_gated: bool
    not_exempt: bool

    @property
    def actionable(self) -> bool:
        return self.age_in_window and self.still_gated and self.not_exempt


@dataclass(frozen=True)
class EnforcementDecision:
    """Return and audit value of one workflow step. Never persisted."""

    subject_id: int
    stage: Stage
    outcome: Outcome
    evaluated_at: int
    reason: Optional[AbortReason] = None
    conditions: Optional[ConditionSnapshot] = None
    membership: Optional[Membership] = None
    fires_at: Optional[int] = None
    revoke_attempted: bool = False
    detail: Optional[str] = None


@dataclass(frozen=True)
class AuditRecord:
    """Structured audit entry handed to the platform's audit sink."""

    subject_id: int
    stage: Stage
    outcome: Outcome
    severity: str
    title: str
    summary: str
    timestamp: int
    reason: Optional[AbortReason] = None
    fields: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def as_details(self) -> List[Tuple[str, str]]:
        """Flatten into logger tree details."""
        details = [("User ID", str(self.subject_id)), ("Stage", self.stage.value)]
        if self.reason:
            details.append(("Reason", self.reason.value))
        details.extend(self.fields)
        return details


__all__ = [
    "SelectionSnapshot",
    "Callback",
    "now_ms",
    "SessionFailure",
    "VerificationSession",
    "ValidationResult",
    "ScheduledTask",
    "Membership",
    "ActorPermissions",
    "Stage",
    "Outcome",
    "AbortReason",
    "ConditionSnapshot",
    "EnforcementDecision",
    "AuditRecord",
]
