"""
Airlock - Gate Enforcement Workflow
===================================

Decides whether a member who never finished onboarding gets kicked.

DESIGN:
    One run per join event, driven by the DelayedTaskScheduler:

        Scheduled -> Evaluating -> ComplianceMet
                                -> PendingRevocation -> ReEvaluating
                                       -> Aborted | Revoked | RevokeFailed

    The workflow owns no long-lived state. It reads fresh membership facts
    from the gateway at every decision point and only touches the stores
    through their public methods.

    A callback already running cannot be cancelled, so the grace-period
    re-check is what keeps a member who verifies at the last second from
    being kicked. Every stage is wrapped: a platform failure becomes an
    abort plus an audit record, never an exception.
"""

import asyncio
import functools
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional, Protocol, Tuple

from airlock.core.constants import MS_PER_MINUTE, UPPER_AGE_FACTOR, GRACE_PERIOD_MS, PROD_LOWER_AGE_MS
from airlock.core.logger import logger
from airlock.onboarding.audit import build_audit_record, log_audit_record
from airlock.onboarding.models import (
    AbortReason,
    ActorPermissions,
    AuditRecord,
    ConditionSnapshot,
    EnforcementDecision,
    Membership,
    Outcome,
    ScheduledTask,
    Stage,
    now_ms,
)
from airlock.onboarding.scheduler import DelayedTaskScheduler
from airlock.onboarding.selections import SelectionState
from airlock.onboarding.sessions import SessionStore


# =============================================================================
# Platform Port
# =============================================================================

class MembershipGateway(Protocol):
    """Facts and actions the workflow needs from the chat platform."""

    async def fetch_membership(self, subject_id: int) -> Optional[Membership]:
        """Fresh member snapshot, or None if the member has left."""

    async def actor_permissions(self) -> ActorPermissions:
        """Current permissions of the enforcing bot account."""

    async def role_position(self, role_id: int) -> Optional[int]:
        """Hierarchy position of a role, or None if it does not exist."""

    async def revoke(self, subject_id: int, reason: str) -> bool:
        """Kick the member. True on success."""

    def emit_audit(self, record: AuditRecord) -> None:
        """Fire-and-forget audit sink."""


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class EnforcementSettings:
    """Timings and roles for one gated guild."""

    gate_role_id: int
    exempt_role_ids: FrozenSet[int] = field(default_factory=frozenset)
    lower_age_ms: int = PROD_LOWER_AGE_MS
    upper_age_ms: int = PROD_LOWER_AGE_MS * UPPER_AGE_FACTOR
    grace_period_ms: int = GRACE_PERIOD_MS

    @classmethod
    def from_config(cls, config) -> "EnforcementSettings":
        return cls(
            gate_role_id=config.gate_role_id,
            exempt_role_ids=frozenset(config.exempt_role_ids or ()),
            lower_age_ms=config.lower_age_ms,
            upper_age_ms=config.upper_age_ms,
            grace_period_ms=config.grace_period_ms,
        )

    @property
    def revoke_reason(self) -> str:
        minutes = self.lower_age_ms / MS_PER_MINUTE
        window = f"{minutes:g} minute" + ("" if minutes == 1 else "s")
        return f"Failed to complete onboarding (captcha) within {window}"


# =============================================================================
# Workflow
# =============================================================================

class GateEnforcementWorkflow:
    """
    Orchestrates sessions, selections and the scheduler against live
    membership facts.

    Attributes:
        gateway: Platform port used for facts, the kick, and audit output.
        scheduler: Owner of the per-member timers.
        settings: Gate role, exempt roles and timings.
    """

    def __init__(
        self,
        gateway: MembershipGateway,
        scheduler: DelayedTaskScheduler,
        settings: EnforcementSettings,
        sessions: Optional[SessionStore] = None,
        selections: Optional[SelectionState] = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.scheduler = scheduler
        self.settings = settings
        self.sessions = sessions
        self.selections = selections
        self._clock = clock
        self._sleep = sleep

    # =========================================================================
    # Event Entry Points
    # =========================================================================

    def on_subject_joined(self, subject_id: int) -> ScheduledTask:
        """Schedule the enforcement check for a member who just joined."""
        entry = self.scheduler.schedule(
            subject_id,
            functools.partial(self.evaluate, subject_id),
            self.settings.lower_age_ms,
        )
        self._emit(EnforcementDecision(
            subject_id=subject_id,
            stage=Stage.SCHEDULED,
            outcome=Outcome.SCHEDULED,
            evaluated_at=self._clock(),
            fires_at=entry.fire_at,
        ))
        return entry

    def on_verification_succeeded(self, subject_id: int) -> bool:
        """
        Pre-empt enforcement for a member who just verified.

        Returns:
            True if a pending timer was cancelled.
        """
        cancelled = self.scheduler.cancel(subject_id)
        if self.selections is not None:
            self.selections.clear(subject_id)

        self._emit(EnforcementDecision(
            subject_id=subject_id,
            stage=Stage.CANCELLED,
            outcome=Outcome.CANCELLED,
            evaluated_at=self._clock(),
            detail="Scheduled kick was cancelled" if cancelled else "No scheduled entry (already cleared)",
        ))
        return cancelled

    def on_subject_left(self, subject_id: int) -> bool:
        """Drop every piece of per-member state for a member who left."""
        cancelled = self.scheduler.cancel(subject_id)
        if self.sessions is not None:
            self.sessions.clear_session(subject_id)
        if self.selections is not None:
            self.selections.clear(subject_id)

        logger.debug("Onboarding State Cleared", [
            ("User ID", str(subject_id)),
            ("Timer Cancelled", "Yes" if cancelled else "No"),
        ])
        return cancelled

    # =========================================================================
    # Conditions
    # =========================================================================

    def evaluate_conditions(self, membership: Membership, now: int) -> ConditionSnapshot:
        """Compute the three independent kick conditions."""
        age = now - membership.joined_at
        return ConditionSnapshot(
            membership_age_ms=age,
            age_in_window=self.settings.lower_age_ms <= age <= self.settings.upper_age_ms,
            still_gated=self.settings.gate_role_id in membership.roles,
            not_exempt=membership.roles.isdisjoint(self.settings.exempt_role_ids),
        )

    # =========================================================================
    # Enforcement Run
    # =========================================================================

    async def evaluate(self, subject_id: int) -> EnforcementDecision:
        """
        Run the full enforcement state machine for one member.

        Returns:
            The terminal decision of this run.
        """
        # -----------------------------------------------------------------
        # Evaluating
        # -----------------------------------------------------------------
        membership = await self._fetch(subject_id)
        if membership is None:
            return self._finish(subject_id, Stage.EVALUATING, Outcome.ABORTED, reason=AbortReason.SUBJECT_GONE)

        conditions = self.evaluate_conditions(membership, self._clock())
        if not conditions.actionable:
            return self._finish(
                subject_id, Stage.EVALUATING, Outcome.COMPLIANCE_MET,
                conditions=conditions, membership=membership,
            )

        # -----------------------------------------------------------------
        # Pending Revocation: authority check, then grace period
        # -----------------------------------------------------------------
        authorized, detail = await self._check_authority(membership)
        if not authorized:
            return self._finish(
                subject_id, Stage.PENDING_REVOCATION, Outcome.ABORTED,
                reason=AbortReason.INSUFFICIENT_AUTHORITY,
                conditions=conditions, membership=membership, detail=detail,
            )

        self._emit(EnforcementDecision(
            subject_id=subject_id,
            stage=Stage.PENDING_REVOCATION,
            outcome=Outcome.PENDING_REVOCATION,
            evaluated_at=self._clock(),
            conditions=conditions,
            membership=membership,
        ))

        await self._sleep(self.settings.grace_period_ms / 1000)

        # -----------------------------------------------------------------
        # Re-Evaluating
        # -----------------------------------------------------------------
        membership = await self._fetch(subject_id)
        if membership is None:
            return self._finish(subject_id, Stage.RE_EVALUATING, Outcome.ABORTED, reason=AbortReason.SUBJECT_GONE)

        conditions = self.evaluate_conditions(membership, self._clock())
        if not conditions.actionable:
            return self._finish(
                subject_id, Stage.RE_EVALUATING, Outcome.ABORTED,
                reason=AbortReason.COMPLIANCE_RESTORED,
                conditions=conditions, membership=membership,
            )

        revoked = await self._revoke(subject_id)
        return self._finish(
            subject_id, Stage.RE_EVALUATING,
            Outcome.REVOKED if revoked else Outcome.REVOKE_FAILED,
            conditions=conditions, membership=membership, revoke_attempted=True,
        )

    # =========================================================================
    # Guarded Platform Calls
    # =========================================================================

    async def _fetch(self, subject_id: int) -> Optional[Membership]:
        try:
            return await self.gateway.fetch_membership(subject_id)
        except Exception as e:
            logger.debug("Membership Fetch Failed", [
                ("User ID", str(subject_id)),
                ("Error", f"{type(e).__name__}: {str(e)[:100]}"),
            ])
            return None

    async def _check_authority(self, membership: Membership) -> Tuple[bool, Optional[str]]:
        """
        Check kick permission and role hierarchy.

        The bot's top role must sit strictly above the member's highest
        role and above the gate role (when that role still exists).
        """
        try:
            actor = await self.gateway.actor_permissions()
            if not actor.can_revoke:
                return False, "Missing kick permission"

            positions = []
            for role_id in membership.roles:
                position = await self.gateway.role_position(role_id)
                if position is not None:
                    positions.append(position)
            subject_top = max(positions, default=0)
            if actor.top_role_position <= subject_top:
                return False, f"Bot role position {actor.top_role_position} not above member's {subject_top}"

            gate_position = await self.gateway.role_position(self.settings.gate_role_id)
            if gate_position is not None and actor.top_role_position <= gate_position:
                return False, f"Bot role position {actor.top_role_position} not above gate role's {gate_position}"

            return True, None

        except Exception as e:
            logger.warning("Role Hierarchy Check Failed", [
                ("User ID", str(membership.subject_id)),
                ("Error", f"{type(e).__name__}: {str(e)[:100]}"),
            ])
            return False, f"Hierarchy check failed: {type(e).__name__}"

    async def _revoke(self, subject_id: int) -> bool:
        try:
            return bool(await self.gateway.revoke(subject_id, self.settings.revoke_reason))
        except Exception as e:
            logger.error("Onboarding Kick Raised", [
                ("User ID", str(subject_id)),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])
            return False

    # =========================================================================
    # Audit
    # =========================================================================

    def _finish(
        self,
        subject_id: int,
        stage: Stage,
        outcome: Outcome,
        **kwargs,
    ) -> EnforcementDecision:
        decision = EnforcementDecision(
            subject_id=subject_id,
            stage=stage,
            outcome=outcome,
            evaluated_at=self._clock(),
            **kwargs,
        )
        self._emit(decision)
        return decision

    def _emit(self, decision: EnforcementDecision) -> None:
        record = build_audit_record(decision)
        try:
            self.gateway.emit_audit(record)
        except Exception as e:
            log_audit_record(record)
            logger.warning("Audit Sink Failed", [
                ("User ID", str(decision.subject_id)),
                ("Error", f"{type(e).__name__}: {str(e)[:100]}"),
            ])


__all__ = [
    "MembershipGateway",
    "EnforcementSettings",
    "GateEnforcementWorkflow",
]
