"""
Airlock - Enforcement Audit Records
===================================

Turns an EnforcementDecision into an AuditRecord.

DESIGN:
    build_audit_record() is a pure function of the decision: no clock, no
    platform, no logging. The workflow hands the result to the gateway's
    audit sink, and tests can check every stage's record without timers.
"""

from datetime import datetime
from typing import Dict, List, Tuple

from airlock.core.logger import LOG_TZ, logger
from airlock.onboarding.models import (
    AbortReason,
    AuditRecord,
    ConditionSnapshot,
    EnforcementDecision,
    Outcome,
    Stage,
)


# =============================================================================
# Presentation Tables
# =============================================================================

STEP_LABELS: Dict[Stage, str] = {
    Stage.SCHEDULED: "1/4",
    Stage.EVALUATING: "2/4",
    Stage.PENDING_REVOCATION: "3/4",
    Stage.RE_EVALUATING: "4/4",
    Stage.CANCELLED: "-",
}

OUTCOME_TITLES: Dict[Outcome, str] = {
    Outcome.SCHEDULED: "Timer Started",
    Outcome.COMPLIANCE_MET: "Compliance Met",
    Outcome.PENDING_REVOCATION: "Kick Pending",
    Outcome.REVOKED: "Kick Successful",
    Outcome.REVOKE_FAILED: "Kick Failed",
    Outcome.CANCELLED: "Kick Cancelled",
}

ABORT_TITLES: Dict[AbortReason, str] = {
    AbortReason.INSUFFICIENT_AUTHORITY: "Kick Aborted (Insufficient Authority)",
    AbortReason.SUBJECT_GONE: "Kick Aborted (Member Left)",
    AbortReason.COMPLIANCE_RESTORED: "Kick Aborted (Compliance Restored)",
}

ABORT_SUMMARIES: Dict[AbortReason, str] = {
    AbortReason.INSUFFICIENT_AUTHORITY: "Bot lacks kick permission or role hierarchy; no action taken",
    AbortReason.SUBJECT_GONE: "Member is no longer in the server",
    AbortReason.COMPLIANCE_RESTORED: "Member no longer meets the kick conditions",
}

SEVERITY_EMOJI: Dict[str, str] = {
    "info": "🛂",
    "success": "✅",
    "warning": "⚠️",
    "error": "❌",
}


# =============================================================================
# Helpers
# =============================================================================

def format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, LOG_TZ).strftime("%Y-%m-%d %H:%M:%S %Z")


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def condition_fields(conditions: ConditionSnapshot) -> List[Tuple[str, str]]:
    return [
        ("Membership Age", f"{conditions.membership_age_ms / 1000:.1f}s"),
        ("In Window", _yes_no(conditions.age_in_window)),
        ("Still Gated", _yes_no(conditions.still_gated)),
        ("Not Exempt", _yes_no(conditions.not_exempt)),
    ]


def _severity(decision: EnforcementDecision) -> str:
    if decision.outcome is Outcome.REVOKE_FAILED:
        return "error"
    if decision.outcome is Outcome.REVOKED:
        return "success"
    if decision.outcome is Outcome.PENDING_REVOCATION:
        return "warning"
    if decision.reason is AbortReason.INSUFFICIENT_AUTHORITY:
        return "warning"
    return "info"


def _summary(decision: EnforcementDecision) -> str:
    if decision.outcome is Outcome.ABORTED and decision.reason:
        return ABORT_SUMMARIES[decision.reason]
    if decision.outcome is Outcome.SCHEDULED:
        return "Enforcement check scheduled"
    if decision.outcome is Outcome.COMPLIANCE_MET:
        return "Member is verified, exempt, or outside the enforcement window"
    if decision.outcome is Outcome.PENDING_REVOCATION:
        return "Member is still gated; re-checking after the grace period"
    if decision.outcome is Outcome.REVOKED:
        return "Member kicked for not completing onboarding"
    if decision.outcome is Outcome.REVOKE_FAILED:
        return "Kick call failed; not retried"
    return "Member verified; pending enforcement cancelled"


# =============================================================================
# Record Builder
# =============================================================================

def build_audit_record(decision: EnforcementDecision) -> AuditRecord:
    """
    Build the audit record for one workflow decision.

    Args:
        decision: Decision produced by a workflow stage.

    Returns:
        AuditRecord carrying the title, severity, condition snapshot and
        timestamps of the decision.
    """
    if decision.outcome is Outcome.ABORTED and decision.reason:
        title = ABORT_TITLES[decision.reason]
    else:
        title = OUTCOME_TITLES[decision.outcome]

    fields: List[Tuple[str, str]] = [("Step", STEP_LABELS[decision.stage])]
    if decision.conditions is not None:
        fields.extend(condition_fields(decision.conditions))
    if decision.membership is not None:
        fields.append(("Joined At", format_timestamp(decision.membership.joined_at)))
    if decision.fires_at is not None:
        fields.append(("Fires At", format_timestamp(decision.fires_at)))
    if decision.outcome in (Outcome.REVOKED, Outcome.REVOKE_FAILED):
        fields.append(("Kick Succeeded", _yes_no(decision.outcome is Outcome.REVOKED)))
    if decision.detail:
        fields.append(("Detail", decision.detail))
    fields.append(("Evaluated At", format_timestamp(decision.evaluated_at)))

    return AuditRecord(
        subject_id=decision.subject_id,
        stage=decision.stage,
        outcome=decision.outcome,
        severity=_severity(decision),
        title=title,
        summary=_summary(decision),
        timestamp=decision.evaluated_at,
        reason=decision.reason,
        fields=tuple(fields),
    )


def log_audit_record(record: AuditRecord) -> None:
    """Write an audit record to the tree logger at its severity."""
    title = f"Onboarding: {record.title}"
    details = record.as_details()

    if record.severity == "error":
        logger.error(title, details)
    elif record.severity == "warning":
        logger.warning(title, details)
    else:
        logger.tree(title, details, emoji=SEVERITY_EMOJI.get(record.severity, "🛂"))


__all__ = [
    "STEP_LABELS",
    "build_audit_record",
    "condition_fields",
    "format_timestamp",
    "log_audit_record",
]
