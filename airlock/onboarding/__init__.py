"""
Airlock - Onboarding Package
============================

Platform-independent onboarding core.

DESIGN:
    Nothing in this package imports discord.py. The bot talks to the
    workflow through the MembershipGateway port, and the stores are plain
    in-memory objects owned by whoever constructs them:

    - sessions.py: SessionStore (captcha codes with expiry)
    - selections.py: SelectionState (per-member category answers)
    - scheduler.py: DelayedTaskScheduler (one cancellable timer per member)
    - workflow.py: GateEnforcementWorkflow (the kick decision)
    - audit.py: pure decision -> AuditRecord mapping
    - verification.py: VerificationService (panel glue)
    - categories.py: onboarding category table
"""

from .categories import DEFAULT_CATEGORIES, OnboardingCategory, OnboardingRole, load_categories
from .models import (
    AbortReason,
    ActorPermissions,
    AuditRecord,
    ConditionSnapshot,
    EnforcementDecision,
    Membership,
    Outcome,
    ScheduledTask,
    SessionFailure,
    Stage,
    ValidationResult,
    VerificationSession,
)
from .scheduler import DelayedTaskScheduler
from .selections import SelectionState
from .sessions import SessionStore
from .verification import BeginResult, SubmitResult, VerificationService
from .workflow import EnforcementSettings, GateEnforcementWorkflow, MembershipGateway


__all__ = [
    "AbortReason",
    "ActorPermissions",
    "AuditRecord",
    "BeginResult",
    "ConditionSnapshot",
    "DEFAULT_CATEGORIES",
    "DelayedTaskScheduler",
    "EnforcementDecision",
    "EnforcementSettings",
    "GateEnforcementWorkflow",
    "Membership",
    "MembershipGateway",
    "OnboardingCategory",
    "OnboardingRole",
    "Outcome",
    "ScheduledTask",
    "SelectionState",
    "SessionFailure",
    "SessionStore",
    "Stage",
    "SubmitResult",
    "ValidationResult",
    "VerificationService",
    "VerificationSession",
    "load_categories",
]
