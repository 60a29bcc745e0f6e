"""
Airlock - Test Fixtures
=======================

Shared fixtures for all tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep test log files out of the working tree
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="airlock-logs-"))

from airlock.onboarding.models import ActorPermissions, AuditRecord, Membership  # noqa: E402
from airlock.onboarding.scheduler import DelayedTaskScheduler  # noqa: E402
from airlock.onboarding.selections import SelectionState  # noqa: E402
from airlock.onboarding.sessions import SessionStore  # noqa: E402
from airlock.onboarding.verification import VerificationService  # noqa: E402
from airlock.onboarding.workflow import EnforcementSettings, GateEnforcementWorkflow  # noqa: E402


# =============================================================================
# Constants
# =============================================================================

START_MS = 1_700_000_000_000
GATE_ROLE_ID = 500
EXEMPT_ROLE_ID = 600
SUBJECT_ID = 111
LOWER_AGE_MS = 30_000
UPPER_AGE_MS = 60_000
GRACE_PERIOD_MS = 5_000


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeGateway:
    """
    In-memory MembershipGateway.

    `members` maps user id to Membership; remove an entry to simulate a
    member leaving. Every revoke and audit record is captured.
    """

    def __init__(self) -> None:
        self.members: Dict[int, Membership] = {}
        self.permissions = ActorPermissions(can_revoke=True, top_role_position=100)
        self.positions: Dict[int, int] = {GATE_ROLE_ID: 10, EXEMPT_ROLE_ID: 20}
        self.revoke_result = True
        self.revoke_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.permissions_error: Optional[Exception] = None
        self.revoked: List[Tuple[int, str]] = []
        self.audits: List[AuditRecord] = []

    def add_member(self, subject_id: int, joined_at: int, roles=(GATE_ROLE_ID,)) -> Membership:
        membership = Membership(subject_id=subject_id, roles=frozenset(roles), joined_at=joined_at)
        self.members[subject_id] = membership
        return membership

    def set_roles(self, subject_id: int, roles) -> None:
        current = self.members[subject_id]
        self.add_member(subject_id, current.joined_at, roles)

    async def fetch_membership(self, subject_id: int) -> Optional[Membership]:
        if self.fetch_error:
            raise self.fetch_error
        return self.members.get(subject_id)

    async def actor_permissions(self) -> ActorPermissions:
        if self.permissions_error:
            raise self.permissions_error
        return self.permissions

    async def role_position(self, role_id: int) -> Optional[int]:
        return self.positions.get(role_id)

    async def revoke(self, subject_id: int, reason: str) -> bool:
        self.revoked.append((subject_id, reason))
        if self.revoke_error:
            raise self.revoke_error
        if self.revoke_result:
            self.members.pop(subject_id, None)
        return self.revoke_result

    def emit_audit(self, record: AuditRecord) -> None:
        self.audits.append(record)

    @property
    def audit_titles(self) -> List[str]:
        return [record.title for record in self.audits]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """Fake clock starting at a fixed epoch."""
    return FakeClock()


@pytest.fixture
def gateway():
    """In-memory gateway with kick permission and a high bot role."""
    return FakeGateway()


@pytest.fixture
def sessions(clock):
    """Session store on the fake clock."""
    return SessionStore(expiration_ms=60_000, clock=clock)


@pytest.fixture
def selections():
    """Selection state with the default categories."""
    return SelectionState()


@pytest.fixture
def scheduler(clock):
    """Scheduler using the fake clock for fire_at bookkeeping."""
    return DelayedTaskScheduler(name="Test", clock=clock)


@pytest.fixture
def settings():
    """Short enforcement window: 30s to 60s, 5s grace."""
    return EnforcementSettings(
        gate_role_id=GATE_ROLE_ID,
        exempt_role_ids=frozenset({EXEMPT_ROLE_ID}),
        lower_age_ms=LOWER_AGE_MS,
        upper_age_ms=UPPER_AGE_MS,
        grace_period_ms=GRACE_PERIOD_MS,
    )


@pytest.fixture
def grace_sleep(clock):
    """
    Sleep replacement that advances the fake clock instead of waiting.

    Set `grace_sleep.during` to a callable to run something inside the
    grace period (e.g. the member verifying).
    """
    class GraceSleep:
        def __init__(self) -> None:
            self.calls: List[float] = []
            self.during = None

        async def __call__(self, seconds: float) -> None:
            self.calls.append(seconds)
            clock.advance(int(seconds * 1000))
            if self.during is not None:
                self.during()

    return GraceSleep()


@pytest.fixture
def workflow(gateway, scheduler, settings, sessions, selections, clock, grace_sleep):
    """Workflow wired to fakes only."""
    return GateEnforcementWorkflow(
        gateway=gateway,
        scheduler=scheduler,
        settings=settings,
        sessions=sessions,
        selections=selections,
        clock=clock,
        sleep=grace_sleep,
    )


@pytest.fixture
def verification(sessions, selections, workflow):
    """Verification service over the shared stores."""
    return VerificationService(sessions=sessions, selections=selections, workflow=workflow)
