"""
Airlock - Delayed Task Scheduler Tests
======================================

Uses real asyncio timers with millisecond delays.
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest


# =============================================================================
# Scheduling
# =============================================================================

class TestSchedule:
    """Tests for schedule and firing."""

    @pytest.mark.asyncio
    async def test_fires_once_and_cleans_up(self, scheduler):
        """The callback runs once after the delay and the entry is removed."""
        callback = MagicMock()
        scheduler.schedule(1, callback, 10)
        assert scheduler.has(1) is True

        await asyncio.sleep(0.05)

        callback.assert_called_once_with()
        assert scheduler.has(1) is False
        assert scheduler.pending_count() == 0

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, scheduler):
        """Coroutine callbacks run to completion."""
        done = asyncio.Event()

        async def callback():
            done.set()

        scheduler.schedule(1, callback, 1)
        await asyncio.wait_for(done.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_fire_at_uses_clock(self, scheduler, clock):
        """fire_at is the injected clock plus the delay."""
        entry = scheduler.schedule(1, MagicMock(), 5_000)
        assert entry.fire_at == clock.now + 5_000
        scheduler.cancel(1)

    @pytest.mark.asyncio
    async def test_reschedule_replaces(self, scheduler):
        """A second schedule cancels the first; only the new callback fires."""
        first, second = MagicMock(), MagicMock()
        old = scheduler.schedule(1, first, 20)
        new = scheduler.schedule(1, second, 20)

        assert scheduler.get(1) is new
        assert scheduler.pending_count() == 1

        await asyncio.sleep(0.08)

        first.assert_not_called()
        second.assert_called_once()
        assert old.task.cancelled()

    @pytest.mark.asyncio
    async def test_reschedule_uses_second_delay(self, scheduler):
        """Rescheduling with a longer delay pushes the fire time out."""
        callback = MagicMock()
        scheduler.schedule(1, callback, 20)
        scheduler.schedule(1, callback, 300)

        await asyncio.sleep(0.1)
        callback.assert_not_called()
        assert scheduler.has(1) is True

        await asyncio.sleep(0.3)
        callback.assert_called_once()
        assert scheduler.has(1) is False

    @pytest.mark.asyncio
    async def test_subjects_are_independent(self, scheduler):
        """Cancelling one member leaves another's timer alone."""
        a, b = MagicMock(), MagicMock()
        scheduler.schedule(1, a, 10)
        scheduler.schedule(2, b, 10)
        scheduler.cancel(1)

        await asyncio.sleep(0.05)

        a.assert_not_called()
        b.assert_called_once()


# =============================================================================
# Cancellation
# =============================================================================

class TestCancel:
    """Tests for cancel."""

    @pytest.mark.asyncio
    async def test_cancel_prevents_firing(self, scheduler):
        """A cancelled timer never runs its callback."""
        callback = MagicMock()
        scheduler.schedule(1, callback, 10)

        assert scheduler.cancel(1) is True
        assert scheduler.has(1) is False
        assert scheduler.pending_count() == 0

        await asyncio.sleep(0.05)

        callback.assert_not_called()
        assert scheduler.has(1) is False

    def test_cancel_unknown(self, scheduler):
        """Cancelling with no entry returns False."""
        assert scheduler.cancel(42) is False

    @pytest.mark.asyncio
    async def test_cancel_does_not_interrupt_running_callback(self, scheduler):
        """Once fired, the callback finishes even if cancel is called."""
        started = asyncio.Event()
        release = asyncio.Event()
        finished = MagicMock()

        async def callback():
            started.set()
            await release.wait()
            finished()

        entry = scheduler.schedule(1, callback, 1)
        await asyncio.wait_for(started.wait(), timeout=1)

        assert scheduler.cancel(1) is True
        assert scheduler.has(1) is False
        release.set()
        await asyncio.wait_for(entry.task, timeout=1)

        finished.assert_called_once()


# =============================================================================
# Registry Hygiene
# =============================================================================

class TestRegistry:
    """Tests for cleanup and error handling."""

    @pytest.mark.asyncio
    async def test_old_task_does_not_evict_newer_entry(self, scheduler):
        """A finishing older callback leaves a newer entry in place."""
        release = asyncio.Event()

        async def slow():
            await release.wait()

        old = scheduler.schedule(1, slow, 1)
        await asyncio.sleep(0.02)
        assert old.fired is True

        new = scheduler.schedule(1, MagicMock(), 10_000)
        release.set()
        await asyncio.wait_for(old.task, timeout=1)

        assert scheduler.get(1) is new
        scheduler.cancel(1)

    @pytest.mark.asyncio
    async def test_callback_error_is_logged_and_cleaned(self, scheduler):
        """Exceptions in callbacks are logged, not raised, and the entry goes away."""
        def boom():
            raise RuntimeError("boom")

        with patch("airlock.onboarding.scheduler.logger") as mock_logger:
            entry = scheduler.schedule(1, boom, 1)
            await asyncio.wait_for(entry.task, timeout=1)

        mock_logger.error.assert_called_once()
        assert "Callback Failed" in mock_logger.error.call_args[0][0]
        assert scheduler.has(1) is False

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self, scheduler):
        """shutdown cancels pending timers and empties the registry."""
        callbacks = [MagicMock() for _ in range(3)]
        for subject_id, callback in enumerate(callbacks):
            scheduler.schedule(subject_id, callback, 10_000)

        await scheduler.shutdown()
        await asyncio.sleep(0)

        assert scheduler.pending_count() == 0
        for callback in callbacks:
            callback.assert_not_called()
