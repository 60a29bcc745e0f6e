"""
Airlock - Service Tests
=======================

Session sweeper, health status and the error handler.
"""

import asyncio
from unittest.mock import MagicMock, patch

import discord
import pytest

from airlock.core.config import ConfigValidationError
from airlock.core.health import HealthCheckServer
from airlock.services.maintenance import SessionSweeper
from airlock.utils.error_handler import ErrorHandler


# =============================================================================
# Session Sweeper
# =============================================================================

class TestSessionSweeper:
    """Tests for the background sweep loop."""

    @pytest.mark.asyncio
    async def test_sweeps_expired_sessions(self, sessions, clock):
        """Expired sessions disappear without anyone validating them."""
        sessions.create_session(1)
        clock.advance(60_001)
        sweeper = SessionSweeper(sessions, interval=0.01)

        await sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert sessions.has_session(1) is False
        assert sweeper.task.done()

    @pytest.mark.asyncio
    async def test_survives_errors(self, sessions):
        """A failing pass is logged and the loop keeps going."""
        sweeper = SessionSweeper(sessions, interval=0.01)
        with patch.object(sessions, "sweep_expired", side_effect=RuntimeError("boom")) as mock_sweep, \
             patch("airlock.services.maintenance.logger") as mock_logger:
            await sweeper.start()
            await asyncio.sleep(0.05)
            await sweeper.stop()

        assert mock_sweep.call_count >= 2
        assert mock_logger.error.called

    @pytest.mark.asyncio
    async def test_stop_without_start(self, sessions):
        await SessionSweeper(sessions, interval=1).stop()


# =============================================================================
# Health Check
# =============================================================================

class TestHealthStatus:
    """Tests for the /health payload."""

    def make_bot(self, scheduler, sessions, selections, ready=True):
        bot = MagicMock()
        bot.is_ready.return_value = ready
        bot.guilds = [MagicMock()]
        bot.scheduler = scheduler
        bot.sessions = sessions
        bot.selections = selections
        bot.config.testing = True
        return bot

    @pytest.mark.asyncio
    async def test_counts(self, scheduler, sessions, selections):
        """Counts only, no member ids."""
        sessions.create_session(1)
        selections.set(2, "age", "x")
        scheduler.schedule(3, MagicMock(), 10_000)

        status = HealthCheckServer(self.make_bot(scheduler, sessions, selections)).build_status()
        scheduler.cancel(3)

        assert status["status"] == "healthy"
        assert status["pending_enforcements"] == 1
        assert status["active_sessions"] == 1
        assert status["pending_selections"] == 1
        assert status["mode"] == "testing"

    def test_starting(self, scheduler, sessions, selections):
        bot = self.make_bot(scheduler, sessions, selections, ready=False)
        assert HealthCheckServer(bot).build_status()["status"] == "starting"


# =============================================================================
# Error Handler
# =============================================================================

def http_error(cls, status):
    return cls(MagicMock(status=status, reason="x"), "x")


class TestErrorHandler:
    """Tests for categorization and routing."""

    @pytest.mark.parametrize("error,category", [
        (http_error(discord.Forbidden, 403), "discord"),
        (ConnectionError("down"), "network"),
        (ConfigValidationError("bad"), "config"),
        (ValueError("odd"), "general"),
    ])
    def test_categorize(self, error, category):
        assert ErrorHandler.categorize_error(error) == category

    def test_subclass_gets_specific_suggestion(self):
        """Forbidden gets the permission hint, not the generic HTTP one."""
        suggestion = ErrorHandler.get_recovery_suggestion(http_error(discord.Forbidden, 403))
        assert "permissions" in suggestion

    def test_non_critical_is_warning(self):
        with patch("airlock.utils.error_handler.logger") as mock_logger:
            ErrorHandler.handle(ValueError("odd"), "Onboarding Select", user_id=1)
        mock_logger.warning.assert_called_once()
        details = dict(mock_logger.warning.call_args[0][1])
        assert details["Location"] == "Onboarding Select"
        assert details["Category"] == "general"

    def test_critical_is_stored(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch("airlock.utils.error_handler.logger") as mock_logger:
            ErrorHandler.handle(RuntimeError("fatal"), "Startup", critical=True)
        mock_logger.error.assert_called_once()
        assert list((tmp_path / "logs" / "errors").glob("error_*.json"))


# =============================================================================
# Safe Tasks
# =============================================================================

class TestCreateSafeTask:
    """Tests for fire-and-forget tasks."""

    @pytest.mark.asyncio
    async def test_failure_is_logged(self):
        from airlock.utils.async_utils import create_safe_task

        async def boom():
            raise RuntimeError("send failed")

        with patch("airlock.utils.async_utils.logger") as mock_logger:
            await create_safe_task(boom(), "Audit Embed")

        mock_logger.error.assert_called_once()
        assert ("Task", "Audit Embed") in mock_logger.error.call_args[0][1]
