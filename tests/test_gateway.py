"""
Airlock - Discord Gateway Tests
===============================

DiscordMembershipGateway against mocked discord.py objects.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from airlock.core.config import EmbedColors
from airlock.onboarding.audit import build_audit_record
from airlock.onboarding.models import EnforcementDecision, Outcome, Stage
from airlock.services.gateway import DiscordMembershipGateway

from conftest import GATE_ROLE_ID, START_MS


GUILD_ID = 1000
AUDIT_CHANNEL_ID = 3000


def http_error(cls, status, reason):
    return cls(MagicMock(status=status, reason=reason), reason)


@pytest.fixture
def guild():
    guild = MagicMock()
    guild.fetch_member = AsyncMock()
    guild.kick = AsyncMock()
    guild.me.guild_permissions.kick_members = True
    guild.me.top_role.position = 50
    return guild


@pytest.fixture
def bot(guild):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    return bot


@pytest.fixture
def discord_gateway(bot):
    return DiscordMembershipGateway(bot, GUILD_ID, AUDIT_CHANNEL_ID)


def make_member(member_id=111, role_ids=(GATE_ROLE_ID,)):
    member = MagicMock()
    member.id = member_id
    member.roles = [MagicMock(id=rid) for rid in role_ids]
    member.joined_at = datetime.fromtimestamp(START_MS / 1000, timezone.utc)
    return member


# =============================================================================
# Membership
# =============================================================================

class TestFetchMembership:
    """Tests for fetch_membership."""

    @pytest.mark.asyncio
    async def test_converts_member(self, discord_gateway, guild):
        guild.fetch_member.return_value = make_member(role_ids=(GATE_ROLE_ID, 7))

        membership = await discord_gateway.fetch_membership(111)

        assert membership.subject_id == 111
        assert membership.roles == frozenset({GATE_ROLE_ID, 7})
        assert membership.joined_at == START_MS

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, discord_gateway, guild):
        """A member who left reads as absent."""
        guild.fetch_member.side_effect = http_error(discord.NotFound, 404, "Unknown Member")
        assert await discord_gateway.fetch_membership(111) is None

    @pytest.mark.asyncio
    async def test_http_error_is_none(self, discord_gateway, guild):
        guild.fetch_member.side_effect = http_error(discord.HTTPException, 500, "Server Error")
        assert await discord_gateway.fetch_membership(111) is None

    @pytest.mark.asyncio
    async def test_missing_guild_is_none(self, discord_gateway, bot):
        bot.get_guild.return_value = None
        assert await discord_gateway.fetch_membership(111) is None


class TestAuthority:
    """Tests for permission and hierarchy lookups."""

    @pytest.mark.asyncio
    async def test_actor_permissions(self, discord_gateway):
        actor = await discord_gateway.actor_permissions()
        assert actor.can_revoke is True
        assert actor.top_role_position == 50

    @pytest.mark.asyncio
    async def test_actor_permissions_without_guild(self, discord_gateway, bot):
        """A broken lookup raises so the workflow treats it as no authority."""
        bot.get_guild.return_value = None
        with pytest.raises(RuntimeError):
            await discord_gateway.actor_permissions()

    @pytest.mark.asyncio
    async def test_role_position(self, discord_gateway, guild):
        guild.get_role.return_value = MagicMock(position=12)
        assert await discord_gateway.role_position(GATE_ROLE_ID) == 12

        guild.get_role.return_value = None
        assert await discord_gateway.role_position(GATE_ROLE_ID) is None


# =============================================================================
# Revoke
# =============================================================================

class TestRevoke:
    """Tests for kicking."""

    @pytest.mark.asyncio
    async def test_success(self, discord_gateway, guild):
        assert await discord_gateway.revoke(111, "reason") is True
        args, kwargs = guild.kick.call_args
        assert args[0].id == 111
        assert kwargs["reason"] == "reason"

    @pytest.mark.asyncio
    async def test_forbidden_is_false(self, discord_gateway, guild):
        guild.kick.side_effect = http_error(discord.Forbidden, 403, "Missing Permissions")
        assert await discord_gateway.revoke(111, "reason") is False

    @pytest.mark.asyncio
    async def test_http_error_is_false(self, discord_gateway, guild):
        guild.kick.side_effect = http_error(discord.HTTPException, 500, "Server Error")
        assert await discord_gateway.revoke(111, "reason") is False


# =============================================================================
# Audit
# =============================================================================

class TestAudit:
    """Tests for audit embeds."""

    def record(self, outcome=Outcome.REVOKED):
        return build_audit_record(EnforcementDecision(
            subject_id=111, stage=Stage.RE_EVALUATING, outcome=outcome, evaluated_at=START_MS,
        ))

    def test_embed_color_follows_severity(self, discord_gateway):
        embed = discord_gateway.build_audit_embed(self.record(Outcome.REVOKE_FAILED))
        assert embed.color.value == EmbedColors.LOG_NEGATIVE
        assert embed.title == "Onboarding: Kick Failed"
        assert "<@111>" in embed.description

    def test_post_embed_sends_to_channel(self, discord_gateway, bot):
        bot.get_channel.return_value = MagicMock(spec=discord.TextChannel)
        with patch("airlock.services.gateway.create_safe_task") as mock_task:
            assert discord_gateway.post_embed(discord.Embed(title="x")) is True
        mock_task.assert_called_once()

    def test_post_embed_uses_audit_channel(self, discord_gateway, bot):
        """The third constructor argument is the audit channel."""
        bot.get_channel.return_value = MagicMock(spec=discord.TextChannel)
        with patch("airlock.services.gateway.create_safe_task"):
            discord_gateway.post_embed(discord.Embed(title="x"))
        bot.get_channel.assert_called_once_with(AUDIT_CHANNEL_ID)

    def test_post_embed_without_audit_channel(self, bot):
        assert DiscordMembershipGateway(bot, GUILD_ID).post_embed(discord.Embed(title="x")) is False
        bot.get_channel.assert_not_called()

    def test_post_embed_without_channel(self, discord_gateway, bot):
        bot.get_channel.return_value = None
        assert discord_gateway.post_embed(discord.Embed(title="x")) is False

    def test_emit_audit_logs_and_posts(self, discord_gateway):
        with patch("airlock.services.gateway.log_audit_record") as mock_log, \
             patch.object(discord_gateway, "post_embed") as mock_post:
            discord_gateway.emit_audit(self.record())
        mock_log.assert_called_once()
        mock_post.assert_called_once()
