"""
Airlock - Discord Membership Gateway
====================================

discord.py implementation of the workflow's MembershipGateway port.

DESIGN:
    Facts are always read fresh: fetch_membership() goes to the API rather
    than the member cache, so a gate role removed seconds ago is seen.
    Platform errors are converted into the port's return values (None or
    False) and logged here; the workflow never sees a discord exception
    from this class except where a lookup itself is broken.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

import discord

from airlock.core.config import EmbedColors
from airlock.core.logger import logger
from airlock.onboarding.audit import log_audit_record
from airlock.onboarding.models import ActorPermissions, AuditRecord, Membership, now_ms
from airlock.utils.async_utils import create_safe_task

if TYPE_CHECKING:
    from discord.ext import commands


SEVERITY_COLORS = {
    "error": EmbedColors.LOG_NEGATIVE,
    "warning": EmbedColors.LOG_WARNING,
    "success": EmbedColors.LOG_POSITIVE,
    "info": EmbedColors.LOG_INFO,
}


class DiscordMembershipGateway:
    """
    Reads membership facts from one guild and kicks from it.

    Attributes:
        bot: Connected bot client.
        guild_id: The gated guild.
        audit_channel_id: Optional text channel for audit embeds.
    """

    def __init__(
        self,
        bot: "commands.Bot",
        guild_id: int,
        audit_channel_id: Optional[int] = None,
    ) -> None:
        self.bot = bot
        self.guild_id = guild_id
        self.audit_channel_id = audit_channel_id

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def guild(self) -> Optional[discord.Guild]:
        return self.bot.get_guild(self.guild_id)

    def _require_guild(self) -> discord.Guild:
        guild = self.guild
        if guild is None:
            raise RuntimeError(f"Guild {self.guild_id} is not available")
        return guild

    @staticmethod
    def to_membership(member: discord.Member) -> Membership:
        joined_at = member.joined_at
        return Membership(
            subject_id=member.id,
            roles=frozenset(role.id for role in member.roles),
            joined_at=int(joined_at.timestamp() * 1000) if joined_at else now_ms(),
        )

    # =========================================================================
    # MembershipGateway
    # =========================================================================

    async def fetch_membership(self, subject_id: int) -> Optional[Membership]:
        guild = self.guild
        if guild is None:
            return None
        try:
            member = await guild.fetch_member(subject_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as e:
            logger.debug("Member Fetch Failed", [
                ("User ID", str(subject_id)),
                ("Status", str(e.status)),
            ])
            return None
        return self.to_membership(member)

    async def actor_permissions(self) -> ActorPermissions:
        me = self._require_guild().me
        return ActorPermissions(
            can_revoke=me.guild_permissions.kick_members,
            top_role_position=me.top_role.position,
        )

    async def role_position(self, role_id: int) -> Optional[int]:
        role = self._require_guild().get_role(role_id)
        return role.position if role else None

    async def revoke(self, subject_id: int, reason: str) -> bool:
        guild = self.guild
        if guild is None:
            return False
        try:
            await guild.kick(discord.Object(id=subject_id), reason=reason)
            return True
        except discord.Forbidden:
            logger.warning("Onboarding Kick Forbidden", [
                ("User ID", str(subject_id)),
                ("Guild", str(self.guild_id)),
            ])
            return False
        except discord.HTTPException as e:
            logger.error("Onboarding Kick Failed", [
                ("User ID", str(subject_id)),
                ("Status", str(e.status)),
                ("Error", str(e)[:100]),
            ])
            return False

    def emit_audit(self, record: AuditRecord) -> None:
        log_audit_record(record)
        self.post_embed(self.build_audit_embed(record), "Onboarding Audit Embed")

    # =========================================================================
    # Audit Channel
    # =========================================================================

    def build_audit_embed(self, record: AuditRecord) -> discord.Embed:
        embed = discord.Embed(
            title=f"Onboarding: {record.title}",
            description=f"<@{record.subject_id}> ({record.subject_id})\n{record.summary}",
            color=SEVERITY_COLORS.get(record.severity, EmbedColors.LOG_INFO),
            timestamp=datetime.fromtimestamp(record.timestamp / 1000).astimezone(),
        )
        for name, value in record.fields:
            embed.add_field(name=name, value=value or "-", inline=True)
        return embed

    def post_embed(self, embed: discord.Embed, name: str = "Audit Embed") -> bool:
        """
        Send an embed to the audit channel without waiting for it.

        Returns:
            True if a send was scheduled.
        """
        if not self.audit_channel_id:
            return False
        channel = self.bot.get_channel(self.audit_channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return False
        create_safe_task(channel.send(embed=embed), name)
        return True


__all__ = ["DiscordMembershipGateway", "SEVERITY_COLORS"]
