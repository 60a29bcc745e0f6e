"""
Airlock - Onboarding Panel
==========================

The persistent panel new members use: one select per category, a Finish
button and the captcha modal.

DESIGN:
    Selects and the Finish button are DynamicItems, so the panel keeps
    working after a restart without re-posting it. Custom IDs:

        onboarding_select:<selection key>   one per category
        onboarding_finish                   opens the captcha modal
        captcha_modal                       the modal itself

    Every decision goes through bot.verification; this module only moves
    roles, sends replies and posts audit embeds.
"""

import random
from typing import TYPE_CHECKING, Iterable, List, Optional

import discord

from airlock.core.config import EmbedColors
from airlock.core.logger import logger
from airlock.onboarding.categories import OnboardingCategory, find_category
from airlock.onboarding.models import SelectionSnapshot, SessionFailure
from airlock.utils.async_utils import create_safe_task
from airlock.utils.error_handler import ErrorHandler

if TYPE_CHECKING:
    from airlock.bot import AirlockBot


GENERIC_ERROR = "There was an error while processing your interaction!"

WELCOME_MESSAGES = [
    "Welcome {mention}! Love the name, it's got character. Glad you made it.",
    "Welcome {mention}! We already think your username is awesome. Make yourself at home.",
    "Hey {mention}, welcome aboard. That name is unforgettable in the best way.",
    "Welcome {mention}! Quiet arrival? That's cool, lurkers welcome too.",
    "Welcome {mention}! No intro required, but we'd love to hear what you're into when you're ready.",
    "Welcome {mention}! Pop in when you feel like it, we're chill.",
    "Welcome {mention}! Your join made the server a little cooler already.",
]


# =============================================================================
# Helpers
# =============================================================================

def _label(value) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("label") or value.get("key")
    return str(value) if value else None


def selection_summary(snapshot: SelectionSnapshot, categories: Iterable[OnboardingCategory]) -> str:
    """One `Name: **Label**` line per answered category."""
    lines = []
    for category in categories:
        label = _label(snapshot.get(category.key))
        if label:
            lines.append(f"{category.name}: **{label}**")
    return "\n".join(lines)


def build_panel_embed(categories: Iterable[OnboardingCategory], expiration_ms: int) -> discord.Embed:
    minutes = max(expiration_ms // 60_000, 1)
    embed = discord.Embed(
        title="Welcome to the Server!",
        description="\n".join([
            "Select your roles from the menus below to help us get to know you better.",
            "When you're ready, hit **Finish & Join** to receive a one-time verification code (visible only to you).",
            "",
            "If something goes wrong or the captcha expires, you can click **Finish** again to get a fresh code.",
        ]),
        color=EmbedColors.PANEL,
    )
    for category in categories:
        embed.add_field(
            name=f"{category.emoji or ''} {category.name}".strip(),
            value=category.description,
            inline=True,
        )
    embed.set_footer(text=f"Captcha expires in {minutes} minute{'s' if minutes != 1 else ''}.")
    return embed


async def _reply(interaction: discord.Interaction, content: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=True)
    else:
        await interaction.response.send_message(content, ephemeral=True)


async def _report_error(interaction: discord.Interaction, error: Exception, location: str) -> None:
    ErrorHandler.handle(error, location=location, interaction=interaction)
    try:
        await _reply(interaction, GENERIC_ERROR)
    except discord.HTTPException as e:
        logger.debug("Error Reply Failed", [("Error", str(e)[:100])])


# =============================================================================
# Category Select
# =============================================================================

class OnboardingSelect(discord.ui.DynamicItem[discord.ui.Select], template=r"onboarding_select:(?P<category>\w+)"):
    """Persistent single-choice select for one onboarding category."""

    def __init__(self, slug: str, category: Optional[OnboardingCategory] = None):
        if category is not None:
            options = [
                discord.SelectOption(label=role.name, value=role.key, emoji=role.emoji)
                for role in category.roles
            ]
            placeholder = f"Select your {category.name.lower()}"
        else:
            options = [discord.SelectOption(label="Unavailable", value="unavailable")]
            placeholder = "Unavailable"

        super().__init__(
            discord.ui.Select(
                custom_id=f"onboarding_select:{slug}",
                placeholder=placeholder,
                min_values=1,
                max_values=1,
                options=options,
            )
        )
        self.slug = slug
        self.category = category

    @classmethod
    def for_category(cls, category: OnboardingCategory) -> "OnboardingSelect":
        return cls(category.key, category)

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Select,
        match,
    ) -> "OnboardingSelect":
        slug = match.group("category")
        return cls(slug, find_category(interaction.client.categories, slug))

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            await self._handle(interaction)
        except Exception as e:
            await _report_error(interaction, e, "OnboardingSelect.callback")

    async def _handle(self, interaction: discord.Interaction) -> None:
        bot: "AirlockBot" = interaction.client
        category = self.category
        if category is None:
            await _reply(interaction, "⚠️ This selection is not configured yet. Please notify an administrator.")
            return

        selected = self.item.values[0] if self.item.values else None
        option = category.find_role(selected) if selected else None
        if option is None:
            await _reply(interaction, "⚠️ Unknown selection. Please try again.")
            return

        guild = interaction.guild
        if guild is None or guild.get_role(option.id) is None:
            await _reply(interaction, "⚠️ The configured role could not be found in this server. Please notify an administrator.")
            return

        member = interaction.user
        if not isinstance(member, discord.Member):
            member = await guild.fetch_member(interaction.user.id)

        siblings = set(category.sibling_role_ids(option.id))
        to_remove = [role for role in member.roles if role.id in siblings]
        try:
            if to_remove:
                await member.remove_roles(*to_remove, reason=f"Onboarding: {category.name} changed")
            if all(role.id != option.id for role in member.roles):
                await member.add_roles(discord.Object(id=option.id), reason=f"Onboarding: {category.name} selected")
        except discord.HTTPException as e:
            logger.error("Onboarding Role Update Failed", [
                ("User", f"{member} ({member.id})"),
                ("Category", category.name),
                ("Error", str(e)[:100]),
            ])
            await _reply(interaction, "⚠️ I could not update your roles. Please contact a moderator.")
            return

        bot.verification.record_selection(member.id, category.key, option.as_selection())
        await interaction.response.defer()


# =============================================================================
# Finish Button
# =============================================================================

class OnboardingFinishButton(discord.ui.DynamicItem[discord.ui.Button], template=r"onboarding_finish"):
    """Persistent button that issues a captcha code."""

    def __init__(self):
        super().__init__(
            discord.ui.Button(
                label="Finish & Join",
                style=discord.ButtonStyle.success,
                custom_id="onboarding_finish",
            )
        )

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,
        item: discord.ui.Button,
        match,
    ) -> "OnboardingFinishButton":
        return cls()

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            bot: "AirlockBot" = interaction.client
            member = interaction.user
            role_ids = [role.id for role in getattr(member, "roles", [])]

            result = bot.verification.begin(member.id, role_ids)
            if not result.ready:
                await _reply(interaction, f"⚠️ Please select your {result.missing.name.lower()} before finishing.")
                return

            await interaction.response.send_modal(CaptchaModal(result.session.code))
        except Exception as e:
            await _report_error(interaction, e, "OnboardingFinishButton.callback")


# =============================================================================
# Captcha Modal
# =============================================================================

class CaptchaModal(discord.ui.Modal, title="Captcha Verification"):
    """Shows the code in the field label and checks what the member types."""

    def __init__(self, code: str):
        super().__init__(custom_id="captcha_modal")
        self.captcha = discord.ui.TextInput(
            label=f"Enter captcha: {code}",
            style=discord.TextStyle.short,
            placeholder="Type the code shown above",
            required=True,
            min_length=1,
            max_length=16,
            custom_id="captchaInput",
        )
        self.add_item(self.captcha)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        bot: "AirlockBot" = interaction.client
        user = interaction.user
        submitted = self.captcha.value

        result = bot.verification.submit(user.id, submitted)
        if not result.success:
            reason = result.validation.reason
            self._post_failure(bot, user, reason, submitted)
            await _reply(interaction, f"❌ {bot.verification.failure_message(reason)}")
            return

        meta = result.validation.meta or {}
        gate_removed = await self._remove_gate_role(bot, interaction)
        self._post_success(bot, user, meta, gate_removed, result.kick_cancelled)
        self._send_welcome(bot, user)

        summary = selection_summary(meta, bot.categories)
        await _reply(interaction, f"✅ Captcha complete! Welcome aboard!\n{summary}".rstrip())

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await _report_error(interaction, error, "CaptchaModal.on_submit")

    # -------------------------------------------------------------------------
    # Success Side Effects
    # -------------------------------------------------------------------------

    @staticmethod
    async def _remove_gate_role(bot: "AirlockBot", interaction: discord.Interaction) -> bool:
        member = interaction.user
        if not isinstance(member, discord.Member):
            return False
        gate_role_id = bot.config.gate_role_id
        if all(role.id != gate_role_id for role in member.roles):
            return True
        try:
            await member.remove_roles(discord.Object(id=gate_role_id), reason="Onboarding captcha completed")
            return True
        except discord.HTTPException as e:
            logger.error("Gate Role Removal Failed", [
                ("User", f"{member} ({member.id})"),
                ("Role ID", str(gate_role_id)),
                ("Error", str(e)[:100]),
            ])
            return False

    @staticmethod
    def _send_welcome(bot: "AirlockBot", user: discord.abc.User) -> None:
        channel_id = bot.config.welcome_channel_id
        if not channel_id:
            return
        channel = bot.get_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            return
        message = random.choice(WELCOME_MESSAGES).format(mention=user.mention)
        create_safe_task(channel.send(message), "Welcome Message")

    @staticmethod
    def _post_success(bot: "AirlockBot", user: discord.abc.User, meta: SelectionSnapshot, gate_removed: bool, cancelled: bool) -> None:
        embed = discord.Embed(
            title="Onboarding Completed",
            description=f"{user.mention} ({user.id}) completed onboarding and passed captcha.",
            color=EmbedColors.LOG_POSITIVE,
            timestamp=discord.utils.utcnow(),
        )
        for category in bot.categories:
            embed.add_field(name=category.name, value=_label(meta.get(category.key)) or "-", inline=True)
        embed.add_field(name="Gate Role Removed", value="Yes" if gate_removed else "No", inline=True)
        embed.add_field(name="Scheduled Kick", value="Cancelled" if cancelled else "None pending", inline=True)
        bot.gateway.post_embed(embed, "Onboarding Success Embed")

    # -------------------------------------------------------------------------
    # Failure Side Effects
    # -------------------------------------------------------------------------

    @staticmethod
    def _post_failure(bot: "AirlockBot", user: discord.abc.User, reason: Optional[SessionFailure], submitted: str) -> None:
        selections = bot.verification.selections.get(user.id)
        lines: List[str] = [
            f"{key}: {_label(value)}" for key, value in selections.items() if value
        ]

        if reason is SessionFailure.MISSING:
            title = "Missing Captcha Session"
        else:
            title = "Failed Captcha Attempt"

        embed = discord.Embed(
            title=title,
            description=f"{user.mention} ({user.id})",
            color=EmbedColors.LOG_WARNING,
            timestamp=discord.utils.utcnow(),
        )
        embed.add_field(name="Reason", value=reason.value if reason else "unknown", inline=True)
        if reason is SessionFailure.MISMATCH:
            embed.add_field(name="Provided Value", value=f"`{submitted or '(no input)'}`"[:1024], inline=True)
        embed.add_field(name="Selections", value="\n".join(lines) or "No selections", inline=False)
        bot.gateway.post_embed(embed, "Onboarding Failure Embed")


# =============================================================================
# Panel View
# =============================================================================

class OnboardingPanelView(discord.ui.View):
    """The view posted under the panel embed."""

    def __init__(self, categories: Iterable[OnboardingCategory]):
        super().__init__(timeout=None)
        for category in categories:
            self.add_item(OnboardingSelect.for_category(category))
        self.add_item(OnboardingFinishButton())


def setup_onboarding_views(bot: "AirlockBot") -> None:
    """Register the panel's dynamic items. Call this on bot startup."""
    bot.add_dynamic_items(OnboardingSelect, OnboardingFinishButton)


__all__ = [
    "CaptchaModal",
    "OnboardingFinishButton",
    "OnboardingPanelView",
    "OnboardingSelect",
    "build_panel_embed",
    "selection_summary",
    "setup_onboarding_views",
]
