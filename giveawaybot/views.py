from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

import discord

from .errors import GiveawayError
from .models import EndReason

if TYPE_CHECKING:
    from .giveaway_manager import GiveawayManager

log = logging.getLogger(__name__)
PERMISSION_LOG = logging.getLogger("giveaway.permissions")

UNEXPECTED_ERROR_MESSAGE = "❌ Something went wrong. Please try again later."


def is_staff(
    member: discord.Member,
    staff_roles: Iterable[int],
    *,
    base_permissions: Optional[discord.Permissions] = None,
) -> bool:
    guild = getattr(member, "guild", None)
    owner_id = getattr(guild, "owner_id", None) if guild is not None else None
    if owner_id is not None and owner_id == member.id:
        PERMISSION_LOG.debug("Member %s is guild owner; treating as staff.", member.id)
        return True

    permissions_obj = base_permissions
    if permissions_obj is None:
        permissions_obj = getattr(member, "guild_permissions", None)
    if permissions_obj and (permissions_obj.administrator or permissions_obj.manage_guild):
        PERMISSION_LOG.debug("Member %s has manage permissions; treating as staff.", member.id)
        return True

    wanted = {int(role_id) for role_id in staff_roles}
    matching = sorted(wanted.intersection(role.id for role in getattr(member, "roles", [])))
    if matching:
        PERMISSION_LOG.debug("Member %s matched staff role(s) %s.", member.id, matching)
        return True

    PERMISSION_LOG.debug(
        "Member %s lacks staff roles %s.", member.id, sorted(wanted)
    )
    return False


class GiveawayView(discord.ui.View):
    def __init__(
        self,
        manager: "GiveawayManager",
        giveaway_id: str,
        *,
        participants: int = 0,
        staff_roles: Iterable[int] = (),
    ) -> None:
        super().__init__(timeout=None)
        self.manager = manager
        self.giveaway_id = giveaway_id
        self.staff_roles = list(staff_roles)

        join_button = discord.ui.Button(
            label=f"Join ({participants})",
            emoji="🎉",
            style=discord.ButtonStyle.success,
            custom_id=f"giveaway:join:{giveaway_id}",
        )
        join_button.callback = self.join_callback  # type: ignore[assignment]
        self.add_item(join_button)

        end_button = discord.ui.Button(
            label="End",
            style=discord.ButtonStyle.danger,
            custom_id=f"giveaway:end:{giveaway_id}",
        )
        end_button.callback = self.end_callback  # type: ignore[assignment]
        self.add_item(end_button)

    async def join_callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message(
                "You can only join giveaways from a guild.", ephemeral=True
            )
            return
        try:
            added = await self.manager.join(self.giveaway_id, interaction.user.id)
        except GiveawayError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except Exception:
            log.exception("Join of giveaway %s by %s failed", self.giveaway_id, interaction.user.id)
            await interaction.response.send_message(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)
            return
        if added:
            await interaction.response.send_message(
                "🎉 You're in! Good luck 🍀", ephemeral=True
            )
        else:
            await interaction.response.send_message(
                "✅ You have already joined this giveaway.", ephemeral=True
            )

    async def end_callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message("Guild members only.", ephemeral=True)
            return
        if not is_staff(
            interaction.user,
            self.staff_roles,
            base_permissions=getattr(interaction, "permissions", None),
        ):
            await interaction.response.send_message(
                "❌ Only staff can end a giveaway.", ephemeral=True
            )
            return
        await interaction.response.send_message("🏁 Ending the giveaway...", ephemeral=True)
        try:
            await self.manager.settle(self.giveaway_id, EndReason.MANUAL)
        except GiveawayError as exc:
            await interaction.followup.send(str(exc), ephemeral=True)
        except Exception:
            log.exception("Ending giveaway %s failed", self.giveaway_id)
            await interaction.followup.send(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)


class CreateGiveawayModal(discord.ui.Modal, title="Create a Giveaway 🎉"):
    giveaway_title = discord.ui.TextInput(
        label="Giveaway title",
        placeholder="e.g. Nitro 1 month",
        max_length=80,
    )
    prize = discord.ui.TextInput(
        label="Prize",
        placeholder="e.g. 1x Nitro / 10€ PayPal / VIP role",
        max_length=120,
    )
    duration = discord.ui.TextInput(
        label="Duration (30m / 2h / 1d)",
        placeholder="30m",
        max_length=10,
    )
    winners = discord.ui.TextInput(
        label="Number of winners (1-20)",
        placeholder="1",
        required=False,
        max_length=3,
    )
    details = discord.ui.TextInput(
        label="Description (optional)",
        style=discord.TextStyle.paragraph,
        required=False,
        max_length=1000,
    )

    def __init__(self, manager: "GiveawayManager", channel_id: int) -> None:
        super().__init__()
        self.manager = manager
        self.channel_id = channel_id

    async def on_submit(self, interaction: discord.Interaction) -> None:
        if not interaction.guild:
            await interaction.response.send_message(
                "This can only be used inside a guild.", ephemeral=True
            )
            return
        await interaction.response.defer(ephemeral=True)
        try:
            record = await self.manager.create(
                interaction.guild.id,
                self.channel_id,
                title=self.giveaway_title.value,
                prize=self.prize.value,
                duration=self.duration.value,
                winner_count=parse_winner_count(self.winners.value),
                description=self.details.value or "",
                created_by=interaction.user.id,
            )
        except GiveawayError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        except Exception:
            log.exception("Creating a giveaway in channel %s failed", self.channel_id)
            await interaction.followup.send(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)
            return
        await interaction.followup.send(
            f"✅ Giveaway created in <#{record.channel_id}>!\n"
            f"Giveaway ID: `{record.id}` • Message ID: `{record.message_id}`",
            ephemeral=True,
        )


def parse_winner_count(raw: Optional[str]) -> int:
    """Lenient winner-count parsing; anything unreadable counts as one winner."""
    try:
        value = int((raw or "").strip() or 1)
    except ValueError:
        return 1
    return value or 1
