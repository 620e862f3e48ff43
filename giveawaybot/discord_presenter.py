"""Discord implementation of the giveaway display boundary."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

import discord

from .presenter import MessageContent, Presenter
from .views import GiveawayView

if TYPE_CHECKING:
    from .giveaway_manager import GiveawayManager

log = logging.getLogger(__name__)

LOG_COLORS = {
    "giveaway.created": 0x57F287,
    "giveaway.joined": 0x5865F2,
    "giveaway.ended": 0xFEE75C,
    "giveaway.rerolled": 0xEB459E,
    "giveaway.cancelled": 0xED4245,
}


class DiscordPresenter(Presenter):
    def __init__(
        self,
        bot: discord.Client,
        *,
        logger_channel_id: Optional[int] = None,
        staff_roles: Iterable[int] = (),
    ) -> None:
        self.bot = bot
        self.logger_channel_id = logger_channel_id
        self.staff_roles = list(staff_roles)
        self.manager: Optional["GiveawayManager"] = None

    def bind(self, manager: "GiveawayManager") -> None:
        """Attach the manager that button callbacks should talk to."""
        self.manager = manager

    async def resolve_channel(
        self, guild_id: int, channel_id: int
    ) -> Optional[discord.TextChannel]:
        channel = self.bot.get_channel(channel_id)
        if not isinstance(channel, discord.TextChannel):
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden, discord.HTTPException):
                return None
        if not isinstance(channel, discord.TextChannel) or channel.guild.id != guild_id:
            return None
        return channel

    async def send_message(
        self, channel: discord.TextChannel, content: MessageContent
    ) -> int:
        message = await channel.send(**self._message_kwargs(content))
        return message.id

    async def edit_message(
        self, channel: discord.TextChannel, message_id: int, content: MessageContent
    ) -> bool:
        kwargs = self._message_kwargs(content)
        kwargs.setdefault("content", None)
        kwargs.setdefault("embed", None)
        kwargs.setdefault("view", None)
        try:
            await channel.get_partial_message(message_id).edit(**kwargs)
        except (discord.NotFound, discord.Forbidden, discord.HTTPException) as exc:
            log.warning("Failed to edit message %s in %s: %s", message_id, channel.id, exc)
            return False
        return True

    async def delete_message(self, channel: discord.TextChannel, message_id: int) -> bool:
        try:
            await channel.get_partial_message(message_id).delete()
        except (discord.NotFound, discord.Forbidden, discord.HTTPException) as exc:
            log.warning("Failed to delete message %s in %s: %s", message_id, channel.id, exc)
            return False
        return True

    async def announce(
        self,
        channel: discord.TextChannel,
        winners: Sequence[int],
        content: MessageContent,
    ) -> None:
        kwargs = self._message_kwargs(content)
        kwargs["allowed_mentions"] = discord.AllowedMentions(
            users=[discord.Object(user_id) for user_id in winners],
            everyone=False,
            roles=False,
        )
        try:
            await channel.send(**kwargs)
        except discord.HTTPException as exc:
            log.warning("Failed to announce winners in %s: %s", channel.id, exc)

    async def log_event(
        self, guild_id: int, category: str, fields: Mapping[str, Any]
    ) -> None:
        log.info("[%s] guild=%s %s", category, guild_id, dict(fields))
        if not self.logger_channel_id:
            return
        channel = await self.resolve_channel(guild_id, self.logger_channel_id)
        if channel is None:
            return
        embed = discord.Embed(
            title=category.replace(".", " ").title(),
            color=LOG_COLORS.get(category, 0x2B2D31),
            timestamp=discord.utils.utcnow(),
        )
        for name, value in fields.items():
            if value is None or value == []:
                continue
            embed.add_field(name=name, value=_format_field(name, value)[:1024], inline=True)
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as exc:
            log.warning("Failed to send log message to %s: %s", self.logger_channel_id, exc)

    def build_view(self, giveaway_id: str, participants: int = 0) -> GiveawayView:
        if self.manager is None:
            raise RuntimeError("DiscordPresenter.bind() must be called before use.")
        return GiveawayView(
            self.manager,
            giveaway_id,
            participants=participants,
            staff_roles=self.staff_roles,
        )

    def _message_kwargs(self, content: MessageContent) -> dict:
        kwargs: dict = {}
        if content.text is not None:
            kwargs["content"] = content.text
        if content.has_embed:
            embed = discord.Embed(
                title=content.title,
                description=content.description,
                color=content.color,
                timestamp=discord.utils.utcnow(),
            )
            if content.footer:
                embed.set_footer(text=content.footer)
            if content.image_url:
                embed.set_image(url=content.image_url)
            kwargs["embed"] = embed
        if content.giveaway_id is not None:
            kwargs["view"] = self.build_view(content.giveaway_id, content.participant_count)
        return kwargs


def _format_field(name: str, value: Any) -> str:
    if name in ("user_id", "actor_id", "created_by"):
        return f"<@{value}>"
    if name == "channel_id":
        return f"<#{value}>"
    if name == "winners" and isinstance(value, list):
        return ", ".join(f"<@{user_id}>" for user_id in value)
    if name == "end_at":
        return f"<t:{int(value) // 1000}:F> • <t:{int(value) // 1000}:R>"
    if name in ("giveaway_id", "message_id"):
        return f"`{value}`"
    return str(value)
