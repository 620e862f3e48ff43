"""Boundary between the giveaway core and whatever displays it.

The core never talks to Discord directly. It renders records into
:class:`MessageContent` and hands them to a :class:`Presenter`.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from .models import GiveawayRecord

COLOR_ACTIVE = 0x5865F2
COLOR_FINISHED = 0x2B2D31
COLOR_WINNER = 0xF1C40F
COLOR_CANCELLED = 0xED4245


@dataclass(slots=True)
class MessageContent:
    """Platform-neutral description of a message."""
    text: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    footer: Optional[str] = None
    color: Optional[int] = None
    image_url: Optional[str] = None
    # When set, the message carries the join/end controls for this giveaway.
    giveaway_id: Optional[str] = None
    participant_count: int = 0

    @property
    def has_embed(self) -> bool:
        return self.title is not None or self.description is not None


class Presenter(abc.ABC):
    """Calls the core makes into the display layer."""

    @abc.abstractmethod
    async def resolve_channel(self, guild_id: int, channel_id: int) -> Optional[Any]:
        """Return a channel handle or ``None`` when it cannot be reached."""

    @abc.abstractmethod
    async def send_message(self, channel: Any, content: MessageContent) -> int:
        """Post ``content`` and return the new message id."""

    @abc.abstractmethod
    async def edit_message(
        self, channel: Any, message_id: int, content: MessageContent
    ) -> bool:
        """Replace a message's content; ``False`` when the edit failed."""

    @abc.abstractmethod
    async def delete_message(self, channel: Any, message_id: int) -> bool:
        """Remove a message; ``False`` when it could not be removed."""

    @abc.abstractmethod
    async def announce(
        self, channel: Any, winners: Sequence[int], content: MessageContent
    ) -> None:
        """Post a result message that pings ``winners``."""

    @abc.abstractmethod
    async def log_event(
        self, guild_id: int, category: str, fields: Mapping[str, Any]
    ) -> None:
        """Append a record to the guild's giveaway log."""


def progress_bar(end_at: int, created_at: int, now: int, width: int = 12) -> str:
    total = max(1, end_at - created_at)
    done = min(total, max(0, now - created_at))
    filled = max(0, min(width, round(done / total * width)))
    return "▰" * filled + "▱" * (width - filled)


def mentions(user_ids: Sequence[int]) -> str:
    return ", ".join(f"<@{user_id}>" for user_id in user_ids)


def render_active(
    record: GiveawayRecord, now: int, *, refresh_seconds: int = 60
) -> MessageContent:
    header = f"{record.description}\n\n" if record.description else ""
    description = (
        f"{header}"
        f"**🎁 Prize:** {record.prize}\n"
        f"**👥 Winners:** {record.winner_count}\n"
        f"**⏳ Ends:** <t:{record.end_at // 1000}:R>\n"
        f"**📊 Progress:** {progress_bar(record.end_at, record.created_at, now)}\n\n"
        f"Press **Join** to enter!\n\n"
        f"_⟳ Refreshes every {refresh_seconds}s_"
    )
    return MessageContent(
        title=f"🎉 GIVEAWAY — {record.title}",
        description=description,
        footer=f"ID: {record.id}",
        color=COLOR_ACTIVE,
        giveaway_id=record.id,
        participant_count=len(record.participants),
    )


def render_result(record: GiveawayRecord) -> MessageContent:
    if record.winner_ids:
        winners_line = f"**🏆 Winner(s):** {mentions(record.winner_ids)}"
    else:
        winners_line = "**🏆 Winner(s):** None (nobody entered)"
    return MessageContent(
        title=f"🏁 GIVEAWAY ENDED — {record.title}",
        description=(
            f"**🎁 Prize:** {record.prize}\n"
            f"**👥 Participants:** {len(record.candidate_pool())}\n"
            f"{winners_line}"
        ),
        footer=f"ID: {record.id}",
        color=COLOR_FINISHED,
    )


def render_winners(
    record: GiveawayRecord, winners: Sequence[int], *, image_url: Optional[str] = None
) -> MessageContent:
    return MessageContent(
        text=mentions(winners),
        title="🏆 W I N N E R 🏆",
        description=(
            "🎊🎊🎊 **CONGRATULATIONS!** 🎊🎊🎊\n\n"
            f"**Winner(s):** {mentions(winners)}\n"
            f"**Prize:** **{record.prize}**"
        ),
        footer=f"Giveaway: {record.title}",
        color=COLOR_WINNER,
        image_url=image_url,
    )


def render_no_participants(record: GiveawayRecord) -> MessageContent:
    return MessageContent(text=f"😢 Nobody entered the giveaway **{record.title}**.")


def render_reroll(record: GiveawayRecord, winners: Sequence[int]) -> MessageContent:
    return MessageContent(
        text=f"🎲 **REROLL** ({record.title}) — New winner(s): {mentions(winners)} 🎉"
    )


def render_cancelled(record: GiveawayRecord) -> MessageContent:
    return MessageContent(text=f"❌ **Giveaway {record.title} was cancelled by staff.**")
