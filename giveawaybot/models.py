"""Data models used for giveaway persistence and runtime state."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Iterable, List, Optional


def now_ms() -> int:
    """Return the current instant as milliseconds since the epoch."""
    return int(datetime.now(tz=UTC).timestamp() * 1000)


class EndReason(str, enum.Enum):
    TIME = "time"
    MANUAL = "manual"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class RerollEntry:
    """Audit entry for a post-settlement re-draw."""
    at: int
    actor_id: Optional[int]
    winners: List[int] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "at": self.at,
            "actor_id": self.actor_id,
            "winners": self.winners,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "RerollEntry":
        actor_id = payload.get("actor_id")
        return cls(
            at=int(payload["at"]),
            actor_id=int(actor_id) if actor_id is not None else None,
            winners=list(map(int, payload.get("winners", []))),
        )


@dataclass(slots=True)
class GiveawayRecord:
    """A single giveaway along with its participants, result and reroll history."""
    id: str
    guild_id: int
    channel_id: int
    message_id: Optional[int]
    title: str
    prize: str
    winner_count: int
    created_at: int
    end_at: int
    description: str = ""
    created_by: Optional[int] = None
    participants: List[int] = field(default_factory=list)
    ended: bool = False
    end_reason: Optional[EndReason] = None
    ended_at: Optional[int] = None
    winner_ids: List[int] = field(default_factory=list)
    rerolls: List[RerollEntry] = field(default_factory=list)

    def add_participant(self, user_id: int) -> bool:
        """Add a participant if they are not already in the list."""
        if user_id in self.participants:
            return False
        self.participants.append(user_id)
        return True

    def candidate_pool(self) -> List[int]:
        """Participants without duplicates, in join order."""
        return list(dict.fromkeys(self.participants))

    def previous_winners(self) -> set[int]:
        """Everyone announced as a winner so far, rerolls included."""
        announced = set(self.winner_ids)
        for entry in self.rerolls:
            announced.update(entry.winners)
        return announced

    def mark_ended(
        self, reason: EndReason, winners: Iterable[int], *, at: int
    ) -> None:
        self.ended = True
        self.end_reason = reason
        self.ended_at = at
        self.winner_ids = list(winners)

    def to_payload(self) -> dict:
        """Serialize the giveaway to a JSON-serialisable structure."""
        return {
            "id": self.id,
            "guild_id": self.guild_id,
            "channel_id": self.channel_id,
            "message_id": self.message_id,
            "title": self.title,
            "prize": self.prize,
            "description": self.description,
            "winner_count": self.winner_count,
            "created_at": self.created_at,
            "end_at": self.end_at,
            "created_by": self.created_by,
            "participants": self.participants,
            "ended": self.ended,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "ended_at": self.ended_at,
            "winner_ids": self.winner_ids,
            "rerolls": [entry.to_payload() for entry in self.rerolls],
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "GiveawayRecord":
        """Reconstruct a GiveawayRecord from serialized payload data."""
        message_id = payload.get("message_id")
        created_by = payload.get("created_by")
        end_reason = payload.get("end_reason")
        ended_at = payload.get("ended_at")
        return cls(
            id=str(payload["id"]),
            guild_id=int(payload["guild_id"]),
            channel_id=int(payload["channel_id"]),
            message_id=int(message_id) if message_id is not None else None,
            title=str(payload["title"]),
            prize=str(payload["prize"]),
            description=str(payload.get("description") or ""),
            winner_count=int(payload["winner_count"]),
            created_at=int(payload["created_at"]),
            end_at=int(payload["end_at"]),
            created_by=int(created_by) if created_by is not None else None,
            participants=list(dict.fromkeys(map(int, payload.get("participants", [])))),
            ended=bool(payload.get("ended", False)),
            end_reason=EndReason(end_reason) if end_reason else None,
            ended_at=int(ended_at) if ended_at is not None else None,
            winner_ids=list(map(int, payload.get("winner_ids", []))),
            rerolls=[RerollEntry.from_payload(r) for r in payload.get("rerolls", [])],
        )
