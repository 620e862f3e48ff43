from __future__ import annotations

import logging
import random
import re
import secrets
from typing import Any, Awaitable, Callable, List, Optional, Union

from .errors import AlreadyEnded, InvalidInput, NoParticipants, NotFound, NotYetEnded
from .models import EndReason, GiveawayRecord, RerollEntry, now_ms
from .presenter import (
    MessageContent,
    Presenter,
    render_active,
    render_cancelled,
    render_no_participants,
    render_reroll,
    render_result,
    render_winners,
)
from .sampler import sample
from .storage import GiveawayStore
from .timers import TimerOrchestrator

log = logging.getLogger(__name__)

MIN_WINNERS = 1
MAX_WINNERS = 20

DURATION_RE = re.compile(r"^(\d+)\s*([smhd])$")
DURATION_UNITS_MS = {
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(value: Optional[str]) -> int:
    """Parse ``30s`` / ``10m`` / ``2h`` / ``1d`` into milliseconds."""
    match = DURATION_RE.match(str(value or "").strip().lower())
    if not match:
        raise InvalidInput(
            "Invalid duration. Use a format like `30m`, `2h` or `1d`."
        )
    duration = int(match.group(1)) * DURATION_UNITS_MS[match.group(2)]
    if duration <= 0:
        raise InvalidInput("Duration must be greater than zero.")
    return duration


def clamp_winner_count(value: Union[int, str]) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("The number of winners must be a whole number.") from exc
    return max(MIN_WINNERS, min(MAX_WINNERS, count))


class GiveawayManager:
    """Coordinates giveaway lifecycle, persistence, timers and display updates."""

    def __init__(
        self,
        store: GiveawayStore,
        presenter: Presenter,
        *,
        timers: Optional[TimerOrchestrator] = None,
        clock: Callable[[], int] = now_ms,
        rng: Optional[random.Random] = None,
        winner_gif_url: Optional[str] = None,
    ) -> None:
        self.store = store
        self.presenter = presenter
        self.timers = timers or TimerOrchestrator(clock=clock)
        self._clock = clock
        self._rng = rng or random.Random()
        self.winner_gif_url = winner_gif_url

    # --- Lookups ------------------------------------------------------------

    async def get(self, giveaway_id: str) -> Optional[GiveawayRecord]:
        records = await self.store.load()
        return records.get(giveaway_id)

    async def find(self, guild_id: int, reference: Union[str, int]) -> GiveawayRecord:
        """Look a giveaway up by id, or by its message id within a guild."""
        reference = str(reference).strip()
        records = await self.store.load()
        record = records.get(reference)
        if record and record.guild_id == guild_id:
            return record
        for candidate in records.values():
            if candidate.guild_id == guild_id and str(candidate.message_id) == reference:
                return candidate
        raise NotFound("Giveaway not found.")

    async def list_active(self, guild_id: Optional[int] = None) -> List[GiveawayRecord]:
        records = await self.store.load()
        return [
            record
            for record in records.values()
            if not record.ended and (guild_id is None or record.guild_id == guild_id)
        ]

    # --- Lifecycle ----------------------------------------------------------

    async def create(
        self,
        guild_id: int,
        channel_id: int,
        *,
        title: str,
        prize: str,
        duration: str,
        winner_count: int = 1,
        description: str = "",
        created_by: Optional[int] = None,
    ) -> GiveawayRecord:
        title = (title or "").strip()
        prize = (prize or "").strip()
        if not title:
            raise InvalidInput("The giveaway title must not be empty.")
        if not prize:
            raise InvalidInput("The giveaway prize must not be empty.")
        duration_ms = parse_duration(duration)
        winner_count = clamp_winner_count(winner_count)

        channel = await self.presenter.resolve_channel(guild_id, channel_id)
        if channel is None:
            raise NotFound("That channel could not be found.")

        created_at = self._clock()
        record = GiveawayRecord(
            id=self._generate_giveaway_id(created_at),
            guild_id=guild_id,
            channel_id=channel_id,
            message_id=None,
            title=title,
            prize=prize,
            description=(description or "").strip(),
            winner_count=winner_count,
            created_at=created_at,
            end_at=created_at + duration_ms,
            created_by=created_by,
        )
        record.message_id = await self.presenter.send_message(
            channel, self._render_active(record)
        )

        try:
            async with self.store.transaction() as records:
                records[record.id] = record
        except Exception:
            # The posted message must not outlive a record that was never saved.
            await self._best_effort(
                self.presenter.delete_message(channel, record.message_id),
                "remove the unsaved message of",
                record.id,
            )
            raise
        self._schedule(record)

        await self._best_effort(
            self.presenter.edit_message(channel, record.message_id, self._render_active(record)),
            "refresh the display of",
            record.id,
        )
        await self._log_event(
            record,
            "giveaway.created",
            title=record.title,
            prize=record.prize,
            channel_id=record.channel_id,
            message_id=record.message_id,
            end_at=record.end_at,
            created_by=created_by,
        )
        log.info("Giveaway %s created in channel %s", record.id, record.channel_id)
        return record

    async def join(self, giveaway_id: str, user_id: int) -> bool:
        """Register ``user_id``; returns ``False`` when they had already joined."""
        async with self.store.transaction() as records:
            record = records.get(giveaway_id)
            if record is None:
                raise NotFound("Giveaway not found.")
            if record.ended:
                raise AlreadyEnded("This giveaway has already ended.")
            added = record.add_participant(user_id)

        if added:
            await self._refresh_display(record)
            await self._log_event(record, "giveaway.joined", user_id=user_id)
        return added

    async def settle(
        self, giveaway_id: str, reason: EndReason = EndReason.MANUAL
    ) -> GiveawayRecord:
        """End a giveaway and draw its winners. Settling twice changes nothing."""
        async with self.store.transaction() as records:
            record = records.get(giveaway_id)
            if record is None:
                raise NotFound("Giveaway not found.")
            if record.ended:
                return record
            pool = record.candidate_pool()
            winners = sample(pool, min(record.winner_count, len(pool)), rng=self._rng)
            record.mark_ended(reason, winners, at=self._clock())
        # Timers only go once the settled record is on disk.
        self.timers.stop(giveaway_id)

        log.info(
            "Giveaway %s settled (%s) with %d winner(s)",
            record.id,
            reason.value,
            len(record.winner_ids),
        )
        await self._publish_settlement(record)
        return record

    async def cancel(self, giveaway_id: str) -> GiveawayRecord:
        """Drop an active giveaway entirely."""
        async with self.store.transaction() as records:
            record = records.get(giveaway_id)
            if record is None:
                raise NotFound("Giveaway not found.")
            if record.ended:
                raise AlreadyEnded("Only active giveaways can be cancelled.")
            del records[giveaway_id]
        self.timers.stop(giveaway_id)

        log.info("Giveaway %s cancelled", record.id)
        channel = await self._resolve_channel(record)
        if channel is not None and record.message_id is not None:
            await self._best_effort(
                self.presenter.edit_message(channel, record.message_id, render_cancelled(record)),
                "mark as cancelled",
                record.id,
            )
        await self._log_event(
            record,
            "giveaway.cancelled",
            title=record.title,
            prize=record.prize,
            message_id=record.message_id,
        )
        return record

    async def reroll(
        self, giveaway_id: str, count: int = 1, *, actor_id: Optional[int] = None
    ) -> List[int]:
        """Draw replacement winners for a settled giveaway, preferring new faces."""
        count = clamp_winner_count(count)
        async with self.store.transaction() as records:
            record = records.get(giveaway_id)
            if record is None:
                raise NotFound("Giveaway not found.")
            if not record.ended:
                raise NotYetEnded(
                    "This giveaway has not ended yet. End it first, then reroll."
                )
            participants = record.candidate_pool()
            if not participants:
                raise NoParticipants("Nobody entered this giveaway.")
            previous = record.previous_winners()
            pool = [user_id for user_id in participants if user_id not in previous]
            if not pool:
                pool = participants
            winners = sample(pool, min(count, len(pool)), rng=self._rng)
            record.rerolls.append(
                RerollEntry(at=self._clock(), actor_id=actor_id, winners=winners)
            )

        log.info("Giveaway %s rerolled: %s", record.id, winners)
        channel = await self._resolve_channel(record)
        if channel is not None:
            await self._best_effort(
                self.presenter.announce(channel, winners, render_reroll(record, winners)),
                "announce the reroll of",
                record.id,
            )
        await self._log_event(
            record, "giveaway.rerolled", winners=winners, actor_id=actor_id
        )
        return winners

    # --- Timers -------------------------------------------------------------

    async def restore(self) -> int:
        """Reschedule every unsettled giveaway after a restart."""
        records = await self.store.load()
        active = [record for record in records.values() if not record.ended]
        for record in active:
            self._schedule(record)
        log.info("Giveaways restored: %d active", len(active))
        return len(active)

    def shutdown(self) -> None:
        self.timers.stop_all()

    def _schedule(self, record: GiveawayRecord) -> None:
        self.timers.start(record.id, record.end_at, self._on_expire, self._on_refresh)

    async def _on_expire(self, giveaway_id: str) -> None:
        try:
            await self.settle(giveaway_id, EndReason.TIME)
        except NotFound:
            log.debug("Giveaway %s vanished before it expired", giveaway_id)

    async def _on_refresh(self, giveaway_id: str) -> bool:
        record = await self.get(giveaway_id)
        if record is None or record.ended:
            return False
        await self._refresh_display(record)
        return True

    # --- Notifications ------------------------------------------------------

    async def _publish_settlement(self, record: GiveawayRecord) -> None:
        channel = await self._resolve_channel(record)
        if channel is not None:
            if record.message_id is not None:
                await self._best_effort(
                    self.presenter.edit_message(channel, record.message_id, render_result(record)),
                    "show the result of",
                    record.id,
                )
            if record.winner_ids:
                content = render_winners(
                    record, record.winner_ids, image_url=self.winner_gif_url
                )
                await self._best_effort(
                    self.presenter.announce(channel, record.winner_ids, content),
                    "announce the winners of",
                    record.id,
                )
            else:
                await self._best_effort(
                    self.presenter.send_message(channel, render_no_participants(record)),
                    "announce the empty result of",
                    record.id,
                )
        await self._log_event(
            record,
            "giveaway.ended",
            title=record.title,
            prize=record.prize,
            reason=record.end_reason.value if record.end_reason else None,
            participants=len(record.candidate_pool()),
            winners=record.winner_ids,
        )

    async def _refresh_display(self, record: GiveawayRecord) -> None:
        channel = await self._resolve_channel(record)
        if channel is None or record.message_id is None:
            return
        await self._best_effort(
            self.presenter.edit_message(channel, record.message_id, self._render_active(record)),
            "refresh the display of",
            record.id,
        )

    async def _resolve_channel(self, record: GiveawayRecord) -> Optional[Any]:
        try:
            channel = await self.presenter.resolve_channel(record.guild_id, record.channel_id)
        except Exception:
            log.exception(
                "Failed to resolve channel %s for giveaway %s",
                record.channel_id,
                record.id,
            )
            return None
        if channel is None:
            log.warning(
                "Unable to locate channel %s for giveaway %s",
                record.channel_id,
                record.id,
            )
        return channel

    async def _log_event(self, record: GiveawayRecord, category: str, **fields: Any) -> None:
        await self._best_effort(
            self.presenter.log_event(record.guild_id, category, {"giveaway_id": record.id, **fields}),
            f"log {category} for",
            record.id,
        )

    @staticmethod
    async def _best_effort(call: Awaitable[Any], action: str, giveaway_id: str) -> None:
        try:
            await call
        except Exception:
            log.exception("Failed to %s giveaway %s", action, giveaway_id)

    def _render_active(self, record: GiveawayRecord) -> MessageContent:
        return render_active(
            record,
            self._clock(),
            refresh_seconds=max(1, self.timers.refresh_interval_ms // 1000),
        )

    @staticmethod
    def _generate_giveaway_id(created_at: int) -> str:
        return f"{created_at:x}{secrets.token_hex(3)}"
