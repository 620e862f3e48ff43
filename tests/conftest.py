from __future__ import annotations

import random
from typing import Any, Mapping, Optional, Sequence

import pytest

from giveawaybot.giveaway_manager import GiveawayManager
from giveawaybot.presenter import MessageContent, Presenter
from giveawaybot.storage import GiveawayStore
from giveawaybot.timers import TimerOrchestrator

GUILD_ID = 111
CHANNEL_ID = 222
START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakePresenter(Presenter):
    """Records every boundary call instead of talking to Discord."""

    def __init__(self) -> None:
        self.channels = {CHANNEL_ID}
        self.sent: list[tuple[Any, MessageContent]] = []
        self.edits: list[tuple[Any, int, MessageContent]] = []
        self.deleted: list[tuple[Any, int]] = []
        self.announcements: list[tuple[Any, list[int], MessageContent]] = []
        self.events: list[tuple[int, str, dict]] = []
        self.fail = False
        self._next_message_id = 5000

    async def resolve_channel(self, guild_id: int, channel_id: int) -> Optional[Any]:
        if channel_id not in self.channels:
            return None
        return ("channel", guild_id, channel_id)

    async def send_message(self, channel: Any, content: MessageContent) -> int:
        self.sent.append((channel, content))
        self._next_message_id += 1
        return self._next_message_id

    async def edit_message(self, channel: Any, message_id: int, content: MessageContent) -> bool:
        if self.fail:
            raise RuntimeError("display unavailable")
        self.edits.append((channel, message_id, content))
        return True

    async def delete_message(self, channel: Any, message_id: int) -> bool:
        self.deleted.append((channel, message_id))
        return True

    async def announce(self, channel: Any, winners: Sequence[int], content: MessageContent) -> None:
        if self.fail:
            raise RuntimeError("display unavailable")
        self.announcements.append((channel, list(winners), content))

    async def log_event(self, guild_id: int, category: str, fields: Mapping[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("log channel unavailable")
        self.events.append((guild_id, category, dict(fields)))

    def categories(self) -> list[str]:
        return [category for _, category, _ in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def presenter() -> FakePresenter:
    return FakePresenter()


@pytest.fixture
def store(tmp_path) -> GiveawayStore:
    return GiveawayStore(tmp_path / "giveaways.json")


@pytest.fixture
def make_manager(store, presenter, clock):
    managers: list[GiveawayManager] = []

    def factory(seed: int = 7) -> GiveawayManager:
        manager = GiveawayManager(
            store,
            presenter,
            timers=TimerOrchestrator(clock=clock),
            clock=clock,
            rng=random.Random(seed),
        )
        managers.append(manager)
        return manager

    yield factory
    for manager in managers:
        manager.shutdown()


@pytest.fixture
def manager(make_manager) -> GiveawayManager:
    return make_manager()


async def create_giveaway(manager: GiveawayManager, **overrides):
    params = dict(
        title="Nitro 1 month",
        prize="1x Nitro",
        duration="30m",
        winner_count=1,
        description="",
        created_by=42,
    )
    params.update(overrides)
    return await manager.create(GUILD_ID, CHANNEL_ID, **params)
