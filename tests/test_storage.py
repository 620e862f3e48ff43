import asyncio
import json

import pytest

from giveawaybot.models import EndReason, GiveawayRecord, RerollEntry
from giveawaybot.storage import GiveawayStore


def make_record(giveaway_id: str = "gw1", **overrides) -> GiveawayRecord:
    params = dict(
        id=giveaway_id,
        guild_id=1,
        channel_id=2,
        message_id=3,
        title="Title",
        prize="Prize",
        winner_count=2,
        created_at=1_000,
        end_at=61_000,
    )
    params.update(overrides)
    return GiveawayRecord(**params)


async def test_missing_file_is_created_empty(tmp_path):
    path = tmp_path / "nested" / "giveaways.json"
    store = GiveawayStore(path)

    assert await store.load() == {}
    assert json.loads(path.read_text(encoding="utf-8")) == {}


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", ""])
async def test_unparsable_file_is_treated_as_empty(tmp_path, content):
    path = tmp_path / "giveaways.json"
    path.write_text(content, encoding="utf-8")

    assert await GiveawayStore(path).load() == {}


async def test_unparsable_file_is_replaced_on_next_write(tmp_path):
    path = tmp_path / "giveaways.json"
    path.write_text("{oops", encoding="utf-8")
    store = GiveawayStore(path)

    async with store.transaction() as records:
        records["gw1"] = make_record()

    assert list(json.loads(path.read_text(encoding="utf-8"))) == ["gw1"]


async def test_settled_record_survives_a_reload(store):
    record = make_record(participants=[10, 11, 12])
    record.mark_ended(EndReason.MANUAL, [11, 12], at=30_000)
    record.rerolls.append(RerollEntry(at=40_000, actor_id=99, winners=[10]))

    await store.save({record.id: record})
    loaded = (await store.load())["gw1"]

    assert loaded == record
    assert loaded.end_reason is EndReason.MANUAL


async def test_malformed_record_is_skipped(store):
    good = make_record("good")
    store.path.write_text(
        json.dumps({"good": good.to_payload(), "bad": {"id": "bad"}}), encoding="utf-8"
    )

    assert list(await store.load()) == ["good"]


async def test_duplicate_participants_are_collapsed_on_load(store):
    payload = make_record().to_payload()
    payload["participants"] = [5, 6, 5, 5]
    store.path.write_text(json.dumps({"gw1": payload}), encoding="utf-8")

    assert (await store.load())["gw1"].participants == [5, 6]


async def test_transaction_rolls_back_on_error(store):
    await store.save({"gw1": make_record()})

    with pytest.raises(RuntimeError):
        async with store.transaction() as records:
            del records["gw1"]
            raise RuntimeError("abort")

    assert list(await store.load()) == ["gw1"]


async def test_concurrent_transactions_do_not_lose_updates(store):
    await store.save({"a": make_record("a"), "b": make_record("b")})

    async def join(giveaway_id: str, user_id: int) -> None:
        async with store.transaction() as records:
            records[giveaway_id].add_participant(user_id)
            await asyncio.sleep(0)

    await asyncio.gather(
        *(join("a" if user_id % 2 else "b", user_id) for user_id in range(20))
    )

    records = await store.load()
    assert sorted(records["a"].participants) == list(range(1, 20, 2))
    assert sorted(records["b"].participants) == list(range(0, 20, 2))
