import pytest

from giveawaybot.models import EndReason, GiveawayRecord
from giveawaybot.presenter import progress_bar, render_active, render_result
from giveawaybot.views import parse_winner_count


def make_record(**overrides) -> GiveawayRecord:
    params = dict(
        id="gw1",
        guild_id=1,
        channel_id=2,
        message_id=3,
        title="Nitro",
        prize="1x Nitro",
        winner_count=1,
        created_at=0,
        end_at=120_000,
        participants=[7, 8],
    )
    params.update(overrides)
    return GiveawayRecord(**params)


@pytest.mark.parametrize(
    "now, expected",
    [
        (0, "▱" * 12),
        (60_000, "▰" * 6 + "▱" * 6),
        (500_000, "▰" * 12),
    ],
)
def test_progress_bar(now, expected):
    assert progress_bar(120_000, 0, now) == expected


def test_active_rendering_carries_controls():
    content = render_active(make_record(description="Be nice"), 60_000)

    assert content.giveaway_id == "gw1"
    assert content.participant_count == 2
    assert content.description.startswith("Be nice")
    assert "<t:120:R>" in content.description
    assert content.footer == "ID: gw1"


def test_result_rendering_lists_winners():
    record = make_record()
    record.mark_ended(EndReason.TIME, [8], at=120_000)

    content = render_result(record)

    assert content.giveaway_id is None
    assert "<@8>" in content.description


@pytest.mark.parametrize(
    "raw, expected",
    [("3", 3), ("999", 999), ("", 1), (None, 1), ("abc", 1), ("0", 1)],
)
def test_parse_winner_count(raw, expected):
    assert parse_winner_count(raw) == expected
