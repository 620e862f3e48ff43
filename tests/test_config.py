from pathlib import Path

import pytest

from giveawaybot.config import ConfigError, load_config


def write_config(tmp_path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_with_env_token(tmp_path, monkeypatch):
    monkeypatch.setenv("GIVEAWAY_TEST_TOKEN", "secret")
    monkeypatch.delenv("GIVEAWAY_TEST_GIF", raising=False)
    path = write_config(
        tmp_path,
        """
token: ${GIVEAWAY_TEST_TOKEN}
application_id: 42
logging:
  level: DEBUG
  logger_channel_id: 900
permissions:
  staff_roles: [1, "2"]
giveaways:
  storage_path: state/gw.json
  refresh_interval_seconds: 30
  winner_gif_url: ${GIVEAWAY_TEST_GIF}
""",
    )

    config = load_config(path)

    assert config.token == "secret"
    assert config.application_id == 42
    assert config.logging.level == "DEBUG"
    assert config.logging.logger_channel_id == 900
    assert config.permissions.staff_roles == [1, 2]
    assert config.permissions.development_guild_id is None
    assert config.giveaways.storage_path == Path("state/gw.json")
    assert config.giveaways.refresh_interval_ms == 30_000
    assert config.giveaways.max_timer_delay_ms == 2_147_483_647
    assert config.giveaways.winner_gif_url is None


def test_defaults_for_optional_sections(tmp_path):
    config = load_config(write_config(tmp_path, "token: abc\napplication_id: 1\n"))

    assert config.logging.level == "INFO"
    assert config.permissions.staff_roles == []
    assert config.giveaways.storage_path == Path("data") / "giveaways.json"
    assert config.giveaways.refresh_interval_seconds == 60


@pytest.mark.parametrize(
    "text",
    [
        "application_id: 1\n",
        "token: ${GIVEAWAY_TEST_UNSET}\napplication_id: 1\n",
        "token: abc\napplication_id: 1\ngiveaways:\n  refresh_interval_seconds: 0\n",
        "token: abc\napplication_id: 1\npermissions:\n  staff_roles: nope\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_config(tmp_path, monkeypatch, text):
    monkeypatch.delenv("GIVEAWAY_TEST_UNSET", raising=False)
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, text))


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")
