from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import os
import yaml

from .timers import MAX_TIMER_DELAY_MS, REFRESH_INTERVAL_MS


class ConfigError(RuntimeError):
    """Raised when the configuration file is invalid."""


@dataclass(slots=True)
class LoggingConfig:
    level: str
    logger_channel_id: Optional[int]


@dataclass(slots=True)
class PermissionsConfig:
    staff_roles: List[int] = field(default_factory=list)
    development_guild_id: Optional[int] = None


@dataclass(slots=True)
class GiveawaysConfig:
    storage_path: Path = Path("data") / "giveaways.json"
    refresh_interval_seconds: int = REFRESH_INTERVAL_MS // 1000
    max_timer_delay_seconds: float = MAX_TIMER_DELAY_MS / 1000
    winner_gif_url: Optional[str] = None

    @property
    def refresh_interval_ms(self) -> int:
        return self.refresh_interval_seconds * 1000

    @property
    def max_timer_delay_ms(self) -> int:
        return int(self.max_timer_delay_seconds * 1000)


@dataclass(slots=True)
class Config:
    token: str
    application_id: int
    logging: LoggingConfig
    permissions: PermissionsConfig
    giveaways: GiveawaysConfig


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ConfigError(f"Missing required config key: {key}")
    return data[key]


def _env_reference(value: str, key: str) -> Optional[str]:
    trimmed = value.strip()
    if trimmed.startswith("${") and trimmed.endswith("}"):
        env_name = trimmed[2:-1].strip()
        if not env_name:
            raise ConfigError(f"Environment reference for '{key}' is empty.")
        return env_name
    return None


def _resolve_env_value(value: str, key: str) -> str:
    env_name = _env_reference(value, key)
    if env_name is None:
        return value
    env_value = os.getenv(env_name)
    if env_value is None:
        raise ConfigError(
            f"Environment variable '{env_name}' referenced by '{key}' is not set."
        )
    return env_value


def _optional_channel_id(value: Any, key: str) -> Optional[int]:
    if value in (None, "", 0):
        return None
    try:
        channel_id = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer ID or null.") from exc
    if channel_id <= 0:
        raise ConfigError(f"{key} must be a positive integer.")
    return channel_id


def _parse_logging(data: Dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO"))
    logger_channel_id = _optional_channel_id(
        data.get("logger_channel_id"), "logging.logger_channel_id"
    )
    return LoggingConfig(level=level, logger_channel_id=logger_channel_id)


def _parse_permissions(data: Dict[str, Any]) -> PermissionsConfig:
    staff_roles_raw = data.get("staff_roles", [])
    if not isinstance(staff_roles_raw, list):
        raise ConfigError("permissions.staff_roles must be a list of role IDs.")
    staff_roles: List[int] = []
    for role_id in staff_roles_raw:
        try:
            staff_roles.append(int(role_id))
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                f"permissions.staff_roles contains invalid role id: {role_id!r}"
            ) from exc
    development_guild_id = _optional_channel_id(
        data.get("development_guild_id"), "permissions.development_guild_id"
    )
    return PermissionsConfig(
        staff_roles=staff_roles, development_guild_id=development_guild_id
    )


def _parse_giveaways(data: Dict[str, Any]) -> GiveawaysConfig:
    defaults = GiveawaysConfig()
    storage_path = Path(str(data.get("storage_path", defaults.storage_path)))

    refresh = data.get("refresh_interval_seconds", defaults.refresh_interval_seconds)
    if not isinstance(refresh, int) or refresh <= 0:
        raise ConfigError(
            "giveaways.refresh_interval_seconds must be a positive integer."
        )

    max_delay = data.get("max_timer_delay_seconds", defaults.max_timer_delay_seconds)
    if not isinstance(max_delay, (int, float)) or max_delay <= 0:
        raise ConfigError("giveaways.max_timer_delay_seconds must be a positive number.")

    gif_raw = data.get("winner_gif_url")
    winner_gif_url: Optional[str] = None
    if gif_raw not in (None, ""):
        env_name = _env_reference(str(gif_raw), "giveaways.winner_gif_url")
        winner_gif_url = os.getenv(env_name) if env_name else str(gif_raw)
        winner_gif_url = winner_gif_url or None

    return GiveawaysConfig(
        storage_path=storage_path,
        refresh_interval_seconds=refresh,
        max_timer_delay_seconds=float(max_delay),
        winner_gif_url=winner_gif_url,
    )


def load_config(path: Path) -> Config:
    if not path.exists():
        raise ConfigError(f"Config file {path} does not exist.")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping at the root.")

    token_raw = str(_require(data, "token"))
    token = _resolve_env_value(token_raw, "token").strip()
    if not token:
        raise ConfigError("token must not be empty.")
    try:
        application_id = int(_require(data, "application_id"))
    except (TypeError, ValueError) as exc:
        raise ConfigError("application_id must be an integer.") from exc

    return Config(
        token=token,
        application_id=application_id,
        logging=_parse_logging(data.get("logging") or {}),
        permissions=_parse_permissions(data.get("permissions") or {}),
        giveaways=_parse_giveaways(data.get("giveaways") or {}),
    )
