from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from .config import Config, ConfigError, load_config
from .discord_presenter import DiscordPresenter
from .errors import GiveawayError
from .giveaway_manager import MAX_WINNERS, GiveawayManager
from .storage import GiveawayStore
from .timers import TimerOrchestrator
from .views import PERMISSION_LOG, UNEXPECTED_ERROR_MESSAGE, CreateGiveawayModal, is_staff

LOG = logging.getLogger(__name__)

ENV_PATH = Path(".env")


def _load_env_file(path: Path = ENV_PATH) -> None:
    if not path.exists():
        return
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if value and ((value[0] == value[-1]) and value.startswith(("'", '"'))):
            value = value[1:-1]
        os.environ.setdefault(key, value)


def configure_logging(level: str) -> None:
    console_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_dir = Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_dir / "log.txt", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # discord.py is chatty at DEBUG; keep the file log about giveaways.
    logging.getLogger("discord").setLevel(max(console_level, logging.INFO))


class GiveawayBot(commands.Bot):
    def __init__(self, config: Config) -> None:
        intents = discord.Intents.default()

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.application_id,
        )
        self.config = config
        self.presenter = DiscordPresenter(
            self,
            logger_channel_id=config.logging.logger_channel_id,
            staff_roles=config.permissions.staff_roles,
        )
        timers = TimerOrchestrator(
            max_delay_ms=config.giveaways.max_timer_delay_ms,
            refresh_interval_ms=config.giveaways.refresh_interval_ms,
        )
        self.manager = GiveawayManager(
            GiveawayStore(config.giveaways.storage_path),
            self.presenter,
            timers=timers,
            winner_gif_url=config.giveaways.winner_gif_url,
        )
        self.presenter.bind(self.manager)

    async def setup_hook(self) -> None:
        await self.manager.restore()
        for record in await self.manager.list_active():
            if record.message_id is None:
                continue
            view = self.presenter.build_view(record.id, len(record.participants))
            self.add_view(view, message_id=record.message_id)
        await self.tree.sync()
        dev_guild_id = self.config.permissions.development_guild_id
        if dev_guild_id:
            guild = discord.Object(dev_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)

    async def close(self) -> None:
        self.manager.shutdown()
        await super().close()

    async def on_ready(self) -> None:
        LOG.info(
            "Logged in as %s (%s)",
            self.user,
            self.user.id,  # type: ignore[union-attr]
        )


def staff_required(interaction: discord.Interaction, config: Config) -> Optional[str]:
    command_name = getattr(getattr(interaction, "command", None), "name", "unknown")
    user = interaction.user
    if interaction.guild is None or not isinstance(user, discord.Member):
        PERMISSION_LOG.debug(
            "Denied command %s for user %s: non-guild context.",
            command_name,
            getattr(user, "id", "unknown"),
        )
        return "This command can only be used inside a guild."
    if not is_staff(
        user,
        config.permissions.staff_roles,
        base_permissions=getattr(interaction, "permissions", None),
    ):
        PERMISSION_LOG.warning(
            "Denied command %s for user %s: missing staff rights.",
            command_name,
            user.id,
        )
        return "❌ Only staff can manage giveaways."
    PERMISSION_LOG.debug("Authorized command %s for user %s.", command_name, user.id)
    return None


def build_bot(config_path: Path) -> GiveawayBot:
    _load_env_file()
    config = load_config(config_path)
    configure_logging(config.logging.level)
    return GiveawayBot(config)


def register_commands(bot: GiveawayBot) -> None:
    manager = bot.manager
    config = bot.config

    @bot.tree.command(name="giveaway-create", description="Create a giveaway (staff only).")
    @app_commands.describe(channel="Channel the giveaway is posted in.")
    async def giveaway_create(
        interaction: discord.Interaction, channel: discord.TextChannel
    ) -> None:
        error = staff_required(interaction, config)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        # The modal has to be the first response to the interaction.
        await interaction.response.send_modal(CreateGiveawayModal(manager, channel.id))

    @bot.tree.command(name="giveaway-end", description="End a giveaway now (staff only).")
    @app_commands.describe(reference="Giveaway ID or giveaway message ID.")
    async def giveaway_end(interaction: discord.Interaction, reference: str) -> None:
        error = staff_required(interaction, config)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        await interaction.response.defer(ephemeral=True)
        try:
            record = await manager.find(interaction.guild.id, reference)
            if record.ended:
                await interaction.followup.send("⏳ This giveaway has already ended.", ephemeral=True)
                return
            await manager.settle(record.id)
        except GiveawayError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        except Exception:
            LOG.exception("/giveaway-end failed for %s", reference)
            await interaction.followup.send(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)
            return
        await interaction.followup.send("🏁 Giveaway ended!", ephemeral=True)

    @bot.tree.command(name="giveaway-cancel", description="Cancel and delete a giveaway (staff only).")
    @app_commands.describe(reference="Giveaway ID or giveaway message ID.")
    async def giveaway_cancel(interaction: discord.Interaction, reference: str) -> None:
        error = staff_required(interaction, config)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        await interaction.response.defer(ephemeral=True)
        try:
            record = await manager.find(interaction.guild.id, reference)
            await manager.cancel(record.id)
        except GiveawayError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        except Exception:
            LOG.exception("/giveaway-cancel failed for %s", reference)
            await interaction.followup.send(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)
            return
        await interaction.followup.send("🛑 Giveaway cancelled and deleted.", ephemeral=True)

    @bot.tree.command(name="giveaway-reroll", description="Draw new winners for an ended giveaway (staff only).")
    @app_commands.describe(
        reference="Giveaway ID or giveaway message ID.",
        count="How many winners to draw.",
    )
    async def giveaway_reroll(
        interaction: discord.Interaction,
        reference: str,
        count: app_commands.Range[int, 1, MAX_WINNERS] = 1,
    ) -> None:
        error = staff_required(interaction, config)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        await interaction.response.defer(ephemeral=True)
        try:
            record = await manager.find(interaction.guild.id, reference)
            winners = await manager.reroll(record.id, count, actor_id=interaction.user.id)
        except GiveawayError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        except Exception:
            LOG.exception("/giveaway-reroll failed for %s", reference)
            await interaction.followup.send(UNEXPECTED_ERROR_MESSAGE, ephemeral=True)
            return
        mentions = ", ".join(f"<@{winner_id}>" for winner_id in winners)
        await interaction.followup.send(f"✅ Reroll done: {mentions}", ephemeral=True)

    @bot.tree.command(name="giveaway-list", description="List running giveaways (staff only).")
    async def giveaway_list(interaction: discord.Interaction) -> None:
        error = staff_required(interaction, config)
        if error:
            await interaction.response.send_message(error, ephemeral=True)
            return
        records = await manager.list_active(interaction.guild.id)
        if not records:
            await interaction.response.send_message("No giveaways are running.", ephemeral=True)
            return
        lines = [
            f"- `{record.id}` **{record.title}** in <#{record.channel_id}>: "
            f"{len(record.participants)} participant(s), ends <t:{record.end_at // 1000}:R>"
            for record in sorted(records, key=lambda r: r.end_at)
        ]
        await interaction.response.send_message("\n".join(lines)[:2000], ephemeral=True)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Discord Giveaway Bot")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config") / "config.yaml",
        help="Path to the bot configuration file.",
    )
    args = parser.parse_args()

    try:
        bot = build_bot(args.config)
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    register_commands(bot)

    async with bot:
        await bot.start(bot.config.token)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
