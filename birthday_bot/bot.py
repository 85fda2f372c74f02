"""
Birthday Bot
discord.py 2.x client with slash commands and a daily birthday sweep
"""

import asyncio
import contextlib
import logging
import signal
from typing import Any

from dotenv import find_dotenv, load_dotenv

# .env must be loaded before BotConfig reads the environment
load_dotenv(find_dotenv(usecwd=True), encoding="utf-8")

import discord  # noqa: E402
from discord import app_commands  # noqa: E402
from discord.ext import commands  # noqa: E402

from birthday_bot.birthday.commands import GENERIC_FAILURE_MESSAGE, CommandDeps  # noqa: E402
from birthday_bot.birthday.platform import DiscordPlatform  # noqa: E402
from birthday_bot.birthday.sweep import BirthdaySweep  # noqa: E402
from birthday_bot.config import BotConfig  # noqa: E402
from birthday_bot.core import HealthCheckServer, setup_logging  # noqa: E402
from birthday_bot.database import (  # noqa: E402
    BirthdayRepository,
    DatabaseManager,
    MigrationRunner,
    PoolConfig,
)

logger = logging.getLogger("birthday_bot")


class BirthdayBot(commands.Bot):
    """Birthday bot Discord client.

    Owns the database pool and wires the store, platform adapter and sweep
    into the cogs through ``self.deps``.
    """

    def __init__(self, db: DatabaseManager, health_server_enabled: bool = False):
        # Guilds intent is enough: channels and roles come from the guild cache
        intents = discord.Intents.default()

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.db = db
        self.initial_extensions = ["birthday_bot.cogs.birthday"]
        self.health_server = (
            HealthCheckServer(self, port=BotConfig.HEALTH_SERVER_PORT)
            if health_server_enabled
            else None
        )
        self.store: BirthdayRepository | None = None
        self.sweep: BirthdaySweep | None = None
        self.deps: CommandDeps | None = None
        self._close_task: asyncio.Task | None = None

    async def setup_hook(self) -> None:
        """Connect storage, load cogs and sync slash commands"""
        pool = await self.db.connect()
        await MigrationRunner(pool).run_pending()

        tz = BotConfig.get_timezone()
        self.store = BirthdayRepository(pool, tz=tz)
        platform = DiscordPlatform(self)
        self.sweep = BirthdaySweep(self.store, platform, tz=tz)
        self.deps = CommandDeps(
            store=self.store,
            sweep=self.sweep,
            platform=platform,
            schedule_description=BotConfig.describe_check_time(),
        )

        self.tree.on_error = self.on_app_command_error

        if self.health_server:
            await self.health_server.start()

        loaded: list[str] = []
        failed: list[str] = []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                logger.exception(f"Failed to load extension {extension}")
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"[green]Loaded cogs:[/green] {', '.join(loaded)}")
        if failed:
            logger.error(f"[red]Failed to load:[/red] {', '.join(failed)}")

        logger.info("[yellow]Syncing slash commands...[/yellow]")
        if BotConfig.GUILD_ID:
            # Guild sync is immediate, global sync can take up to an hour
            guild = discord.Object(id=int(BotConfig.GUILD_ID))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"[magenta]Synced slash commands to guild {BotConfig.GUILD_ID}[/magenta]")
        else:
            await self.tree.sync()
            logger.info("[magenta]Synced slash commands globally[/magenta]")

    async def on_ready(self) -> None:
        await self.change_presence(
            status=BotConfig.get_status(), activity=BotConfig.get_activity()
        )
        user_id = self.user.id if self.user else "?"
        logger.info(f"[bold green]Bot ready:[/bold green] {self.user} [dim](ID: {user_id})[/dim]")
        logger.info(
            f"[cyan]Connected:[/cyan] {len(self.guilds)} servers | discord.py {discord.__version__}"
        )

    async def on_disconnect(self) -> None:
        logger.warning("Bot disconnected from Discord")

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        logger.exception(f"Unhandled error in event {event_method}")

    async def on_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        """Last-resort handler for errors that escape a command callback"""
        if isinstance(error, app_commands.MissingPermissions):
            message = "You do not have permission to use this command"
        else:
            command_name = interaction.command.qualified_name if interaction.command else "?"
            logger.error(f"Command error in /{command_name}: {error}", exc_info=error)
            message = GENERIC_FAILURE_MESSAGE

        with contextlib.suppress(discord.HTTPException):
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)

    def close_soon(self) -> asyncio.Task:
        """Schedule close() from a signal handler; repeated calls share one task"""
        if self._close_task is None:
            self._close_task = asyncio.create_task(self.close())
        return self._close_task

    async def close(self) -> None:
        """Stop tasks and release the database pool; in-flight sends are abandoned"""
        await super().close()
        if self.health_server:
            await self.health_server.stop()
        await self.db.disconnect()


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log unhandled task failures instead of letting them go unnoticed"""
    error = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")
    if error is not None:
        logger.error(f"{message}: {error}", exc_info=error)
    else:
        logger.error(message)


async def main() -> None:
    """Bot entry point"""
    setup_logging()

    if not BotConfig.TOKEN:
        logger.error("[bold red]DISCORD_BOT_TOKEN is not set[/bold red]")
        logger.error("Set it in .env: DISCORD_BOT_TOKEN=your_token_here")
        return
    if not BotConfig.DATABASE_URL:
        logger.error("[bold red]DATABASE_URL is not set[/bold red]")
        return

    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    db = DatabaseManager(BotConfig.DATABASE_URL, PoolConfig(ssl=BotConfig.DATABASE_SSL))
    async with BirthdayBot(db, health_server_enabled=BotConfig.HEALTH_SERVER_ENABLED) as bot:
        # add_signal_handler is unavailable on Windows
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, bot.close_soon)
        await bot.start(BotConfig.TOKEN)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("[yellow]Bot stopped[/yellow]")
    except Exception as e:
        logger.error(f"[bold red]Bot crashed:[/bold red] {e}", exc_info=e)
        raise SystemExit(1) from e


if __name__ == "__main__":
    run()
