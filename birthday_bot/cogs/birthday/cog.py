"""Birthday feature cog."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import discord
from discord import app_commands
from discord.ext import commands, tasks

from birthday_bot.birthday.commands import (
    CommandContext,
    CommandDeps,
    CommandReply,
    dispatch,
    is_server_admin,
)
from birthday_bot.birthday.sweep import BirthdaySweep, SweepResult
from birthday_bot.config import DEFAULT_CHECK_TIME, BotConfig
from birthday_bot.database.repository import StoreError

logger = logging.getLogger(__name__)

# Commands that may outlast Discord's 3 second response window
DEFERRED_COMMANDS = frozenset({"check"})


class BirthdayCog(commands.Cog):
    """Birthday registration commands and the daily notification task."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.deps: CommandDeps = bot.deps  # type: ignore[attr-defined]
        self._startup_task: asyncio.Task | None = None

    @property
    def sweep(self) -> BirthdaySweep:
        return self.deps.sweep

    async def cog_load(self) -> None:
        self.daily_sweep_task.change_interval(time=BotConfig.get_check_time())
        self.daily_sweep_task.start()
        # Non-blocking: the startup sweep waits for the gateway in the background
        self._startup_task = asyncio.create_task(self._startup_sweep())
        logger.info(f"Birthday cog loaded, daily check: {BotConfig.describe_check_time()}")

    async def cog_unload(self) -> None:
        self.daily_sweep_task.cancel()
        if self._startup_task and not self._startup_task.done():
            self._startup_task.cancel()

    # ==================== Sweep triggers ====================

    async def run_sweep(self, trigger: str) -> SweepResult | None:
        """Run the sweep for an unattended trigger, logging instead of raising."""
        try:
            return await self.sweep.run(trigger=trigger)
        except StoreError as e:
            logger.error(f"Birthday sweep ({trigger}) aborted, store unavailable: {e}")
        except Exception:
            logger.exception(f"Birthday sweep ({trigger}) failed")
        return None

    @tasks.loop(time=DEFAULT_CHECK_TIME)
    async def daily_sweep_task(self) -> None:
        await self.run_sweep("scheduled")

    @daily_sweep_task.before_loop
    async def _wait_ready(self) -> None:
        await self.bot.wait_until_ready()

    async def _startup_sweep(self) -> None:
        await self.bot.wait_until_ready()
        await self.run_sweep("startup")

    # ==================== Interaction plumbing ====================

    @staticmethod
    def build_context(interaction: discord.Interaction) -> CommandContext:
        guild = interaction.guild
        return CommandContext(
            user_id=interaction.user.id,
            username=interaction.user.name,
            guild_id=interaction.guild_id,
            guild_name=guild.name if guild else None,
            is_admin=is_server_admin(interaction.permissions) if guild else False,
        )

    @staticmethod
    async def send_reply(interaction: discord.Interaction, reply: CommandReply) -> None:
        kwargs: dict[str, Any] = {"ephemeral": reply.ephemeral}
        if reply.content is not None:
            kwargs["content"] = reply.content
        if reply.embed is not None:
            kwargs["embed"] = reply.embed

        if interaction.response.is_done():
            if reply.ephemeral:
                # The first followup would otherwise replace the public deferral in place
                with contextlib.suppress(discord.HTTPException):
                    await interaction.delete_original_response()
            await interaction.followup.send(**kwargs)
        else:
            await interaction.response.send_message(**kwargs)

    async def _run(self, interaction: discord.Interaction, name: str, **options: Any) -> None:
        ctx = self.build_context(interaction)
        if name in DEFERRED_COMMANDS and ctx.is_admin and ctx.guild_id is not None:
            await interaction.response.defer(thinking=True)

        reply = await dispatch(name, ctx, self.deps, **options)
        await self.send_reply(interaction, reply)

    # ==================== Commands ====================

    @app_commands.command(name="hello", description="Bot says hello to you!")
    async def hello(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "hello")

    birthday_group = app_commands.Group(name="birthday", description="Manage Birthdays")

    @birthday_group.command(name="add", description="Add your birthday")
    @app_commands.describe(date="Your birthday in MM/DD format, so for April 20th, use 04/20")
    async def birthday_add(self, interaction: discord.Interaction, date: str) -> None:
        await self._run(interaction, "add", date=date)

    @birthday_group.command(name="show", description="Show your saved birthday")
    async def birthday_show(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "show")

    @birthday_group.command(name="remove", description="Remove your birthday from the list")
    async def birthday_remove(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "remove")

    @birthday_group.command(name="list", description="Check all registered birthdays (ADMIN)")
    async def birthday_list(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "list")

    @birthday_group.command(name="check", description="Force check todays birthdays (ADMIN)")
    async def birthday_check(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "check")

    @birthday_group.command(name="stats", description="View birthday statistics (ADMIN)")
    async def birthday_stats(self, interaction: discord.Interaction) -> None:
        await self._run(interaction, "stats")

    @birthday_group.command(
        name="setup", description="Setup birthday notifications for this server (ADMIN)"
    )
    @app_commands.describe(
        channel="Channel where messages will be sent",
        role="Role to ping when somebody has a birthday",
    )
    async def birthday_setup(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        role: discord.Role,
    ) -> None:
        permissions: discord.Permissions | None = None
        guild = interaction.guild
        if guild is not None and guild.me is not None:
            resolved = guild.get_channel(channel.id)
            if resolved is not None:
                permissions = resolved.permissions_for(guild.me)

        await self._run(
            interaction,
            "setup",
            channel_id=channel.id,
            role_id=role.id,
            bot_permissions=permissions,
        )
