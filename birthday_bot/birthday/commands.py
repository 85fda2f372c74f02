"""Platform-independent handlers for the ``/birthday`` commands.

Each handler takes a ``CommandContext`` describing who invoked it, the shared
``CommandDeps`` and the command's options, and returns a ``CommandReply``.
``dispatch()`` looks handlers up in ``COMMAND_HANDLERS`` and is the outermost
error boundary for every command.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import discord

from birthday_bot.database.repository import BirthdayStore, StoreError

from . import embeds
from .constants import RECENT_REGISTRATION_DAYS
from .platform import NotificationPlatform
from .sweep import BirthdaySweep
from .validation import DATE_FORMAT, parse_birthday

logger = logging.getLogger(__name__)

GUILD_ONLY_MESSAGE = "This command can only be used in a server."
NOT_ADMIN_MESSAGE = "You are not an admin"
STORE_FAILURE_MESSAGE = "We could not reach the birthday database, please try again"
GENERIC_FAILURE_MESSAGE = "Something went wrong, try again"

# (permission attribute, permission name, what the bot cannot do without it)
REQUIRED_CHANNEL_PERMISSIONS = (
    ("view_channel", "View Channel", "view that channel"),
    ("send_messages", "Send Messages", "send messages in that channel"),
    ("embed_links", "Embed Links", "embed links in that channel"),
)


@dataclass(frozen=True)
class CommandContext:
    """Who invoked a command, and where."""

    user_id: int
    username: str
    guild_id: int | None = None
    guild_name: str | None = None
    is_admin: bool = False


@dataclass
class CommandReply:
    content: str | None = None
    embed: discord.Embed | None = None
    ephemeral: bool = False

    @classmethod
    def private(cls, content: str) -> CommandReply:
        return cls(content=content, ephemeral=True)


@dataclass
class CommandDeps:
    store: BirthdayStore
    sweep: BirthdaySweep
    platform: NotificationPlatform
    schedule_description: str = "Every day at 09:00"


Handler = Callable[..., Awaitable[CommandReply]]


def is_server_admin(permissions: discord.Permissions | None) -> bool:
    """Administrator or Manage Server."""
    if permissions is None:
        return False
    return permissions.administrator or permissions.manage_guild


def admin_only(handler: Handler) -> Handler:
    """Reject the command outside a guild or for non-admins."""

    @functools.wraps(handler)
    async def wrapper(ctx: CommandContext, deps: CommandDeps, **options: Any) -> CommandReply:
        if ctx.guild_id is None:
            return CommandReply.private(GUILD_ONLY_MESSAGE)
        if not ctx.is_admin:
            return CommandReply.private(NOT_ADMIN_MESSAGE)
        return await handler(ctx, deps, **options)

    return wrapper


# ==================== Member commands ====================


async def hello(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    return CommandReply(embed=embeds.hello_embed())


async def add_birthday(ctx: CommandContext, deps: CommandDeps, *, date: str) -> CommandReply:
    result = parse_birthday(date)
    if result.error or result.month is None or result.day is None:
        return CommandReply(embed=embeds.invalid_date_embed(result.error or ""), ephemeral=True)

    await deps.store.upsert_member(ctx.user_id, ctx.username, result.month, result.day)
    logger.info(f"Birthday saved for {ctx.username} ({ctx.user_id}): {result.month}/{result.day}")
    return CommandReply(embed=embeds.birthday_added_embed(result.month, result.day, DATE_FORMAT))


async def show_birthday(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    member = await deps.store.get_member(ctx.user_id)
    if member is None:
        return CommandReply(embed=embeds.no_birthday_embed(), ephemeral=True)
    return CommandReply(embed=embeds.show_birthday_embed(member))


async def remove_birthday(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    if await deps.store.delete_member(ctx.user_id):
        logger.info(f"Birthday removed for {ctx.username} ({ctx.user_id})")
        return CommandReply(content="Your birthday has been removed from the database")
    return CommandReply.private("Your birthday already is not in the database")


# ==================== Admin commands ====================


@admin_only
async def list_birthdays(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    members = await deps.store.list_members()
    if not members:
        return CommandReply.private("No birthdays detected in DB")
    return CommandReply(embed=embeds.birthday_list_embed(members), ephemeral=True)


@admin_only
async def check_birthdays(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    logger.info(f"Manual birthday check requested by {ctx.username} in {ctx.guild_name}")
    result = await deps.sweep.run(trigger="manual")
    return CommandReply(content=f"Checked for birthdays. {result.summary()}")


@admin_only
async def birthday_stats(ctx: CommandContext, deps: CommandDeps) -> CommandReply:
    recent_since = datetime.now(timezone.utc) - timedelta(days=RECENT_REGISTRATION_DAYS)
    stats = await deps.store.get_stats(recent_since)
    configs = await deps.store.list_guild_configs()
    server_status = [
        (config.guild_name or str(config.guild_id), deps.platform.is_in_guild(config.guild_id))
        for config in configs
    ]
    return CommandReply(embed=embeds.stats_embed(stats, server_status), ephemeral=True)


@admin_only
async def setup_notifications(
    ctx: CommandContext,
    deps: CommandDeps,
    *,
    channel_id: int,
    role_id: int,
    bot_permissions: discord.Permissions | None,
) -> CommandReply:
    """Store the notification channel and role after checking the bot can post there."""
    if bot_permissions is None:
        return CommandReply.private("Invalid channel selected. Please try again.")

    for attr, label, action in REQUIRED_CHANNEL_PERMISSIONS:
        if not getattr(bot_permissions, attr):
            return CommandReply.private(
                f"❌ I don't have permission to {action}. "
                f'Please give me the "{label}" permission and try again.'
            )

    await deps.store.upsert_guild_config(
        ctx.guild_id,  # type: ignore[arg-type]
        ctx.guild_name,
        channel_id,
        role_id,
    )
    logger.info(f"Setup completed for server: {ctx.guild_name} ({ctx.guild_id})")
    return CommandReply(
        embed=embeds.setup_complete_embed(channel_id, role_id, deps.schedule_description)
    )


COMMAND_HANDLERS: dict[str, Handler] = {
    "hello": hello,
    "add": add_birthday,
    "show": show_birthday,
    "remove": remove_birthday,
    "list": list_birthdays,
    "check": check_birthdays,
    "stats": birthday_stats,
    "setup": setup_notifications,
}


async def dispatch(name: str, ctx: CommandContext, deps: CommandDeps, **options: Any) -> CommandReply:
    """Run the handler registered for ``name``, converting failures into replies."""
    handler = COMMAND_HANDLERS.get(name)
    if handler is None:
        logger.warning(f"Unknown command: {name}")
        return CommandReply.private(f"Unknown command: {name}")

    try:
        return await handler(ctx, deps, **options)
    except StoreError as e:
        logger.error(f"Store error in /{name} for {ctx.user_id}: {e}")
        return CommandReply.private(STORE_FAILURE_MESSAGE)
    except Exception:
        logger.exception(f"Unexpected error in /{name} for {ctx.user_id}")
        return CommandReply.private(GENERIC_FAILURE_MESSAGE)
