"""Chat-platform contract used by the sweep, and its Discord implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol

import discord

from birthday_bot.database.models import GuildConfig, Member

from .embeds import birthday_notification_embed

MissingResource = Literal["guild", "channel", "role"]


@dataclass(frozen=True)
class NotificationTarget:
    """A guild's resolved notification channel and role."""

    guild_id: int
    guild_name: str
    channel_id: int
    channel_name: str
    role_id: int
    # Platform objects, opaque to the sweep
    channel: Any = None
    role: Any = None


@dataclass(frozen=True)
class TargetNotFound:
    """The guild, channel or role of a configuration no longer resolves."""

    guild_id: int
    missing: MissingResource
    resource_id: int

    def describe(self, guild_name: str | None = None) -> str:
        label = guild_name or str(self.guild_id)
        hints = {
            "guild": "bot may have been removed from this server",
            "channel": "channel may have been deleted",
            "role": "role may have been deleted",
        }
        return (
            f"{self.missing.capitalize()} {self.resource_id} not found in {label} - "
            f"{hints[self.missing]}"
        )


class NotificationPlatform(Protocol):
    """What the sweep and stats command need from the chat platform."""

    def is_in_guild(self, guild_id: int) -> bool: ...

    async def resolve_target(self, config: GuildConfig) -> NotificationTarget | TargetNotFound: ...

    async def send_birthday(self, target: NotificationTarget, member: Member) -> None: ...


class DiscordPlatform:
    """NotificationPlatform backed by a connected discord.py client."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    def is_in_guild(self, guild_id: int) -> bool:
        return self.client.get_guild(guild_id) is not None

    async def resolve_target(self, config: GuildConfig) -> NotificationTarget | TargetNotFound:
        guild = self.client.get_guild(config.guild_id)
        if guild is None:
            return TargetNotFound(config.guild_id, "guild", config.guild_id)

        channel = guild.get_channel(config.channel_id)
        if channel is None or not isinstance(channel, discord.abc.Messageable):
            return TargetNotFound(config.guild_id, "channel", config.channel_id)

        role = guild.get_role(config.role_id)
        if role is None:
            return TargetNotFound(config.guild_id, "role", config.role_id)

        return NotificationTarget(
            guild_id=guild.id,
            guild_name=guild.name,
            channel_id=channel.id,
            channel_name=channel.name,
            role_id=role.id,
            channel=channel,
            role=role,
        )

    async def send_birthday(self, target: NotificationTarget, member: Member) -> None:
        """Post the birthday embed, pinging the configured role."""
        role_mention = target.role.mention
        await target.channel.send(
            content=role_mention,
            embed=birthday_notification_embed(member, role_mention),
            allowed_mentions=discord.AllowedMentions(roles=[target.role]),
        )
