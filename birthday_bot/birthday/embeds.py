"""Embed builders for birthday replies and notifications."""

from __future__ import annotations

from collections.abc import Sequence

import discord

from birthday_bot.database.models import BirthdayStats, Member

from .constants import (
    BIRTHDAY_COLOR,
    DATE_EXAMPLES,
    EMBED_DESCRIPTION_LIMIT,
    ERROR_COLOR,
    INFO_COLOR,
    MONTH_NAMES,
    SUCCESS_COLOR,
    WARNING_COLOR,
)


def birthday_notification_embed(member: Member, role_mention: str) -> discord.Embed:
    embed = discord.Embed(
        title="Happy birthday!",
        description=f"It is {member.username}'s birthday today!",
        color=BIRTHDAY_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(name="Birthday", value=member.date_display, inline=True)
    embed.add_field(
        name="Celebration", value=f"{role_mention} Wish them a happy birthday!", inline=True
    )
    return embed


def invalid_date_embed(reason: str) -> discord.Embed:
    embed = discord.Embed(title="Date is invalid", description=reason, color=ERROR_COLOR)
    embed.add_field(name="Examples", value=DATE_EXAMPLES, inline=False)
    return embed


def birthday_added_embed(month: int, day: int, date_format: str) -> discord.Embed:
    embed = discord.Embed(
        title="Birthday added!",
        description=f"Your birthday is now saved as {month}/{day}",
        color=SUCCESS_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=f"Detected format {date_format}")
    return embed


def show_birthday_embed(member: Member) -> discord.Embed:
    return discord.Embed(
        title="Your birthday",
        description=f"Your birthday is {member.date_display}",
        color=INFO_COLOR,
        timestamp=discord.utils.utcnow(),
    )


def no_birthday_embed() -> discord.Embed:
    embed = discord.Embed(
        title="No Birthday found",
        description="You may have not set your birthday",
        color=WARNING_COLOR,
    )
    embed.add_field(
        name="How to add your birthday",
        value="Use `/birthday add` followed by your date in MM/DD format",
        inline=False,
    )
    return embed


def birthday_list_embed(members: Sequence[Member]) -> discord.Embed:
    """All registered birthdays, truncated to fit one embed."""
    lines: list[str] = []
    length = 0
    for member in members:
        line = f"**{discord.utils.escape_markdown(member.username)}**: {member.date_display}"
        # Leave room for the truncation marker
        if length + len(line) + 1 > EMBED_DESCRIPTION_LIMIT - 32:
            lines.append(f"… and {len(members) - len(lines)} more")
            break
        lines.append(line)
        length += len(line) + 1

    embed = discord.Embed(
        title="All registered Birthdays",
        description="\n".join(lines),
        color=INFO_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=f"Total: {len(members)} birthdays")
    return embed


def stats_embed(stats: BirthdayStats, server_status: Sequence[tuple[str, bool]]) -> discord.Embed:
    top_months = "\n".join(
        f"{MONTH_NAMES[month - 1]}: {count}" for month, count in stats.top_months
    ) or "NO DATA"
    status_lines = "\n".join(
        f"{'✅' if present else '❌'} {name}" for name, present in server_status
    ) or "No servers configured"

    embed = discord.Embed(
        title="Birthday statistics", color=INFO_COLOR, timestamp=discord.utils.utcnow()
    )
    embed.add_field(name="Total users", value=str(stats.total_members), inline=True)
    embed.add_field(name="Configured servers", value=str(stats.total_guilds), inline=True)
    embed.add_field(name="Recently registered", value=str(stats.recent_members), inline=True)
    embed.add_field(name="Popular months", value=top_months, inline=False)
    embed.add_field(
        name="Server Status (✅ = bot present)", value=status_lines[:1024], inline=False
    )
    return embed


def setup_complete_embed(channel_id: int, role_id: int, schedule: str) -> discord.Embed:
    embed = discord.Embed(
        title="Birthday Notifications configured",
        description="Birthday notifications have been configured",
        color=SUCCESS_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(name="Birthday Channel", value=f"<#{channel_id}>", inline=True)
    embed.add_field(name="Role", value=f"<@&{role_id}>", inline=True)
    embed.add_field(name="Next Check", value=schedule, inline=False)
    embed.set_footer(text="Users can now add their birthday with /birthday add")
    return embed


def hello_embed() -> discord.Embed:
    return discord.Embed(
        title="Hello!",
        description="I am the birthday bot!",
        color=INFO_COLOR,
        timestamp=discord.utils.utcnow(),
    )
