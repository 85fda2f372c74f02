"""Data models for the birthday tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Member:
    """A member's registered birthday."""

    user_id: int
    username: str
    month: int
    day: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def date_display(self) -> str:
        return f"{self.month}/{self.day}"


@dataclass
class GuildConfig:
    """Guild-level notification settings."""

    guild_id: int
    guild_name: str | None
    channel_id: int
    role_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class BirthdayStats:
    """Aggregate numbers for the stats command."""

    total_members: int
    total_guilds: int
    recent_members: int
    top_months: list[tuple[int, int]] = field(default_factory=list)
