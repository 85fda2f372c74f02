"""Repository for birthday_members, birthday_guilds and birthday_notifications."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Protocol

import asyncpg

from .models import BirthdayStats, GuildConfig, Member

MEMBER_COLUMNS = "user_id, username, month, day, created_at, updated_at"
GUILD_COLUMNS = "guild_id, guild_name, channel_id, role_id, created_at, updated_at"

# Driver-level failures that mean the store itself is unavailable
STORE_FAILURES = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class StoreError(Exception):
    """The birthday store could not complete a read or write."""


class BirthdayStore(Protocol):
    """Operations the sweep and command handlers need from storage."""

    async def get_member(self, user_id: int) -> Member | None: ...

    async def upsert_member(self, user_id: int, username: str, month: int, day: int) -> None: ...

    async def delete_member(self, user_id: int) -> bool: ...

    async def list_members_by_date(self, month: int, day: int) -> list[Member]: ...

    async def list_members(self) -> list[Member]: ...

    async def upsert_guild_config(
        self, guild_id: int, guild_name: str | None, channel_id: int, role_id: int
    ) -> None: ...

    async def get_guild_config(self, guild_id: int) -> GuildConfig | None: ...

    async def list_guild_configs(self) -> list[GuildConfig]: ...

    async def log_notification(self, user_id: int, guild_id: int) -> int: ...

    async def has_been_notified_today(self, user_id: int, guild_id: int, today: date) -> bool: ...

    async def get_stats(self, recent_since: datetime) -> BirthdayStats: ...


def _rows_affected(status: str) -> int:
    """Parse the row count from a command tag such as ``DELETE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class BirthdayRepository:
    """SQL operations for the birthday feature tables.

    ``tz`` decides where a calendar day starts when checking the send log.
    """

    def __init__(self, pool: asyncpg.Pool, tz: tzinfo = timezone.utc) -> None:
        self.pool = pool
        self.tz = tz

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except STORE_FAILURES as e:
            raise StoreError(f"{type(e).__name__}: {e}") from e

    # ==================== Members ====================

    async def get_member(self, user_id: int) -> Member | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {MEMBER_COLUMNS} FROM birthday_members WHERE user_id = $1",
                user_id,
            )
        return Member(**dict(row)) if row else None

    async def upsert_member(self, user_id: int, username: str, month: int, day: int) -> None:
        """Insert or replace a member's birthday."""
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO birthday_members (user_id, username, month, day)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id) DO UPDATE SET
                    username   = EXCLUDED.username,
                    month      = EXCLUDED.month,
                    day        = EXCLUDED.day,
                    updated_at = NOW()
                """,
                user_id,
                username,
                month,
                day,
            )

    async def delete_member(self, user_id: int) -> bool:
        """Delete a member's birthday. Returns True if a row was deleted."""
        async with self._connection() as conn:
            status: str = await conn.execute(
                "DELETE FROM birthday_members WHERE user_id = $1",
                user_id,
            )
        return _rows_affected(status) > 0

    async def list_members_by_date(self, month: int, day: int) -> list[Member]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {MEMBER_COLUMNS} FROM birthday_members
                WHERE month = $1 AND day = $2
                ORDER BY user_id
                """,
                month,
                day,
            )
        return [Member(**dict(row)) for row in rows]

    async def list_members(self) -> list[Member]:
        """All registered birthdays ordered by (month, day)."""
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {MEMBER_COLUMNS} FROM birthday_members
                ORDER BY month, day, username
                """
            )
        return [Member(**dict(row)) for row in rows]

    # ==================== Guild settings ====================

    async def upsert_guild_config(
        self,
        guild_id: int,
        guild_name: str | None,
        channel_id: int,
        role_id: int,
    ) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO birthday_guilds (guild_id, guild_name, channel_id, role_id)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (guild_id) DO UPDATE SET
                    guild_name = EXCLUDED.guild_name,
                    channel_id = EXCLUDED.channel_id,
                    role_id    = EXCLUDED.role_id,
                    updated_at = NOW()
                """,
                guild_id,
                guild_name,
                channel_id,
                role_id,
            )

    async def get_guild_config(self, guild_id: int) -> GuildConfig | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {GUILD_COLUMNS} FROM birthday_guilds WHERE guild_id = $1",
                guild_id,
            )
        return GuildConfig(**dict(row)) if row else None

    async def list_guild_configs(self) -> list[GuildConfig]:
        async with self._connection() as conn:
            rows = await conn.fetch(f"SELECT {GUILD_COLUMNS} FROM birthday_guilds")
        return [GuildConfig(**dict(row)) for row in rows]

    # ==================== Notification log ====================

    async def log_notification(self, user_id: int, guild_id: int) -> int:
        """Record a delivered notification. Returns the new log id."""
        async with self._connection() as conn:
            log_id: int = await conn.fetchval(
                """
                INSERT INTO birthday_notifications (user_id, guild_id)
                VALUES ($1, $2)
                RETURNING id
                """,
                user_id,
                guild_id,
            )
        return log_id

    async def has_been_notified_today(self, user_id: int, guild_id: int, today: date) -> bool:
        """Whether the log holds an entry for this member and guild on ``today``."""
        day_start = datetime.combine(today, time.min, tzinfo=self.tz)
        day_end = day_start + timedelta(days=1)
        async with self._connection() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM birthday_notifications
                    WHERE user_id = $1 AND guild_id = $2
                      AND sent_at >= $3 AND sent_at < $4
                )
                """,
                user_id,
                guild_id,
                day_start,
                day_end,
            )
        return bool(found)

    # ==================== Statistics ====================

    async def get_stats(self, recent_since: datetime) -> BirthdayStats:
        async with self._connection() as conn:
            total_members = await conn.fetchval("SELECT COUNT(*) FROM birthday_members")
            total_guilds = await conn.fetchval("SELECT COUNT(*) FROM birthday_guilds")
            recent_members = await conn.fetchval(
                "SELECT COUNT(*) FROM birthday_members WHERE created_at >= $1",
                recent_since,
            )
            month_rows = await conn.fetch(
                """
                SELECT month, COUNT(*) AS count
                FROM birthday_members
                GROUP BY month
                ORDER BY count DESC, month
                LIMIT 3
                """
            )
        return BirthdayStats(
            total_members=total_members,
            total_guilds=total_guilds,
            recent_members=recent_members,
            top_months=[(row["month"], row["count"]) for row in month_rows],
        )
