"""Daily birthday sweep: match today's date and notify every configured guild."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo

from birthday_bot.database.models import GuildConfig, Member
from birthday_bot.database.repository import BirthdayStore, StoreError

from .platform import NotificationPlatform, NotificationTarget, TargetNotFound

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Counters for one sweep invocation."""

    day: date
    trigger: str
    matches: int = 0
    guilds: int = 0
    sent: int = 0
    skipped: int = 0
    unresolved_guilds: int = 0
    failed_sends: int = 0
    finished_at: datetime | None = None

    def summary(self) -> str:
        if not self.matches:
            return f"No birthdays on {self.day.month}/{self.day.day}."
        return (
            f"{self.matches} birthday(s) on {self.day.month}/{self.day.day}: "
            f"{self.sent} sent, {self.skipped} already sent today, "
            f"{self.unresolved_guilds} unreachable server(s), {self.failed_sends} failed"
        )


class BirthdaySweep:
    """Finds today's birthdays and posts one notification per member and guild.

    The scheduled run, the startup run and the admin ``check`` command all go
    through ``run()``. Runs are serialised so overlapping triggers cannot send
    the same notification twice; the send log is the source of truth for
    "already notified today".
    """

    def __init__(
        self,
        store: BirthdayStore,
        platform: NotificationPlatform,
        tz: tzinfo = timezone.utc,
        clock: Callable[[tzinfo], datetime] | None = None,
    ) -> None:
        self.store = store
        self.platform = platform
        self.tz = tz
        self._clock = clock or datetime.now
        self._lock = asyncio.Lock()
        self.last_result: SweepResult | None = None

    def today(self) -> date:
        return self._clock(self.tz).date()

    async def run(self, trigger: str = "manual") -> SweepResult:
        """Run one sweep. Raises StoreError if storage is unavailable."""
        async with self._lock:
            today = self.today()
            result = SweepResult(day=today, trigger=trigger)
            logger.info(f"Birthday sweep ({trigger}) for {today.month}/{today.day}")

            members = await self.store.list_members_by_date(today.month, today.day)
            result.matches = len(members)
            if not members:
                logger.info("No birthdays today")
                return self._finish(result)

            configs = await self.store.list_guild_configs()
            result.guilds = len(configs)
            logger.info(f"{len(members)} birthday(s) today across {len(configs)} configured server(s)")

            for config in configs:
                await self._notify_guild(config, members, today, result)

            logger.info(f"Birthday sweep ({trigger}) done: {result.summary()}")
            return self._finish(result)

    def _finish(self, result: SweepResult) -> SweepResult:
        result.finished_at = datetime.now(timezone.utc)
        self.last_result = result
        return result

    async def _notify_guild(
        self,
        config: GuildConfig,
        members: list[Member],
        today: date,
        result: SweepResult,
    ) -> None:
        guild_label = config.guild_name or str(config.guild_id)
        try:
            target = await self.platform.resolve_target(config)
        except Exception:
            logger.exception(f"Failed to resolve notification target for {guild_label}")
            result.unresolved_guilds += 1
            return

        if isinstance(target, TargetNotFound):
            logger.warning(target.describe(guild_label))
            result.unresolved_guilds += 1
            return

        for member in members:
            try:
                await self._notify_member(config, target, member, today, result)
            except StoreError:
                raise
            except Exception:
                logger.exception(
                    f"Failed to notify {target.guild_name} about {member.username}"
                )
                result.failed_sends += 1

    async def _notify_member(
        self,
        config: GuildConfig,
        target: NotificationTarget,
        member: Member,
        today: date,
        result: SweepResult,
    ) -> None:
        if await self.store.has_been_notified_today(member.user_id, config.guild_id, today):
            result.skipped += 1
            return

        try:
            await self.platform.send_birthday(target, member)
        except Exception as e:
            logger.error(
                f"Failed to send birthday message for {member.username} "
                f"to {target.guild_name}: {type(e).__name__}: {e}"
            )
            result.failed_sends += 1
            return

        await self.store.log_notification(member.user_id, config.guild_id)
        result.sent += 1
        logger.info(
            f"Sent birthday message for {member.username} "
            f"to {target.guild_name}/#{target.channel_name}"
        )

