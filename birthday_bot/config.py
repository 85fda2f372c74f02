"""Birthday bot configuration"""

import logging
import os
from datetime import time, timedelta, timezone, tzinfo
from pathlib import Path

import discord

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent
PROJECT_DIR = PACKAGE_DIR.parent

BOT_NAME = "birthday-bot"
BOT_VERSION = "1.0.0"

DEFAULT_CHECK_TIME = time(hour=9, minute=0)


def _parse_check_time(value: str, tz: tzinfo) -> time:
    """Parse an HH:MM string into a timezone-aware time"""
    try:
        hour_str, minute_str = value.strip().split(":")
        parsed = time(hour=int(hour_str), minute=int(minute_str), tzinfo=tz)
    except ValueError:
        logger.warning(
            f"Invalid BIRTHDAY_CHECK_TIME {value!r}, expected HH:MM. "
            f"Falling back to {DEFAULT_CHECK_TIME:%H:%M}."
        )
        return DEFAULT_CHECK_TIME.replace(tzinfo=tz)
    return parsed


class BotConfig:
    TOKEN: str = os.getenv("DISCORD_BOT_TOKEN", "")
    GUILD_ID: str = os.getenv("DISCORD_GUILD_ID", "")

    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DATABASE_SSL: str = os.getenv("DATABASE_SSL", "prefer")

    UTC_OFFSET_HOURS: float = float(os.getenv("BIRTHDAY_UTC_OFFSET", "9"))
    CHECK_TIME: str = os.getenv("BIRTHDAY_CHECK_TIME", "09:00")

    HEALTH_SERVER_ENABLED: bool = os.getenv("HEALTH_SERVER_ENABLED", "false").lower() == "true"
    HEALTH_SERVER_PORT: int = int(os.getenv("PORT", "8080"))

    STATUS: str = os.getenv("DISCORD_STATUS", "")
    ACTIVITY_TYPE: str = os.getenv("DISCORD_ACTIVITY_TYPE", "")
    ACTIVITY_NAME: str = os.getenv("DISCORD_ACTIVITY_NAME", "")

    @classmethod
    def get_timezone(cls) -> timezone:
        """Timezone used for "today" and the daily schedule"""
        return timezone(timedelta(hours=cls.UTC_OFFSET_HOURS))

    @classmethod
    def get_check_time(cls) -> time:
        return _parse_check_time(cls.CHECK_TIME, cls.get_timezone())

    @classmethod
    def describe_check_time(cls) -> str:
        """Human-readable schedule, e.g. 'Every day at 09:00 (UTC+09:00)'"""
        check_time = cls.get_check_time()
        return f"Every day at {check_time:%H:%M} ({cls.get_timezone().tzname(None)})"

    @classmethod
    def get_status(cls) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(cls.STATUS.lower(), discord.Status.online)

    @classmethod
    def get_activity(cls) -> discord.Activity | None:
        """Get bot activity from environment variables

        Supports: playing, listening, watching, competing
        """
        if not cls.ACTIVITY_NAME:
            return None

        activity_map = {
            "playing": discord.ActivityType.playing,
            "listening": discord.ActivityType.listening,
            "watching": discord.ActivityType.watching,
            "competing": discord.ActivityType.competing,
        }
        activity_type = activity_map.get(cls.ACTIVITY_TYPE.lower(), discord.ActivityType.playing)
        return discord.Activity(type=activity_type, name=cls.ACTIVITY_NAME)
