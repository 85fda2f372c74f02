"""Persistent storage for birthdays, guild settings and the notification log."""

from .connection import DatabaseManager, PoolConfig
from .migrations import MigrationRunner
from .models import BirthdayStats, GuildConfig, Member
from .repository import BirthdayRepository, BirthdayStore, StoreError

__all__ = [
    "BirthdayRepository",
    "BirthdayStats",
    "BirthdayStore",
    "DatabaseManager",
    "GuildConfig",
    "Member",
    "MigrationRunner",
    "PoolConfig",
    "StoreError",
]
