"""
Shared pytest fixtures for birthday bot tests.
"""

from datetime import datetime

import pytest
from fakes import GUILD_ID, JST, FakePlatform, InMemoryBirthdayStore, fixed_clock

from birthday_bot.birthday.commands import CommandContext, CommandDeps
from birthday_bot.birthday.sweep import BirthdaySweep


@pytest.fixture
def tz():
    return JST


@pytest.fixture
def reference_now():
    """Fixed reference moment: April 20, 2025 10:00 UTC+9"""
    return datetime(2025, 4, 20, 10, 0, 0, tzinfo=JST)


@pytest.fixture
def store(tz, reference_now):
    return InMemoryBirthdayStore(tz=tz, now=reference_now)


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def sweep(store, platform, tz, reference_now):
    return BirthdaySweep(store, platform, tz=tz, clock=fixed_clock(reference_now))


@pytest.fixture
def deps(store, platform, sweep):
    return CommandDeps(
        store=store,
        sweep=sweep,
        platform=platform,
        schedule_description="Every day at 09:00 (UTC+09:00)",
    )


@pytest.fixture
def member_ctx():
    return CommandContext(
        user_id=42, username="alice", guild_id=GUILD_ID, guild_name="Cake Club", is_admin=False
    )


@pytest.fixture
def admin_ctx():
    return CommandContext(
        user_id=7, username="mod", guild_id=GUILD_ID, guild_name="Cake Club", is_admin=True
    )
