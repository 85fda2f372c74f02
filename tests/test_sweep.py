"""
Tests for the daily birthday sweep.
"""

import asyncio
from datetime import datetime

import pytest
from fakes import CHANNEL_ID, GUILD_ID, JST, ROLE_ID, fixed_clock

from birthday_bot.birthday.sweep import BirthdaySweep
from birthday_bot.database.repository import StoreError


async def _configure_guild(store, platform, guild_id=GUILD_ID, channel_id=CHANNEL_ID, role_id=ROLE_ID):
    await store.upsert_guild_config(guild_id, f"Guild {guild_id}", channel_id, role_id)
    platform.add_guild(guild_id, f"Guild {guild_id}", channel_id, role_id)


class TestNotification:
    """One notification per member, guild and day"""

    async def test_single_match_sends_once_and_logs(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform)

        result = await sweep.run(trigger="scheduled")

        assert platform.sent == [(GUILD_ID, CHANNEL_ID, 42)]
        assert [(uid, gid) for _, uid, gid, _ in store.log] == [(42, GUILD_ID)]
        assert result.matches == 1
        assert result.sent == 1
        assert result.trigger == "scheduled"

    async def test_second_run_same_day_is_noop(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform)

        await sweep.run()
        second = await sweep.run()

        assert len(platform.sent) == 1
        assert len(store.log) == 1
        assert second.sent == 0
        assert second.skipped == 1

    async def test_next_day_notifies_again(self, store, platform, tz):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform)

        first_year = BirthdaySweep(
            store, platform, tz=tz, clock=fixed_clock(datetime(2025, 4, 20, 9, 0, tzinfo=JST))
        )
        await first_year.run()

        store.now = datetime(2026, 4, 20, 9, 0, tzinfo=JST)
        next_year = BirthdaySweep(
            store, platform, tz=tz, clock=fixed_clock(store.now)
        )
        result = await next_year.run()

        assert result.sent == 1
        assert len(platform.sent) == 2

    async def test_every_configured_guild_is_notified(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await store.upsert_member(43, "bob", 4, 20)
        await _configure_guild(store, platform, 1, 11, 111)
        await _configure_guild(store, platform, 2, 22, 222)

        result = await sweep.run()

        assert sorted(platform.sent) == [(1, 11, 42), (1, 11, 43), (2, 22, 42), (2, 22, 43)]
        assert result.sent == 4
        assert len(store.log) == 4

    async def test_other_dates_ignored(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 21)
        await store.upsert_member(43, "bob", 5, 20)
        await _configure_guild(store, platform)

        result = await sweep.run()

        assert result.matches == 0
        assert platform.sent == []


class TestNoMatches:
    async def test_stops_before_reading_guilds(self, store, platform, sweep):
        await _configure_guild(store, platform)
        store.calls.clear()

        result = await sweep.run()

        assert result.matches == 0
        assert "list_guild_configs" not in store.calls
        assert store.log == []
        assert "No birthdays" in result.summary()


class TestFailureIsolation:
    """Broken guilds and failed sends do not stop the rest of the sweep"""

    async def test_missing_channel_skips_only_that_guild(self, store, platform, sweep, caplog):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform, 1, 11, 111)
        await _configure_guild(store, platform, 2, 22, 222)
        del platform.guilds[1].channels[11]

        result = await sweep.run()

        assert platform.sent == [(2, 22, 42)]
        assert result.unresolved_guilds == 1
        assert any("Channel 11 not found" in r.message for r in caplog.records)

    async def test_missing_role_and_guild_are_skipped(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform, 1, 11, 111)
        await _configure_guild(store, platform, 2, 22, 222)
        await _configure_guild(store, platform, 3, 33, 333)
        platform.guilds[1].roles.clear()
        del platform.guilds[2]

        result = await sweep.run()

        assert platform.sent == [(3, 33, 42)]
        assert result.unresolved_guilds == 2

    async def test_failed_send_is_not_logged_and_retried_next_run(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform, 1, 11, 111)
        await _configure_guild(store, platform, 2, 22, 222)
        platform.failing_guilds.add(1)

        first = await sweep.run()
        assert first.failed_sends == 1
        assert first.sent == 1
        assert [(uid, gid) for _, uid, gid, _ in store.log] == [(42, 2)]

        platform.failing_guilds.clear()
        second = await sweep.run()
        assert second.sent == 1
        assert second.skipped == 1
        assert (1, 11, 42) in platform.sent

    async def test_member_error_does_not_stop_other_guilds(self, store, platform, sweep, monkeypatch):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform, 1, 11, 111)
        await _configure_guild(store, platform, 2, 22, 222)
        notified_today = store.has_been_notified_today

        async def broken_for_guild_1(user_id, guild_id, today):
            if guild_id == 1:
                raise ValueError("bad row")
            return await notified_today(user_id, guild_id, today)

        monkeypatch.setattr(store, "has_been_notified_today", broken_for_guild_1)

        result = await sweep.run()

        assert platform.sent == [(2, 22, 42)]
        assert result.sent == 1
        assert result.failed_sends == 1
        assert [(uid, gid) for _, uid, gid, _ in store.log] == [(42, 2)]

    async def test_store_failure_aborts_and_raises(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform)
        store.fail = True

        with pytest.raises(StoreError):
            await sweep.run()

        assert platform.sent == []


class TestConcurrency:
    async def test_overlapping_runs_send_once(self, store, platform, sweep):
        await store.upsert_member(42, "alice", 4, 20)
        await _configure_guild(store, platform)

        results = await asyncio.gather(sweep.run("scheduled"), sweep.run("manual"))

        assert len(platform.sent) == 1
        assert sorted(r.sent for r in results) == [0, 1]

    async def test_last_result_recorded(self, store, platform, sweep):
        assert sweep.last_result is None
        result = await sweep.run("startup")
        assert sweep.last_result is result
        assert result.finished_at is not None


class TestToday:
    def test_today_uses_configured_timezone(self, store, platform, tz):
        # 2025-04-19 20:00 UTC is already April 20 in UTC+9
        moment = datetime.fromisoformat("2025-04-19T20:00:00+00:00")
        sweep = BirthdaySweep(store, platform, tz=tz, clock=fixed_clock(moment))
        assert (sweep.today().month, sweep.today().day) == (4, 20)
