"""
Tests for the HTTP health check server.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from birthday_bot.birthday.sweep import SweepResult
from birthday_bot.core.health_server import HealthCheckServer


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.is_ready.return_value = True
    bot.user.id = 123456789
    bot.guilds = [object(), object()]
    bot.db.check_health = AsyncMock(return_value=True)
    bot.sweep.last_result = None
    return bot


@pytest.fixture
async def client(bot):
    server = HealthCheckServer(bot, port=0)
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
        yield client


class TestHealthEndpoints:
    async def test_ping(self, client):
        resp = await client.get("/ping")
        assert resp.status == 200
        assert await resp.text() == "pong"

    async def test_health_ready(self, client):
        resp = await client.get("/health")
        assert resp.status == 200
        assert await resp.json() == {"status": "healthy", "ready": True, "database": True}

    async def test_health_database_down(self, client, bot):
        bot.db.check_health.return_value = False

        data = await (await client.get("/health")).json()

        assert data["status"] == "starting"
        assert data["database"] is False

    async def test_status_before_first_sweep(self, client):
        data = await (await client.get("/status")).json()

        assert data["service"] == "birthday-bot"
        assert data["bot_id"] == "123456789"
        assert data["guilds"] == 2
        assert data["last_sweep"] is None

    async def test_status_reports_last_sweep(self, client, bot):
        bot.sweep.last_result = SweepResult(
            day=date(2025, 4, 20),
            trigger="scheduled",
            matches=2,
            guilds=1,
            sent=2,
            finished_at=datetime(2025, 4, 20, 0, 0, 5, tzinfo=timezone.utc),
        )

        data = await (await client.get("/status")).json()

        assert data["last_sweep"]["date"] == "2025-04-20"
        assert data["last_sweep"]["sent"] == 2
        assert data["last_sweep"]["trigger"] == "scheduled"

    async def test_status_not_ready(self, client, bot):
        bot.is_ready.return_value = False

        data = await (await client.get("/status")).json()

        assert data["bot_id"] is None
        assert data["guilds"] == 0
