"""HTTP health check server"""

import asyncio
import logging
import time
from typing import Any

from aiohttp import web

from birthday_bot.config import BOT_NAME

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300


def sweep_summary(result: Any) -> dict[str, Any] | None:
    """JSON view of a SweepResult"""
    if result is None:
        return None
    return {
        "trigger": result.trigger,
        "date": result.day.isoformat(),
        "matches": result.matches,
        "sent": result.sent,
        "skipped": result.skipped,
        "unresolved_guilds": result.unresolved_guilds,
        "failed_sends": result.failed_sends,
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
    }


class HealthCheckServer:
    """Liveness and status endpoints for the hosting platform.

    ``bot`` is a ``BirthdayBot``; only ``is_ready()``, ``user``, ``guilds``,
    ``db`` and ``sweep`` are read.
    """

    def __init__(self, bot: Any, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.bot = bot
        self.host = host
        self.port = port
        self.runner: web.AppRunner | None = None
        self._started = time.monotonic()
        self._heartbeat_task: asyncio.Task | None = None

        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/health", self.handle_health),
                web.get("/status", self.handle_status),
                web.get("/ping", self.handle_ping),
            ]
        )

    @property
    def uptime(self) -> int:
        return int(time.monotonic() - self._started)

    def _guild_count(self) -> int:
        return len(self.bot.guilds) if self.bot.is_ready() else 0

    async def handle_health(self, request: web.Request) -> web.Response:
        """Always 200; ``status`` is healthy once the gateway and database are both up"""
        ready = self.bot.is_ready()
        database = await self.bot.db.check_health()
        return web.json_response(
            {
                "status": "healthy" if ready and database else "starting",
                "ready": ready,
                "database": database,
            }
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        user = self.bot.user if self.bot.is_ready() else None
        sweep = getattr(self.bot, "sweep", None)
        return web.json_response(
            {
                "service": BOT_NAME,
                "bot_id": str(user.id) if user else None,
                "uptime_seconds": self.uptime,
                "guilds": self._guild_count(),
                "last_sweep": sweep_summary(sweep.last_result if sweep else None),
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            logger.info(
                f"Heartbeat: uptime={self.uptime}s, ready={self.bot.is_ready()}, "
                f"guilds={self._guild_count()}"
            )

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        await web.TCPSite(self.runner, self.host, self.port).start()
        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        logger.info(f"Health server listening on http://{self.host}:{self.port}/health")

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner is None:
            return
        try:
            await self.runner.cleanup()
            logger.info("Health server stopped")
        except Exception as e:
            logger.exception(f"Error stopping health server: {e}")
        finally:
            self.runner = None
