"""asyncpg pool lifecycle for the birthday store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Pool sizing, timeouts and connect retry policy."""

    min_size: int = 1
    max_size: int = 4
    timeout: float = 5.0
    command_timeout: float = 15.0
    idle_lifetime: float = 300.0
    health_timeout: float = 2.0
    max_retries: int = 3
    retry_delay: float = 3.0
    ssl: str = "prefer"

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after failed ``attempt`` (1-based)."""
        return self.retry_delay * 2 ** (attempt - 1)

    def pool_kwargs(self) -> dict[str, Any]:
        return {
            "min_size": self.min_size,
            "max_size": self.max_size,
            "timeout": self.timeout,
            "command_timeout": self.command_timeout,
            "max_inactive_connection_lifetime": self.idle_lifetime,
            "ssl": self.ssl,
        }


class DatabaseManager:
    """Owns the asyncpg pool used by the repository.

    ``connect()`` retries with exponential backoff and only hands out a pool
    that has answered ``SELECT 1``.
    """

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        if not database_url:
            raise ValueError("DATABASE_URL environment variable is not set")
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None

    @property
    def safe_url(self) -> str:
        """Host and database part of the DSN, without credentials."""
        return self.database_url.rsplit("@", 1)[-1] if "@" in self.database_url else "local"

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

    async def _setup_connection(self, conn: asyncpg.Connection) -> None:
        # Server-side limit matching the client-side command timeout
        await conn.execute(f"SET statement_timeout = {int(self.config.command_timeout * 1000)}")

    async def _open_verified_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            dsn=self.database_url, init=self._setup_connection, **self.config.pool_kwargs()
        )
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> asyncpg.Pool:
        """Open the pool, retrying up to ``max_retries`` times."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return self._pool

        cfg = self.config
        logger.info(f"Connecting to database: {self.safe_url}")
        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await self._open_verified_pool()
            except Exception as e:
                if attempt == cfg.max_retries:
                    logger.error(
                        f"Database connection failed after {attempt} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise
                delay = cfg.backoff(attempt)
                logger.warning(
                    f"Database connection attempt {attempt}/{cfg.max_retries} failed "
                    f"({type(e).__name__}: {e}), retrying in {delay:.0f}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.info(f"Database pool ready (size {cfg.min_size}-{cfg.max_size})")
                return self._pool

        raise ValueError(f"max_retries must be at least 1, got {cfg.max_retries}")

    async def disconnect(self) -> None:
        """Close the pool; a no-op when already closed."""
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
            logger.info("Database pool closed")
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")

    async def check_health(self) -> bool:
        """Whether the pool can run a query right now."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=self.config.health_timeout) as conn:
                await conn.fetchval("SELECT 1")
        except Exception:
            return False
        return True
