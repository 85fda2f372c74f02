"""Schema migrations for the birthday tables."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


@dataclass(frozen=True)
class Migration:
    """One ``NNN_description.sql`` file."""

    version: str
    filename: str
    sql: str

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()

    @classmethod
    def from_path(cls, path: Path) -> Migration:
        return cls(version=path.stem, filename=path.name, sql=path.read_text(encoding="utf-8"))


def discover_migrations(directory: Path = VERSIONS_DIR) -> list[Migration]:
    """Migrations in ``directory``, ordered by their numeric prefix."""
    return [Migration.from_path(path) for path in sorted(directory.glob("*.sql"))]


class MigrationRunner:
    """Applies pending migrations and records them in ``schema_migrations``.

    A migration and its tracking row commit in one transaction. Files edited
    after being applied are reported but never re-run.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    checksum   TEXT,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> dict[str, str | None]:
        """Applied versions mapped to the checksum recorded for them."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT version, checksum FROM {self.TRACKING_TABLE}"  # noqa: S608
            )
        return {row["version"]: row["checksum"] for row in rows}

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply every migration not yet recorded. Returns the applied versions."""
        migrations = discover_migrations(migrations_dir or VERSIONS_DIR)
        if not migrations:
            logger.info(f"No migration files found in {migrations_dir or VERSIONS_DIR}")
            return []

        await self.ensure_table()
        applied = await self.get_applied()

        newly_applied: list[str] = []
        for migration in migrations:
            if migration.version not in applied:
                await self._apply(migration)
                newly_applied.append(migration.version)
                continue

            recorded = applied[migration.version]
            if recorded and recorded != migration.checksum:
                logger.warning(
                    f"Migration {migration.filename} changed after it was applied; "
                    "write a new migration instead"
                )

        if newly_applied:
            logger.info(f"Applied {len(newly_applied)} migration(s): {', '.join(newly_applied)}")
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply(self, migration: Migration) -> None:
        logger.info(f"Applying migration {migration.version}")
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(migration.sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name, checksum) "
                    "VALUES ($1, $2, $3)",
                    migration.version,
                    migration.filename,
                    migration.checksum,
                )
