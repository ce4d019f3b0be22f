"""SQLite database engine with WAL mode for concurrent reads."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from solarsnoop.db.migrations import run_migrations

logger = logging.getLogger(__name__)


async def init_db(db_path: str | Path) -> aiosqlite.Connection:
    """Open the database with WAL mode and run migrations.

    ":memory:" opens a private in-memory database.
    """
    target = str(db_path)
    if target != ":memory:":
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        target = str(path)

    db = await aiosqlite.connect(target)
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA synchronous=FULL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.execute("PRAGMA busy_timeout=5000")
    db.row_factory = aiosqlite.Row

    await run_migrations(db)
    logger.info("Database initialised at %s", target)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Checkpoint the WAL and close the connection."""
    try:
        await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
    except aiosqlite.Error:
        logger.warning("WAL checkpoint failed on close", exc_info=True)
    await db.close()
    logger.info("Database connection closed")
