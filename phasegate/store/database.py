"""SQLite connection and migration helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from phasegate.exceptions import StoreUnavailableError
from phasegate.store.repositories import SqliteRecordStore
from phasegate.utils.logging_config import get_logger

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")
DEFAULT_DB_PATH = "data/phasegate.db"

# Bumped whenever schema.sql changes shape; stored in PRAGMA user_version.
SCHEMA_VERSION = 1


async def _init_connection(db: aiosqlite.Connection) -> None:
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute("PRAGMA synchronous = NORMAL")
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA busy_timeout = 5000")


async def _schema_version(db: aiosqlite.Connection) -> int:
    cursor = await db.execute("PRAGMA user_version")
    row = await cursor.fetchone()
    return int(row[0]) if row else 0


async def run_migrations(db: aiosqlite.Connection) -> int:
    """Bring the database up to SCHEMA_VERSION and return the resulting version.

    Raises:
        StoreUnavailableError: The file was written by a newer schema
    """
    current = await _schema_version(db)
    if current > SCHEMA_VERSION:
        raise StoreUnavailableError(
            f"Database schema version {current} is newer than supported version {SCHEMA_VERSION}"
        )
    await db.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    if current < SCHEMA_VERSION:
        logger.debug(f"Migrated record store schema {current} -> {SCHEMA_VERSION}")
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    await db.commit()
    return SCHEMA_VERSION


@asynccontextmanager
async def get_db(db_path: str = DEFAULT_DB_PATH) -> AsyncIterator[aiosqlite.Connection]:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    try:
        db.row_factory = aiosqlite.Row
        await _init_connection(db)
        await run_migrations(db)
        yield db
    finally:
        await db.close()


@asynccontextmanager
async def open_record_store(db_path: str = DEFAULT_DB_PATH) -> AsyncIterator[SqliteRecordStore]:
    """Open a migrated database and wrap it in a SqliteRecordStore."""
    async with get_db(db_path) as db:
        yield SqliteRecordStore(db)
