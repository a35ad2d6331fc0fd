"""Database schema creation and version tracking."""

from __future__ import annotations

import logging

import aiosqlite

from fusion_sync.db.models import SCHEMA_VERSION, TABLES

logger = logging.getLogger(__name__)


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Bring the schema up to ``SCHEMA_VERSION``.

    Every DDL statement is ``IF NOT EXISTS``, so replaying them over an older
    or partially created schema adds only what is missing.
    """
    current = await _get_current_version(db)
    if current >= SCHEMA_VERSION:
        logger.debug("Database schema is up to date (version %d)", current)
        return

    logger.info("Applying database schema (version %d -> %d)", current, SCHEMA_VERSION)
    for statement in TABLES:
        await db.execute(statement)
    await db.execute(
        "INSERT OR REPLACE INTO schema_version (id, version) VALUES (1, ?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info("Schema at version %d", SCHEMA_VERSION)


async def _get_current_version(db: aiosqlite.Connection) -> int:
    """Recorded schema version, 0 when nothing has been recorded yet."""
    try:
        async with db.execute("SELECT version FROM schema_version WHERE id = 1") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
    except aiosqlite.OperationalError:
        return 0
