# fitai_pipeline/models/schema.py
"""
Database schema definition for SQLite persistence.

One database holds jobs, generation locks and the durable cache tier.
"""

import logging
from datetime import datetime, timezone

import aiosqlite

logger = logging.getLogger(__name__)

# Bump and add a migration step when a table changes
SCHEMA_VERSION = 1

JOBS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('workout_plan', 'meal_plan')),
    fingerprint TEXT NOT NULL,
    status TEXT NOT NULL CHECK(status IN ('pending', 'processing', 'completed', 'failed', 'expired')),
    input_params TEXT NOT NULL,
    result TEXT,
    error TEXT,
    attempts INTEGER NOT NULL DEFAULT 0,
    cache_source TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
)
"""

JOBS_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_jobs_owner_created ON jobs(owner_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_status_updated ON jobs(status, updated_at)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_fingerprint_status ON jobs(fingerprint, status)",
)

LOCKS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS generation_locks (
    fingerprint TEXT PRIMARY KEY,
    holder_job_id TEXT NOT NULL,
    acquired_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
)
"""

CACHE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    fingerprint TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    metadata TEXT,
    created_at TEXT NOT NULL,
    ttl_seconds INTEGER NOT NULL,
    hit_count INTEGER NOT NULL DEFAULT 0
)
"""


async def _get_schema_version(db: aiosqlite.Connection) -> int:
    """Get current schema version (0 if no version table exists)."""
    try:
        cursor = await db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        return row[0] if row else 0
    except aiosqlite.OperationalError:
        return 0


async def _set_schema_version(db: aiosqlite.Connection, version: int) -> None:
    await db.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER)")
    await db.execute("DELETE FROM schema_version")
    await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


async def init_db(db_path: str) -> None:
    """
    Initialize database schema with WAL mode and optimal settings.

    Settings:
        - WAL mode: Concurrent reads + writes
        - synchronous=NORMAL: Good durability/performance balance
        - busy_timeout=5000ms: Retry on SQLITE_BUSY
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA synchronous=NORMAL")
        await db.execute("PRAGMA busy_timeout=5000")

        await db.execute(JOBS_TABLE_SQL)
        for statement in JOBS_INDEX_SQL:
            await db.execute(statement)
        await db.execute(LOCKS_TABLE_SQL)
        await db.execute(CACHE_TABLE_SQL)

        current_version = await _get_schema_version(db)

        if current_version < SCHEMA_VERSION:
            logger.info(f"Setting schema version: v{current_version} -> v{SCHEMA_VERSION}")
            await _set_schema_version(db, SCHEMA_VERSION)

        await db.commit()

        logger.info(f"Initialized database at {db_path} (schema v{SCHEMA_VERSION})")


def format_ts(value: datetime) -> str:
    """
    Serialize a timestamp for storage.

    Fixed-width UTC text so that SQL string comparison orders timestamps.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
