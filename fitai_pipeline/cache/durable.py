# fitai_pipeline/cache/durable.py
"""
DURABLE cache tier: SQLite table cache_entries.

Survives restarts and is the authoritative copy of every cached result.
"""

import json
import logging
from datetime import datetime
from typing import Any

import aiosqlite

from fitai_pipeline.models.jobs import utcnow
from fitai_pipeline.models.schema import format_ts, parse_ts

from .models import CacheEntry, CacheTier

logger = logging.getLogger(__name__)


class DurableCacheTier:
    """Async SQLite-backed cache tier sharing the job database."""

    def __init__(self, db_path: str, ttl_seconds: int = 7 * 24 * 3600) -> None:
        self._db_path = db_path
        self._ttl = ttl_seconds

    async def get(self, fingerprint: str, now: datetime | None = None) -> CacheEntry | None:
        """
        Fetch a live entry and bump its hit_count.

        Expired rows are left in place and reported as a miss.
        """
        now = now or utcnow()
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM cache_entries WHERE fingerprint = ?", (fingerprint,)
            )
            row = await cursor.fetchone()
            if not row:
                return None

            entry = CacheEntry(
                fingerprint=row["fingerprint"],
                tier=CacheTier.DURABLE,
                payload=json.loads(row["payload"]),
                created_at=parse_ts(row["created_at"]),
                ttl_seconds=row["ttl_seconds"],
                hit_count=row["hit_count"],
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            )
            if entry.is_expired(now):
                return None

            await db.execute(
                "UPDATE cache_entries SET hit_count = hit_count + 1 WHERE fingerprint = ?",
                (fingerprint,),
            )
            await db.commit()
            entry.hit_count += 1
            return entry

    async def put(
        self,
        fingerprint: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> CacheEntry:
        """Store an entry, replacing any previous one for the fingerprint."""
        entry = CacheEntry(
            fingerprint=fingerprint,
            tier=CacheTier.DURABLE,
            payload=payload,
            created_at=now or utcnow(),
            ttl_seconds=self._ttl,
            metadata=dict(metadata or {}),
        )
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO cache_entries
                    (fingerprint, payload, metadata, created_at, ttl_seconds, hit_count)
                VALUES (?, ?, ?, ?, ?, 0)
                """,
                (
                    fingerprint,
                    json.dumps(payload),
                    json.dumps(entry.metadata),
                    format_ts(entry.created_at),
                    entry.ttl_seconds,
                ),
            )
            await db.commit()
        return entry

    async def delete(self, fingerprint: str) -> bool:
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "DELETE FROM cache_entries WHERE fingerprint = ?", (fingerprint,)
            )
            await db.commit()
            return cursor.rowcount == 1
