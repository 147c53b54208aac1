# fitai_pipeline/models/locks.py
"""
Per-fingerprint generation locks.

A lock is a lease: it names the job allowed to generate a fingerprint and
lapses on its own at expires_at, so a crashed holder never blocks a
fingerprint forever. Acquisition runs under BEGIN IMMEDIATE, so the
check-and-claim is atomic across connections.
"""

import logging
from datetime import datetime, timedelta

import aiosqlite

from fitai_pipeline.models.jobs import GenerationLock, utcnow
from fitai_pipeline.models.schema import format_ts, parse_ts

logger = logging.getLogger(__name__)


class LockStore:
    """SQLite-backed generation locks (table generation_locks)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def acquire(
        self,
        fingerprint: str,
        holder_job_id: str,
        lease_seconds: float,
        now: datetime | None = None,
    ) -> bool:
        """
        Claim the fingerprint for a job.

        Succeeds only when no live lock exists, even one held by the same job:
        a job resumed while its own lease is still live is deferred until the
        lease lapses. Use renew() to extend a lease the caller holds.

        Returns:
            True if holder_job_id now holds the lock
        """
        now = now or utcnow()
        expires_at = now + timedelta(seconds=lease_seconds)

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute(
                    "SELECT holder_job_id, expires_at FROM generation_locks WHERE fingerprint = ?",
                    (fingerprint,),
                )
                row = await cursor.fetchone()

                if row and parse_ts(row[1]) > now:
                    await db.rollback()
                    logger.info(
                        f"Lock on {fingerprint[:12]} held by {row[0]}, job {holder_job_id} deferred",
                        extra={"job_id": holder_job_id, "fingerprint": fingerprint},
                    )
                    return False

                await db.execute(
                    """
                    INSERT OR REPLACE INTO generation_locks
                        (fingerprint, holder_job_id, acquired_at, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (fingerprint, holder_job_id, format_ts(now), format_ts(expires_at)),
                )
                await db.commit()

            except Exception:
                await db.rollback()
                raise

        if row and row[0] != holder_job_id:
            logger.warning(
                f"Took over expired lock on {fingerprint[:12]} from {row[0]}",
                extra={"job_id": holder_job_id, "fingerprint": fingerprint},
            )
        return True

    async def renew(self, fingerprint: str, holder_job_id: str, lease_seconds: float) -> bool:
        """
        Extend the lease of a lock the job still holds.

        Returns:
            False if the lock is gone or held by another job
        """
        expires_at = utcnow() + timedelta(seconds=lease_seconds)
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                """
                UPDATE generation_locks SET expires_at = ?
                WHERE fingerprint = ? AND holder_job_id = ?
                """,
                (format_ts(expires_at), fingerprint, holder_job_id),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def release(self, fingerprint: str, holder_job_id: str) -> bool:
        """
        Release a lock. Only the holder can release it.

        Returns:
            True if a lock held by holder_job_id was removed
        """
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "DELETE FROM generation_locks WHERE fingerprint = ? AND holder_job_id = ?",
                (fingerprint, holder_job_id),
            )
            await db.commit()
            released = cursor.rowcount == 1

        if not released:
            logger.warning(
                f"Job {holder_job_id} does not hold the lock on {fingerprint[:12]}",
                extra={"job_id": holder_job_id, "fingerprint": fingerprint},
            )
        return released

    async def get(self, fingerprint: str) -> GenerationLock | None:
        """Current lock row for a fingerprint, live or lapsed."""
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                """
                SELECT fingerprint, holder_job_id, acquired_at, expires_at
                FROM generation_locks WHERE fingerprint = ?
                """,
                (fingerprint,),
            )
            row = await cursor.fetchone()

        if not row:
            return None
        return GenerationLock(
            fingerprint=row[0],
            holder_job_id=row[1],
            acquired_at=parse_ts(row[2]),
            expires_at=parse_ts(row[3]),
        )

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete lapsed locks. Returns the number removed."""
        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "DELETE FROM generation_locks WHERE expires_at <= ?",
                (format_ts(now or utcnow()),),
            )
            await db.commit()
            purged = cursor.rowcount

        if purged:
            logger.info(f"Purged {purged} expired generation lock(s)")
        return purged
