# fitai_pipeline/models/sqlite_store.py
"""
SQLite-backed job persistence.

Provides async CRUD operations with WAL mode and IMMEDIATE transactions.
Status changes go through transition(), a compare-and-set, so that two
processors can never both move the same job.
"""

import json
import logging
from datetime import datetime

import aiosqlite

from fitai_pipeline.models.jobs import GenerationJob, JobError, JobKind, JobStatus, utcnow
from fitai_pipeline.models.schema import format_ts, init_db, parse_ts
from fitai_pipeline.models.store import JobStore

logger = logging.getLogger(__name__)

_ACTIVE = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)

_UPDATABLE_FIELDS = {
    "status",
    "result",
    "error",
    "attempts",
    "cache_source",
    "expires_at",
    "updated_at",
}


def _serialize(key: str, value):
    if value is None:
        return None
    if key == "status" and isinstance(value, JobStatus):
        return value.value
    if key == "result":
        return json.dumps(value)
    if key == "error":
        if isinstance(value, JobError):
            return value.model_dump_json()
        return json.dumps(value)
    if isinstance(value, datetime):
        return format_ts(value)
    return value


class SQLiteJobStore(JobStore):
    """
    Async SQLite-backed job storage.

    Features:
        - WAL mode for concurrent reads/writes
        - IMMEDIATE transactions for write safety
        - Compare-and-set status transitions
        - No persistent connections (avoids resource leaks)
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        logger.info(f"Created SQLiteJobStore with path: {db_path}")

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """Initialize database schema (jobs, locks, durable cache)."""
        await init_db(self._db_path)

    async def add(self, job: GenerationJob) -> None:
        """
        Add a job to the store.

        Raises:
            ValueError: If job_id already exists
        """
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute("SELECT id FROM jobs WHERE id = ?", (job.job_id,))
                if await cursor.fetchone():
                    raise ValueError(f"Job {job.job_id} already exists")

                await db.execute(
                    """
                    INSERT INTO jobs (
                        id, owner_id, kind, fingerprint, status, input_params,
                        result, error, attempts, cache_source,
                        created_at, updated_at, expires_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job.job_id,
                        job.owner_id,
                        job.kind.value,
                        job.fingerprint,
                        job.status.value,
                        json.dumps(job.input_params),
                        _serialize("result", job.result),
                        _serialize("error", job.error),
                        job.attempts,
                        job.cache_source,
                        format_ts(job.created_at),
                        format_ts(job.updated_at),
                        format_ts(job.expires_at),
                    ),
                )

                await db.commit()
                logger.info(f"Added job {job.job_id} ({job.kind.value}, {job.status.value})")

            except Exception:
                await db.rollback()
                raise

    async def get(self, job_id: str) -> GenerationJob | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()

            if not row:
                return None

            return self._row_to_job(row)

    async def list_for_owner(self, owner_id: str) -> list[GenerationJob]:
        """List one owner's jobs, newest first."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM jobs WHERE owner_id = ? ORDER BY created_at DESC, id",
                (owner_id,),
            )
            rows = await cursor.fetchall()

            return [self._row_to_job(row) for row in rows]

    async def update(self, job_id: str, **kwargs) -> None:
        """
        Update fields on an existing job.

        Raises:
            ValueError: If job_id doesn't exist or invalid field name
        """
        invalid = set(kwargs.keys()) - _UPDATABLE_FIELDS
        if invalid:
            raise ValueError(f"Invalid field names: {invalid}")

        if not kwargs:
            return

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute("SELECT id FROM jobs WHERE id = ?", (job_id,))
                if not await cursor.fetchone():
                    raise ValueError(f"Job {job_id} not found")

                set_clause, values = self._set_clause(kwargs)
                values.append(job_id)
                await db.execute(f"UPDATE jobs SET {set_clause} WHERE id = ?", values)

                await db.commit()
                logger.debug(f"Updated job {job_id}: {list(kwargs.keys())}")

            except Exception:
                await db.rollback()
                raise

    async def transition(
        self,
        job_id: str,
        expected: JobStatus | tuple[JobStatus, ...],
        new_status: JobStatus,
        **kwargs,
    ) -> bool:
        """
        Compare-and-set the status of a job.

        Args:
            job_id: Job identifier
            expected: Status (or statuses) the job must currently be in
            new_status: Status to move to
            **kwargs: Additional fields written in the same statement

        Returns:
            True if the row moved, False if it was not in an expected status

        Raises:
            ValueError: If a field name is invalid
        """
        invalid = set(kwargs.keys()) - _UPDATABLE_FIELDS
        if invalid:
            raise ValueError(f"Invalid field names: {invalid}")

        if isinstance(expected, JobStatus):
            expected = (expected,)

        fields = {"status": new_status, **kwargs}
        set_clause, values = self._set_clause(fields)
        placeholders = ", ".join("?" for _ in expected)
        values.append(job_id)
        values.extend(status.value for status in expected)

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute(
                    f"UPDATE jobs SET {set_clause} WHERE id = ? AND status IN ({placeholders})",
                    values,
                )
                moved = cursor.rowcount == 1
                await db.commit()

            except Exception:
                await db.rollback()
                raise

        if moved:
            logger.info(
                f"Job {job_id} -> {new_status.value}",
                extra={"job_id": job_id},
            )
        else:
            logger.debug(
                f"Job {job_id} not moved to {new_status.value} "
                f"(expected {[s.value for s in expected]})"
            )
        return moved

    async def increment_attempts(self, job_id: str) -> int:
        """
        Atomically bump the attempt counter.

        Raises:
            ValueError: If job_id doesn't exist
        """
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute(
                    "UPDATE jobs SET attempts = attempts + 1, updated_at = ? WHERE id = ?",
                    (format_ts(utcnow()), job_id),
                )
                if cursor.rowcount != 1:
                    raise ValueError(f"Job {job_id} not found")
                cursor = await db.execute("SELECT attempts FROM jobs WHERE id = ?", (job_id,))
                row = await cursor.fetchone()
                await db.commit()

            except Exception:
                await db.rollback()
                raise

        return row[0]

    async def find_stale(self, older_than: datetime, limit: int = 50) -> list[GenerationJob]:
        """PENDING/PROCESSING jobs not updated since older_than, oldest first."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM jobs
                WHERE status IN (?, ?) AND updated_at < ?
                ORDER BY updated_at ASC, id
                LIMIT ?
                """,
                (*_ACTIVE, format_ts(older_than), limit),
            )
            rows = await cursor.fetchall()

            return [self._row_to_job(row) for row in rows]

    async def find_overdue(self, now: datetime) -> list[GenerationJob]:
        """PENDING/PROCESSING jobs whose expires_at has passed."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM jobs WHERE status IN (?, ?) AND expires_at < ? ORDER BY expires_at",
                (*_ACTIVE, format_ts(now)),
            )
            rows = await cursor.fetchall()

            return [self._row_to_job(row) for row in rows]

    async def find_waiting(self, fingerprint: str) -> list[GenerationJob]:
        """PENDING jobs deferred on a fingerprint, oldest first."""
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """
                SELECT * FROM jobs
                WHERE fingerprint = ? AND status = ?
                ORDER BY created_at ASC, id
                """,
                (fingerprint, JobStatus.PENDING.value),
            )
            rows = await cursor.fetchall()

            return [self._row_to_job(row) for row in rows]

    async def close(self) -> None:
        """
        Checkpoint WAL and close database.

        Truncates WAL file to avoid unbounded growth.
        """
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                logger.info("WAL checkpoint completed")
        except aiosqlite.Error as e:
            logger.warning(f"WAL checkpoint failed: {e}")

    @staticmethod
    def _set_clause(fields: dict) -> tuple[str, list]:
        set_parts = []
        values = []
        for key, value in fields.items():
            set_parts.append(f"{key} = ?")
            values.append(_serialize(key, value))

        # Always update updated_at
        if "updated_at" not in fields:
            set_parts.append("updated_at = ?")
            values.append(format_ts(utcnow()))

        return ", ".join(set_parts), values

    def _row_to_job(self, row: aiosqlite.Row) -> GenerationJob:
        return GenerationJob(
            job_id=row["id"],
            owner_id=row["owner_id"],
            kind=JobKind(row["kind"]),
            fingerprint=row["fingerprint"],
            status=JobStatus(row["status"]),
            input_params=json.loads(row["input_params"]),
            result=json.loads(row["result"]) if row["result"] else None,
            error=JobError.model_validate_json(row["error"]) if row["error"] else None,
            attempts=row["attempts"],
            cache_source=row["cache_source"],
            created_at=parse_ts(row["created_at"]),
            updated_at=parse_ts(row["updated_at"]),
            expires_at=parse_ts(row["expires_at"]),
        )
