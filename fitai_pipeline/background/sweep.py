# fitai_pipeline/background/sweep.py
"""
Sweep scheduler: rescues jobs whose inline processing never finished.

Each sweep expires overdue jobs, purges lapsed generation locks, then
re-enters process_job() for every PENDING/PROCESSING job that has not been
touched for staleness_seconds. Runs periodically inside the server and on
demand (run_sweep tool, `fitai-pipeline sweep` for cron).
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta

from fitai_pipeline.models.jobs import JobStatus, utcnow
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    examined: int = 0
    resumed: int = 0
    completed: int = 0
    failed: int = 0
    expired: int = 0
    deferred: int = 0
    locks_purged: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class SweepScheduler:
    """
    Periodic sweep loop.

    Features:
        - One sweep per interval_seconds (first sweep right after start)
        - Stale jobs processed sequentially, at most batch_size per sweep
        - A crash on one job is logged and never stops the loop
    """

    def __init__(
        self,
        orchestrator: JobOrchestrator,
        interval_seconds: float = 60.0,
        staleness_seconds: float = 360.0,
        batch_size: int = 50,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval = interval_seconds
        self._staleness = staleness_seconds
        self._batch_size = batch_size
        self._task: asyncio.Task | None = None
        self._sweep_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None

    async def sweep_once(self) -> SweepReport:
        """Run a single sweep and report what it did."""
        # Overlapping sweeps (timer + manual trigger) would double-process jobs
        async with self._sweep_lock:
            return await self._sweep()

    async def _sweep(self) -> SweepReport:
        report = SweepReport()
        report.expired = await self._orchestrator.expire_overdue()
        report.locks_purged = await self._orchestrator.locks.purge_expired()

        cutoff = utcnow() - timedelta(seconds=self._staleness)
        stale = await self._orchestrator.store.find_stale(cutoff, self._batch_size)
        report.examined = len(stale)

        for job in stale:
            logger.info(
                f"Sweep resuming {job.status.value} job {job.job_id} "
                f"(idle since {job.updated_at.isoformat()})",
                extra={"job_id": job.job_id, "fingerprint": job.fingerprint},
            )
            report.resumed += 1
            try:
                final = await self._orchestrator.process_job(job.job_id)
            except Exception:
                report.errors += 1
                logger.exception(f"Sweep failed to process job {job.job_id}")
                continue

            if final.status == JobStatus.COMPLETED:
                report.completed += 1
            elif final.status == JobStatus.FAILED:
                report.failed += 1
            elif final.status == JobStatus.EXPIRED:
                report.expired += 1
            else:
                report.deferred += 1

        if report.examined or report.expired or report.locks_purged:
            logger.info(f"Sweep finished: {report.as_dict()}")
        return report

    async def start(self) -> None:
        """Start the periodic sweep loop."""
        if self._task is not None:
            logger.warning("Sweep scheduler already started")
            return

        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Sweep scheduler started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop the sweep loop and wait for it to finish."""
        if self._task is None:
            logger.warning("Sweep scheduler not running")
            return

        logger.info("Stopping sweep scheduler...")
        self._task.cancel()

        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Sweep task cancelled")

        self._task = None
        logger.info("Sweep scheduler stopped")

    async def _run_loop(self) -> None:
        logger.info("Sweep loop started")
        try:
            while True:
                try:
                    await self.sweep_once()
                except Exception:
                    logger.exception("Sweep crashed; retrying next interval")
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            logger.info("Sweep loop cancelled")
            raise
