# fitai_pipeline/pipeline/orchestrator.py
"""
Job orchestrator: the per-job state machine.

    PENDING -> PROCESSING -> COMPLETED | FAILED
    PENDING | PROCESSING -> EXPIRED   (once now > expires_at)

All state lives in the stores. A job may be driven by the request that
created it (an inline background task) or by the sweep; both enter through
process_job(), and the per-fingerprint generation lock guarantees that at
most one of them generates a fingerprint at a time.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from fitai_pipeline.cache.coordinator import CacheCoordinator
from fitai_pipeline.cache.models import CacheEntry
from fitai_pipeline.catalog.filter import CandidateFilter
from fitai_pipeline.catalog.models import Catalog, CatalogKind
from fitai_pipeline.config.schema import PipelineConfig
from fitai_pipeline.errors import GenerationLockLostError, JobExpiredError, PipelineError
from fitai_pipeline.models.jobs import GenerationJob, JobKind, JobStatus, new_job, utcnow
from fitai_pipeline.models.locks import LockStore
from fitai_pipeline.models.store import JobStore

from .fingerprint import fingerprint_request
from .invoker import GenerationInvoker
from .kinds import get_kind_spec
from .retry import RetryPolicy
from .validation import ValidationRepairEngine

logger = logging.getLogger(__name__)

_ACTIVE = (JobStatus.PENDING, JobStatus.PROCESSING)


def _ctx(job: GenerationJob, **extra: Any) -> dict[str, Any]:
    return {
        "job_id": job.job_id,
        "fingerprint": job.fingerprint,
        "owner_id": job.owner_id,
        **extra,
    }


class JobOrchestrator:
    """Creates jobs and drives them to a terminal state."""

    def __init__(
        self,
        store: JobStore,
        locks: LockStore,
        cache: CacheCoordinator,
        catalogs: dict[CatalogKind, Catalog],
        invoker: GenerationInvoker,
        config: PipelineConfig | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._cache = cache
        self._catalogs = catalogs
        self._invoker = invoker
        self._config = config or PipelineConfig()

        validation = self._config.validation
        self._engine = ValidationRepairEngine(
            max_hallucination_ratio=validation.max_hallucination_ratio,
            name_similarity_threshold=validation.name_similarity_threshold,
            calorie_tolerance=validation.calorie_tolerance,
            max_portion_scale=validation.max_portion_scale,
        )
        jobs = self._config.jobs
        self._retry = RetryPolicy(
            max_attempts=jobs.max_attempts,
            hallucination_attempts=jobs.hallucination_attempts,
            backoff_min=jobs.backoff_min_seconds,
            backoff_max=jobs.backoff_max_seconds,
        )
        self._inline_tasks: set[asyncio.Task] = set()

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def locks(self) -> LockStore:
        return self._locks

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Client-facing operations
    # ------------------------------------------------------------------

    async def submit(
        self,
        owner_id: str,
        kind: JobKind,
        input_params: dict[str, Any],
        regenerate: bool = False,
    ) -> GenerationJob:
        """
        Create a job and serve it from cache when possible.

        Args:
            owner_id: Already-authenticated owner reference
            kind: What to generate
            input_params: Normalized request parameters
            regenerate: Skip the cache and drop the cached entry for this request

        Returns:
            The job, COMPLETED on a cache hit and PENDING otherwise

        Raises:
            ValueError: If the params are invalid for the kind or no catalog
                is configured for it
        """
        spec = get_kind_spec(kind)
        if spec.catalog_kind not in self._catalogs:
            raise ValueError(f"No {spec.catalog_kind.value} catalog configured for {kind.value}")

        try:
            request = spec.request_model.model_validate(input_params)
        except ValidationError as e:
            raise ValueError(f"Invalid {kind.value} parameters: {e}") from e

        params = request.model_dump(mode="json")
        fingerprint = fingerprint_request(kind, request)
        job = new_job(owner_id, kind, fingerprint, params, self._config.jobs.job_ttl_seconds)
        await self._store.add(job)
        logger.info(f"Submitted {kind.value} job {job.job_id}", extra=_ctx(job))

        if regenerate:
            await self._cache.invalidate(fingerprint)
            return job

        entry = await self._cache.lookup(fingerprint)
        if entry is not None:
            await self._complete_from_cache(job, entry, expected=JobStatus.PENDING)

        return await self._store.get(job.job_id)

    async def get_status(self, job_id: str, owner_id: str) -> GenerationJob | None:
        """
        Current view of a job, or None if it does not exist for this owner.

        A job found past its expiry is moved to EXPIRED first.
        """
        job = await self._store.get(job_id)
        if job is None or job.owner_id != owner_id:
            return None
        if job.status in _ACTIVE and job.is_expired():
            await self._expire(job)
            job = await self._store.get(job_id)
        return job

    async def list_jobs(self, owner_id: str) -> list[GenerationJob]:
        """An owner's jobs, newest first."""
        return await self._store.list_for_owner(owner_id)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def schedule_processing(self, job_id: str) -> asyncio.Task:
        """Process a job in a background task (the inline path)."""
        task = asyncio.create_task(self._process_inline(job_id), name=f"job-{job_id}")
        self._inline_tasks.add(task)
        task.add_done_callback(self._inline_tasks.discard)
        return task

    async def cancel_inline(self) -> None:
        """Cancel in-flight inline tasks; their jobs are left for the sweep."""
        tasks = list(self._inline_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} inline job task(s)")

    async def _process_inline(self, job_id: str) -> None:
        try:
            await self.process_job(job_id)
        except asyncio.CancelledError:
            logger.info(f"Inline processing of {job_id} cancelled; sweep will resume it")
            raise
        except Exception:
            # Job stays PENDING/PROCESSING and is picked up by the sweep
            logger.exception(f"Inline processing of {job_id} crashed", extra={"job_id": job_id})

    async def process_job(self, job_id: str) -> GenerationJob:
        """
        Drive one job as far as it can go right now.

        Returns the job as left by this call: terminal, or still PENDING when
        another job holds the generation lock for its fingerprint.

        Raises:
            ValueError: If the job does not exist
        """
        job = await self._store.get(job_id)
        if job is None:
            raise ValueError(f"Job {job_id} not found")
        if job.status.is_terminal:
            return job
        if job.is_expired():
            await self._expire(job)
            return await self._store.get(job_id)

        lease = self._config.jobs.lease_seconds
        if not await self._locks.acquire(job.fingerprint, job.job_id, lease):
            logger.info(f"Job {job_id} deferred behind generation lock", extra=_ctx(job))
            return job

        cached = False
        try:
            if not await self._store.transition(job_id, _ACTIVE, JobStatus.PROCESSING):
                return await self._store.get(job_id)

            # A concurrent job for the same request may have finished meanwhile
            entry = await self._cache.lookup(job.fingerprint)
            if entry is not None:
                cached = await self._complete_from_cache(
                    job, entry, expected=JobStatus.PROCESSING
                )
            else:
                cached = await self._generate(job)
        finally:
            await self._locks.release(job.fingerprint, job.job_id)

        if cached:
            await self._settle_waiting(job.fingerprint)
        return await self._store.get(job_id)

    async def _generate(self, job: GenerationJob) -> bool:
        """Filter, generate with retries, validate, cache, complete. True if a result was cached."""
        spec = get_kind_spec(job.kind)
        catalog = self._catalogs[spec.catalog_kind]
        request = spec.request_model.model_validate(job.input_params)
        jobs_config = self._config.jobs

        try:
            candidates = CandidateFilter(
                catalog,
                min_candidates=self._config.filter.min_candidates,
                max_candidates=self._config.filter.max_candidates,
            ).filter(request)

            async for attempt in self._retry.retrying():
                with attempt:
                    attempt_number = await self._store.increment_attempts(job.job_id)
                    if not await self._locks.renew(
                        job.fingerprint, job.job_id, jobs_config.lease_seconds
                    ):
                        raise GenerationLockLostError(
                            f"Job {job.job_id} lost the generation lock for its request"
                        )
                    logger.info(
                        f"Generation attempt {attempt_number} for job {job.job_id}",
                        extra=_ctx(job, attempt=attempt_number),
                    )
                    raw = await self._invoker.invoke(
                        spec,
                        candidates.items,
                        request,
                        self._config.generation.timeout_seconds,
                    )
                    plan, report = self._engine.validate(
                        spec,
                        raw.plan,
                        candidates.items,
                        catalog,
                        target_calories=getattr(request, "calories", None),
                    )

            # The lease may have been taken over while the model was running
            if not await self._locks.renew(job.fingerprint, job.job_id, jobs_config.lease_seconds):
                raise GenerationLockLostError(
                    f"Job {job.job_id} lost the generation lock before caching its result"
                )

        except GenerationLockLostError as e:
            logger.warning(e.message, extra=_ctx(job))
            await self._store.transition(job.job_id, JobStatus.PROCESSING, JobStatus.PENDING)
            return False
        except PipelineError as e:
            await self._fail(job, e)
            return False

        result = {
            "kind": job.kind.value,
            "plan": plan,
            "metadata": {
                "catalog_version": catalog.version,
                "filter": candidates.stats,
                "generation": raw.generation_metadata(),
                "validation": report.model_dump(mode="json"),
            },
        }
        # Still the lease holder, so the result is cached even if the job expired meanwhile
        await self._cache.write(job.fingerprint, result, metadata=raw.generation_metadata())
        moved = await self._store.transition(
            job.job_id, JobStatus.PROCESSING, JobStatus.COMPLETED, result=result
        )
        if moved:
            logger.info(
                f"Job {job.job_id} completed ({report.replaced_count} replaced, "
                f"{len(report.warnings)} warning(s))",
                extra=_ctx(job),
            )
        else:
            current = await self._store.get(job.job_id)
            logger.warning(
                f"Job {job.job_id} is {current.status.value if current else 'gone'}; "
                "result cached for waiting jobs only",
                extra=_ctx(job),
            )
        return True

    async def _complete_from_cache(
        self, job: GenerationJob, entry: CacheEntry, expected: JobStatus
    ) -> bool:
        moved = await self._store.transition(
            job.job_id,
            expected,
            JobStatus.COMPLETED,
            result=entry.payload,
            cache_source=entry.tier.value,
        )
        if moved:
            logger.info(
                f"Job {job.job_id} served from {entry.tier.value} cache", extra=_ctx(job)
            )
        return moved

    async def _settle_waiting(self, fingerprint: str) -> None:
        """Complete PENDING jobs that deferred on this fingerprint from the fresh cache entry."""
        waiting = await self._store.find_waiting(fingerprint)
        if not waiting:
            return
        entry = await self._cache.lookup(fingerprint)
        if entry is None:
            return
        for job in waiting:
            if job.is_expired():
                await self._expire(job)
            else:
                await self._complete_from_cache(job, entry, expected=JobStatus.PENDING)

    async def _fail(self, job: GenerationJob, error: PipelineError) -> None:
        extra = _ctx(job)
        if error.category == "catalog":
            logger.critical(
                f"Job {job.job_id} failed on catalog integrity: {error.message}", extra=extra
            )
        else:
            logger.error(f"Job {job.job_id} failed [{error.code}]: {error.message}", extra=extra)
        await self._store.transition(
            job.job_id, JobStatus.PROCESSING, JobStatus.FAILED, error=error.to_job_error()
        )

    async def _expire(self, job: GenerationJob) -> bool:
        error = JobExpiredError(
            f"Job expired at {job.expires_at.isoformat()} before completing",
            details={"expires_at": job.expires_at.isoformat(), "attempts": job.attempts},
        )
        moved = await self._store.transition(
            job.job_id, _ACTIVE, JobStatus.EXPIRED, error=error.to_job_error()
        )
        if moved:
            logger.warning(f"Job {job.job_id} expired", extra=_ctx(job))
            lock = await self._locks.get(job.fingerprint)
            if lock is not None and lock.holder_job_id == job.job_id:
                # A live lease means a generation may still be in flight; it lapses on its own
                if lock.is_live():
                    logger.info(
                        f"Leaving live lease of expired job {job.job_id} to lapse",
                        extra=_ctx(job),
                    )
                else:
                    await self._locks.release(job.fingerprint, job.job_id)
        return moved

    async def expire_overdue(self) -> int:
        """Move every overdue PENDING/PROCESSING job to EXPIRED. Returns the count."""
        expired = 0
        for job in await self._store.find_overdue(utcnow()):
            if await self._expire(job):
                expired += 1
        return expired
