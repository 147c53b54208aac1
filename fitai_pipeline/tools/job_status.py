# fitai_pipeline/tools/job_status.py
"""
get_job_status tool implementation.

Idempotent status/result lookup, safe to poll.
"""

import logging

from fastmcp.exceptions import ToolError

from fitai_pipeline.models.jobs import GenerationJob, JobStatus
from fitai_pipeline.models.responses import JobStatusResponse
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator
from fitai_pipeline.validation.sanitize import sanitize_job_id, sanitize_owner_id

logger = logging.getLogger(__name__)


def _status_message(job: GenerationJob) -> str:
    if job.status == JobStatus.PENDING:
        return "Job is waiting to be processed."
    if job.status == JobStatus.PROCESSING:
        return f"Job is generating (attempt {job.attempts})."
    if job.status == JobStatus.COMPLETED:
        if job.cache_source:
            return f"Job complete (served from {job.cache_source} cache)."
        return "Job complete."
    if job.status == JobStatus.EXPIRED:
        return "Job expired before it could complete. Submit the request again."

    error = job.error
    if error is None:
        return "Job failed."
    advice = "Try again later." if error.retryable else "Contact support if this persists."
    return f"Job failed [{error.code}]: {error.message}. {advice}"


async def get_job_status(job_id: str, owner_id: str, orchestrator: JobOrchestrator) -> dict:
    """
    Get the status of a generation job, with its result or error once terminal.

    Args:
        job_id: Job identifier from submit_generation_job
        owner_id: Owner the job belongs to
        orchestrator: Job orchestrator

    Returns:
        JobStatusResponse as dict

    Raises:
        ToolError: If an ID is invalid or the job is not found for this owner
    """
    sanitized_id = sanitize_job_id(job_id)
    owner = sanitize_owner_id(owner_id)

    job = await orchestrator.get_status(sanitized_id, owner)
    if job is None:
        raise ToolError(f"Job '{sanitized_id}' not found. Use list_jobs to see your jobs.")

    response = JobStatusResponse(
        job_id=job.job_id,
        kind=job.kind.value,
        status=job.status.value,
        attempts=job.attempts,
        result=job.result,
        error=job.error.model_dump() if job.error else None,
        cache_source=job.cache_source,
        message=_status_message(job),
        created_at=job.created_at.isoformat(),
        updated_at=job.updated_at.isoformat(),
    )
    return response.model_dump()
