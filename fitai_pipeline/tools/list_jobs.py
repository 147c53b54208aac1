# fitai_pipeline/tools/list_jobs.py
"""
list_jobs tool implementation.

Lists one owner's generation jobs, newest first.
"""

import logging

from fitai_pipeline.models.responses import JobSummary, ListJobsResponse
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator
from fitai_pipeline.validation.sanitize import sanitize_owner_id

logger = logging.getLogger(__name__)


async def list_jobs(owner_id: str, orchestrator: JobOrchestrator) -> dict:
    """
    List an owner's generation jobs.

    Args:
        owner_id: Owner whose jobs to list
        orchestrator: Job orchestrator

    Returns:
        ListJobsResponse as dict
    """
    owner = sanitize_owner_id(owner_id)
    jobs = await orchestrator.list_jobs(owner)

    summaries = [
        JobSummary(
            job_id=job.job_id,
            kind=job.kind.value,
            status=job.status.value,
            created_at=job.created_at.isoformat(),
        )
        for job in jobs
    ]
    response = ListJobsResponse(jobs=summaries, total=len(summaries))

    logger.info(f"Listed {len(summaries)} job(s) for owner {owner}")
    return response.model_dump()
