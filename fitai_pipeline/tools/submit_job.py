# fitai_pipeline/tools/submit_job.py
"""
submit_generation_job tool implementation.

Validates inputs, creates the job (served straight from cache when
possible) and schedules inline processing without waiting for it.
"""

import logging
from typing import Any

from fastmcp.exceptions import ToolError

from fitai_pipeline.models.jobs import JobStatus
from fitai_pipeline.models.responses import SubmitJobResponse
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator
from fitai_pipeline.validation.sanitize import (
    parse_kind,
    sanitize_input_params,
    sanitize_owner_id,
)

logger = logging.getLogger(__name__)


async def submit_generation_job(
    owner_id: str,
    kind: str,
    input_params: Any,
    orchestrator: JobOrchestrator,
    regenerate: bool = False,
    process_inline: bool = True,
) -> dict:
    """
    Submit a workout or meal plan generation job.

    Args:
        owner_id: Authenticated owner reference
        kind: workout_plan or meal_plan
        input_params: Normalized request parameters (JSON object)
        orchestrator: Job orchestrator
        regenerate: Ignore and replace any cached result for this request
        process_inline: Start processing in the background right away
            (False leaves the job for the sweep)

    Returns:
        SubmitJobResponse as dict

    Raises:
        ToolError: If any input is invalid
    """
    owner = sanitize_owner_id(owner_id)
    job_kind = parse_kind(kind)
    params = sanitize_input_params(input_params)

    try:
        job = await orchestrator.submit(owner, job_kind, params, regenerate=regenerate)
    except ValueError as e:
        raise ToolError(str(e)) from e

    cached = job.status == JobStatus.COMPLETED
    if job.status == JobStatus.PENDING and process_inline:
        orchestrator.schedule_processing(job.job_id)

    response = SubmitJobResponse(
        job_id=job.job_id,
        status=job.status.value,
        fingerprint=job.fingerprint,
        cached=cached,
    )
    if cached:
        response.next_steps = "Result is ready; fetch it with get_job_status"

    logger.info(f"Submitted job {job.job_id} ({job_kind.value}, cached={cached})")
    return response.model_dump()
