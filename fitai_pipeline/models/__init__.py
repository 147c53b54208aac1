# fitai_pipeline/models/__init__.py
"""
Data models for fitai-pipeline.

Provides Pydantic request/response models and internal job tracking.
"""

from fitai_pipeline.models.jobs import (
    GenerationJob,
    GenerationLock,
    JobError,
    JobKind,
    JobStatus,
    generate_job_id,
    new_job,
)
from fitai_pipeline.models.requests import MealRequest, WorkoutRequest
from fitai_pipeline.models.responses import (
    JobStatusResponse,
    JobSummary,
    ListJobsResponse,
    SubmitJobResponse,
    SweepResponse,
)

__all__ = [
    # Requests
    "WorkoutRequest",
    "MealRequest",
    # Response models
    "SubmitJobResponse",
    "JobStatusResponse",
    "JobSummary",
    "ListJobsResponse",
    "SweepResponse",
    # Job tracking
    "JobKind",
    "JobStatus",
    "JobError",
    "GenerationJob",
    "GenerationLock",
    "generate_job_id",
    "new_job",
]
