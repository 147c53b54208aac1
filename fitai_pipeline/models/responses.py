# fitai_pipeline/models/responses.py
"""
Pydantic response models for MCP tool outputs.

All tools return structured responses using these models for consistency.
"""

from typing import Any

from pydantic import BaseModel, Field


class SubmitJobResponse(BaseModel):
    """Response from submit_generation_job tool."""

    job_id: str = Field(description="Unique job identifier for tracking")
    status: str = Field(description="Job status right after submission")
    fingerprint: str = Field(description="Request fingerprint used for dedup and caching")
    cached: bool = Field(default=False, description="Whether the result was served from cache")
    next_steps: str = Field(
        default="Use get_job_status with job_id to poll for the result",
        description="Instructions for monitoring job progress",
    )


class JobStatusResponse(BaseModel):
    """Response from get_job_status tool."""

    job_id: str = Field(description="Job identifier")
    kind: str = Field(description="workout_plan or meal_plan")
    status: str = Field(description="pending/processing/completed/failed/expired")
    attempts: int = Field(default=0, description="Generation attempts made so far")
    result: dict[str, Any] | None = Field(default=None, description="Plan payload when completed")
    error: dict[str, Any] | None = Field(
        default=None, description="Typed error {code, message, retryable, category, details}"
    )
    cache_source: str | None = Field(default=None, description="fast/durable when served from cache")
    message: str | None = Field(default=None, description="Human-readable status message")
    created_at: str = Field(description="Creation timestamp (ISO format)")
    updated_at: str = Field(description="Last transition timestamp (ISO format)")


class JobSummary(BaseModel):
    """Summary information for a single job (used in list_jobs)."""

    job_id: str = Field(description="Job identifier")
    kind: str = Field(description="workout_plan or meal_plan")
    status: str = Field(description="Current job status")
    created_at: str = Field(description="Creation timestamp (ISO format)")


class ListJobsResponse(BaseModel):
    """Response from list_jobs tool."""

    jobs: list[JobSummary] = Field(default_factory=list, description="The owner's jobs, newest first")
    total: int = Field(description="Total number of jobs")


class SweepResponse(BaseModel):
    """Response from run_sweep tool."""

    examined: int = Field(description="Stale jobs examined")
    resumed: int = Field(description="Jobs re-entered into processing")
    completed: int = Field(description="Jobs completed by this sweep")
    failed: int = Field(description="Jobs that failed terminally during this sweep")
    expired: int = Field(description="Jobs moved to expired")
    deferred: int = Field(description="Jobs left pending behind a live lock")
    locks_purged: int = Field(description="Lapsed generation locks removed")
    errors: int = Field(
        default=0, description="Jobs whose processing crashed (left for the next sweep)"
    )
