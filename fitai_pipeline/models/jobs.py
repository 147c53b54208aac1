# fitai_pipeline/models/jobs.py
"""
Generation job models.

Internal models (NOT exposed via MCP) for tracking generation jobs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class JobKind(Enum):
    """What a job generates."""

    WORKOUT_PLAN = "workout_plan"
    MEAL_PLAN = "meal_plan"


class JobStatus(Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.EXPIRED)


class JobError(BaseModel):
    """Typed failure payload stored on a FAILED or EXPIRED job."""

    model_config = ConfigDict(extra="ignore")

    code: str
    message: str
    retryable: bool = False
    category: str = "internal"
    details: dict[str, Any] = Field(default_factory=dict)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GenerationJob:
    """
    Internal job record (NOT Pydantic - not exposed via MCP).

    result and error are written only on completion or failure.
    """

    job_id: str
    owner_id: str
    kind: JobKind
    fingerprint: str
    status: JobStatus
    input_params: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    attempts: int = 0
    result: dict[str, Any] | None = None
    error: JobError | None = None
    cache_source: str | None = None  # "fast" / "durable" when served from cache

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at


def new_job(
    owner_id: str,
    kind: JobKind,
    fingerprint: str,
    input_params: dict[str, Any],
    ttl_seconds: int,
    now: datetime | None = None,
) -> GenerationJob:
    """Create a PENDING job expiring ttl_seconds from now."""
    now = now or utcnow()
    return GenerationJob(
        job_id=generate_job_id(),
        owner_id=owner_id,
        kind=kind,
        fingerprint=fingerprint,
        status=JobStatus.PENDING,
        input_params=input_params,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(seconds=ttl_seconds),
    )


@dataclass
class GenerationLock:
    """Lease-based exclusive claim on generating one fingerprint."""

    fingerprint: str
    holder_job_id: str
    acquired_at: datetime
    expires_at: datetime

    def is_live(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) < self.expires_at


def generate_job_id() -> str:
    """
    Generate a unique job ID.

    Returns:
        12-character hex string (UUID4 truncated)
    """
    return uuid4().hex[:12]
