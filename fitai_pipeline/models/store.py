# fitai_pipeline/models/store.py
"""
Job store protocol definition.

Defines the abstract interface the SQLite store implements and the
orchestrator depends on.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fitai_pipeline.models.jobs import GenerationJob, JobStatus


class JobStore(ABC):
    """Abstract base class for job storage implementations."""

    @abstractmethod
    async def add(self, job: "GenerationJob") -> None:
        """
        Add a job to the store.

        Raises:
            ValueError: If job_id already exists
        """

    @abstractmethod
    async def get(self, job_id: str) -> "GenerationJob | None":
        """Get a job by ID, or None."""

    @abstractmethod
    async def list_for_owner(self, owner_id: str) -> "list[GenerationJob]":
        """List one owner's jobs, newest first."""

    @abstractmethod
    async def update(self, job_id: str, **kwargs) -> None:
        """
        Update fields on an existing job. updated_at is always refreshed.

        Raises:
            ValueError: If job_id doesn't exist or a field name is invalid
        """

    @abstractmethod
    async def transition(
        self,
        job_id: str,
        expected: "JobStatus | tuple[JobStatus, ...]",
        new_status: "JobStatus",
        **kwargs,
    ) -> bool:
        """
        Compare-and-set the status of a job.

        Returns:
            True if the job was in an expected status and was moved,
            False if another writer got there first
        """

    @abstractmethod
    async def increment_attempts(self, job_id: str) -> int:
        """Atomically bump and return the persisted attempt counter."""

    @abstractmethod
    async def find_stale(self, older_than: datetime, limit: int) -> "list[GenerationJob]":
        """PENDING/PROCESSING jobs not updated since older_than, oldest first."""

    @abstractmethod
    async def find_overdue(self, now: datetime) -> "list[GenerationJob]":
        """PENDING/PROCESSING jobs whose expires_at has passed."""

    @abstractmethod
    async def find_waiting(self, fingerprint: str) -> "list[GenerationJob]":
        """PENDING jobs deferred on a fingerprint, oldest first."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
