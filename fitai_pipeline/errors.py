# fitai_pipeline/errors.py
"""
Typed failure taxonomy for the generation pipeline.

Every failure that can end a job is one of these classes. Each carries a
machine-readable code, a category, and whether another generation attempt
could plausibly change the outcome.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fitai_pipeline.models.jobs import JobError
    from fitai_pipeline.pipeline.validation import ValidationReport


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    code = "PIPELINE_ERROR"
    category = "internal"
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_job_error(self) -> "JobError":
        """Convert to the payload stored on a FAILED job."""
        from fitai_pipeline.models.jobs import JobError

        return JobError(
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            category=self.category,
            details=self.details,
        )


class InsufficientCandidatesError(PipelineError):
    """Candidate filter left too few catalog items for the request."""

    code = "INSUFFICIENT_CANDIDATES"
    category = "candidates"

    def __init__(self, found: int, required: int, stats: dict[str, int] | None = None) -> None:
        super().__init__(
            f"Only {found} catalog item(s) match the request constraints "
            f"(at least {required} required)",
            details={"found": found, "required": required, "filter_stats": stats or {}},
        )
        self.found = found
        self.required = required


class GenerationTimeoutError(PipelineError):
    """External generation call did not return within its budget."""

    code = "GENERATION_TIMEOUT"
    category = "generation"
    retryable = True

    def __init__(self, budget_seconds: float) -> None:
        super().__init__(
            f"Generation exceeded its {budget_seconds:g}s budget",
            details={"budget_seconds": budget_seconds},
        )
        self.budget_seconds = budget_seconds


class GenerationProviderError(PipelineError):
    """Provider returned a transport error or structurally invalid output."""

    code = "GENERATION_PROVIDER_ERROR"
    category = "generation"
    retryable = True


class HallucinationError(PipelineError):
    """Generated output references catalog items that could not be resolved."""

    code = "HALLUCINATION"
    category = "validation"
    retryable = True

    def __init__(self, message: str, report: "ValidationReport") -> None:
        super().__init__(message, details={"validation": report.model_dump(mode="json")})
        self.report = report


class CatalogIntegrityError(PipelineError):
    """A resolved catalog item has no demonstration asset."""

    code = "CATALOG_INTEGRITY"
    category = "catalog"

    def __init__(self, item_ids: list[str], catalog_version: str | None = None) -> None:
        super().__init__(
            f"Catalog item(s) missing demonstration asset: {', '.join(item_ids)}",
            details={"item_ids": item_ids, "catalog_version": catalog_version},
        )
        self.item_ids = item_ids


class JobExpiredError(PipelineError):
    """Job passed its expiry time before it could complete."""

    code = "JOB_EXPIRED"
    category = "expired"


class GenerationLockLostError(PipelineError):
    """The job's generation lease lapsed and another job claimed the fingerprint."""

    code = "GENERATION_LOCK_LOST"
    category = "concurrency"
