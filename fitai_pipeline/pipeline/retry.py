# fitai_pipeline/pipeline/retry.py
"""Retry policy for generation attempts with exponential backoff."""

import logging

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

from fitai_pipeline.errors import (
    GenerationProviderError,
    GenerationTimeoutError,
    HallucinationError,
)

logger = logging.getLogger(__name__)


class RetryPolicy:
    """
    Which failures earn another generation attempt, and how many.

    - GenerationTimeoutError / GenerationProviderError: up to max_attempts
    - HallucinationError: up to hallucination_attempts (a fresh call may do better)
    - Everything else (InsufficientCandidatesError, CatalogIntegrityError, ...): never
    """

    def __init__(
        self,
        max_attempts: int = 3,
        hallucination_attempts: int = 2,
        backoff_min: float = 2.0,
        backoff_max: float = 30.0,
    ) -> None:
        self.max_attempts = max_attempts
        self.hallucination_attempts = hallucination_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max

    def attempt_cap(self, exception: BaseException) -> int:
        if isinstance(exception, (GenerationTimeoutError, GenerationProviderError)):
            return self.max_attempts
        if isinstance(exception, HallucinationError):
            return self.hallucination_attempts
        return 1

    def should_retry(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        return retry_state.attempt_number < self.attempt_cap(outcome.exception())

    def retrying(self) -> AsyncRetrying:
        """Fresh tenacity controller; the last exception is re-raised when attempts run out."""
        return AsyncRetrying(
            retry=self.should_retry,
            stop=stop_after_attempt(max(self.max_attempts, self.hallucination_attempts)),
            wait=wait_exponential(multiplier=1, min=self.backoff_min, max=self.backoff_max),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
