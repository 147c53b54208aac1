# fitai_pipeline/pipeline/invoker.py
"""
Generation invoker: one time-boxed structured generation call.

No retries here; the orchestrator owns attempts and backoff.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from ollama import ResponseError
from pydantic import BaseModel, ValidationError

from fitai_pipeline.catalog.models import CatalogItem
from fitai_pipeline.errors import GenerationProviderError, GenerationTimeoutError
from fitai_pipeline.llm.types import LLMResponse

from .kinds import KindSpec
from .prompts import build_messages

logger = logging.getLogger(__name__)

# USD per 1k tokens; longest matching prefix wins
_COST_PER_1K_TOKENS: dict[str, float] = {
    "gpt-4o-mini": 0.0003,
    "gpt-4o": 0.005,
    "gemini-1.5-flash": 0.0002,
    "gemini-2.0-flash": 0.0002,
}
DEFAULT_COST_PER_1K_TOKENS = 0.001


def estimate_cost_usd(model: str, total_tokens: int | None) -> float:
    """Approximate generation cost from token usage (0.0 when usage is unknown)."""
    if not total_tokens:
        return 0.0
    rate = DEFAULT_COST_PER_1K_TOKENS
    for prefix in sorted(_COST_PER_1K_TOKENS, key=len, reverse=True):
        if model.startswith(prefix):
            rate = _COST_PER_1K_TOKENS[prefix]
            break
    return round(total_tokens / 1000 * rate, 6)


class StructuredLLM(Protocol):
    model: str

    async def generate_structured(self, messages: list[dict], schema: dict) -> LLMResponse: ...


@dataclass
class RawOutput:
    """Parsed but not yet validated model output."""

    plan: dict[str, Any]
    model: str
    elapsed_ms: int
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    cost_usd: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def generation_metadata(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "generation_ms": self.elapsed_ms,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "cost_usd": self.cost_usd,
        }


class GenerationInvoker:
    """Wraps a single structured call to the configured LLM client."""

    def __init__(self, client: StructuredLLM) -> None:
        self._client = client

    async def invoke(
        self,
        spec: KindSpec,
        allowed: list[CatalogItem],
        request: BaseModel,
        timeout_budget: float,
    ) -> RawOutput:
        """
        Generate a plan drawing from the allowed set.

        Raises:
            GenerationTimeoutError: If the call outlives timeout_budget
            GenerationProviderError: On transport errors or structurally invalid output
        """
        messages = build_messages(spec, allowed, request)
        schema = spec.output_model.model_json_schema()

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.generate_structured(messages, schema), timeout=timeout_budget
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Generation exceeded {timeout_budget:g}s budget")
            raise GenerationTimeoutError(timeout_budget) from e
        except (ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise GenerationProviderError(
                f"Provider call failed: {e}", details={"provider_error": type(e).__name__}
            ) from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        plan = self._parse(spec, response.content)
        reference_count = sum(1 for _ in spec.iter_references(plan))
        if reference_count == 0:
            raise GenerationProviderError(
                f"Model output contains no {spec.reference_key} references",
                details={"model": response.model},
            )

        logger.info(
            f"Generated {spec.kind.value} with {reference_count} references "
            f"in {elapsed_ms}ms (model={response.model}, tokens={response.total_tokens})"
        )
        return RawOutput(
            plan=plan,
            model=response.model,
            elapsed_ms=elapsed_ms,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens,
            cost_usd=estimate_cost_usd(response.model, response.total_tokens),
        )

    @staticmethod
    def _parse(spec: KindSpec, content: str) -> dict[str, Any]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise GenerationProviderError(
                f"Model output is not valid JSON: {e}", details={"preview": content[:200]}
            ) from e

        try:
            parsed = spec.output_model.model_validate(data)
        except ValidationError as e:
            raise GenerationProviderError(
                f"Model output does not match the {spec.kind.value} schema",
                details={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from e
        return parsed.model_dump()
