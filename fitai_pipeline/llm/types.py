# fitai_pipeline/llm/types.py
"""Normalized LLM response types shared by all client implementations."""

from dataclasses import dataclass


@dataclass
class LLMResponse:
    """A normalized structured-output response from any LLM provider."""

    content: str
    model: str
    prompt_tokens: int | None = None  # None when the provider does not report usage
    completion_tokens: int | None = None

    @property
    def total_tokens(self) -> int | None:
        if self.prompt_tokens is None and self.completion_tokens is None:
            return None
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)
