# fitai_pipeline/llm/client.py
"""Ollama client with health checks and structured (JSON schema) generation."""

import logging

import httpx
from ollama import AsyncClient, ResponseError

from .types import LLMResponse

logger = logging.getLogger(__name__)


class OllamaClient:
    """
    Async Ollama client.

    Handles:
    - Health checks (server + model availability)
    - Structured generation constrained by a JSON schema (format=)

    Does not retry: the job orchestrator owns the retry policy.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = 0.7,
        timeout: float = 300,
    ):
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (e.g., "http://localhost:11434")
            model: Model name (e.g., "qwen2.5:14b-instruct")
            temperature: Sampling temperature
            timeout: Transport timeout in seconds (the invoker enforces its own budget)
        """
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.client = AsyncClient(host=base_url, timeout=httpx.Timeout(timeout))

    async def health_check(self) -> bool:
        """
        Check Ollama server health and model availability.

        Returns:
            True if server is reachable (the model can be pulled on demand),
            False if server is down or unreachable.
        """
        try:
            models_response = await self.client.list()
            available_models = [m.model for m in models_response.models]

            model_base = self.model.split(":")[0]
            if not any(model_base in (m or "") for m in available_models):
                logger.warning(
                    f"Model {self.model} not found in available models. "
                    f"It can be pulled on demand during generation."
                )
            return True

        except (ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def generate_structured(self, messages: list[dict], schema: dict) -> LLMResponse:
        """
        Single non-streaming chat call constrained to a JSON schema.

        Args:
            messages: Chat messages in format [{"role": "user", "content": "..."}]
            schema: JSON schema the response must follow

        Returns:
            LLMResponse with the raw JSON text and token usage

        Raises:
            ResponseError, httpx.HTTPError, ConnectionError: On transport/API errors
        """
        logger.info(f"Generating with model={self.model}, messages={len(messages)}")

        response = await self.client.chat(
            model=self.model,
            messages=messages,
            format=schema,
            stream=False,
            options={"temperature": self.temperature},
        )

        content = response.message.content or ""
        logger.info(f"Generated {len(content)} chars")
        return LLMResponse(
            content=content,
            model=response.model or self.model,
            prompt_tokens=response.prompt_eval_count,
            completion_tokens=response.eval_count,
        )
