# fitai_pipeline/llm/lm_studio.py
"""LM Studio client using OpenAI-compatible API."""

import logging

import httpx

from .types import LLMResponse

try:
    from openai import APIError, AsyncOpenAI
except ImportError:
    APIError = AsyncOpenAI = None  # type: ignore[assignment,misc]

logger = logging.getLogger(__name__)


class LMStudioClient:
    """
    Async LM Studio client using the OpenAI-compatible API.

    LM Studio exposes an OpenAI-compatible endpoint at http://localhost:1234/v1.
    Requires: pip install fitai-pipeline[lm-studio]
    """

    def __init__(
        self,
        base_url: str = "http://localhost:1234/v1",
        model: str = "local-model",
        temperature: float = 0.7,
        timeout: float = 300,
    ):
        if AsyncOpenAI is None:
            raise ImportError(
                "openai package required for LM Studio support. "
                "Install with: pip install fitai-pipeline[lm-studio]"
            )

        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self._client = AsyncOpenAI(base_url=base_url, api_key="lm-studio", timeout=timeout)

    async def health_check(self) -> bool:
        """
        Check LM Studio server health by listing available models.

        Returns:
            True if server is reachable, False otherwise.
        """
        try:
            async with httpx.AsyncClient(timeout=5.0) as http:
                response = await http.get(f"{self.base_url}/models")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"LM Studio health check failed: {e}")
            return False

    async def generate_structured(self, messages: list[dict], schema: dict) -> LLMResponse:
        """
        Single chat call with a json_schema response format.

        Args:
            messages: Chat messages
            schema: JSON schema the response must follow

        Returns:
            LLMResponse with the raw JSON text and token usage

        Raises:
            ConnectionError: On any OpenAI-compatible API error
        """
        logger.info(f"LMStudio.generate_structured: model={self.model}, messages={len(messages)}")

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema.get("title", "plan"), "schema": schema},
                },
                stream=False,
            )
        except APIError as e:
            # Invoker maps ConnectionError to GenerationProviderError
            raise ConnectionError(f"LM Studio request failed: {e}") from e

        choice = response.choices[0]
        content = choice.message.content or ""
        usage = response.usage
        logger.info(
            f"LMStudio.generate_structured: finish_reason={choice.finish_reason}, "
            f"{len(content)} chars"
        )
        return LLMResponse(
            content=content,
            model=response.model or self.model,
            prompt_tokens=usage.prompt_tokens if usage else None,
            completion_tokens=usage.completion_tokens if usage else None,
        )
