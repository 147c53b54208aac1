# fitai_pipeline/llm/factory.py
"""Factory for creating the configured LLM client."""

from fitai_pipeline.config.schema import PipelineConfig

from .client import OllamaClient
from .lm_studio import LMStudioClient


def create_llm_client(config: PipelineConfig) -> OllamaClient | LMStudioClient:
    """
    Create the appropriate LLM client based on config.provider.

    The transport timeout is kept above the generation budget so that the
    invoker's wall-clock budget is what ends a slow call.
    """
    transport_timeout = config.generation.timeout_seconds + 30
    if config.provider == "lm_studio":
        return LMStudioClient(
            base_url=config.lm_studio.base_url,
            model=config.lm_studio.model,
            temperature=config.lm_studio.temperature,
            timeout=transport_timeout,
        )
    return OllamaClient(
        base_url=config.ollama.base_url,
        model=config.ollama.model,
        temperature=config.ollama.temperature,
        timeout=transport_timeout,
    )
