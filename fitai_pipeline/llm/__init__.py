# fitai_pipeline/llm/__init__.py
"""LLM integration module with Ollama and LM Studio clients."""

from .client import OllamaClient
from .factory import create_llm_client
from .lm_studio import LMStudioClient
from .types import LLMResponse

__all__ = [
    "OllamaClient",
    "LMStudioClient",
    "create_llm_client",
    "LLMResponse",
]
