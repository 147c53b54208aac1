"""Configuration system for fitai-pipeline."""

from .loader import get_config_path, get_db_path, load_config
from .schema import (
    CacheConfig,
    CatalogConfig,
    FilterConfig,
    GenerationConfig,
    JobsConfig,
    OllamaConfig,
    PipelineConfig,
    SweepConfig,
    ValidationConfig,
)

__all__ = [
    "PipelineConfig",
    "OllamaConfig",
    "CatalogConfig",
    "FilterConfig",
    "GenerationConfig",
    "ValidationConfig",
    "CacheConfig",
    "JobsConfig",
    "SweepConfig",
    "load_config",
    "get_config_path",
    "get_db_path",
]
