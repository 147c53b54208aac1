# fitai_pipeline/config/schema.py
"""
Pydantic configuration models for fitai-pipeline.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama API base URL"
    )
    model: str = Field(
        default="qwen2.5:14b-instruct",
        description="Ollama model used for plan generation",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class LMStudioConfig(BaseModel):
    """LM Studio server configuration."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(
        default="http://localhost:1234/v1", description="LM Studio API base URL"
    )
    model: str = Field(default="local-model", description="LM Studio model used for generation")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class CatalogConfig(BaseModel):
    """Reference catalog locations."""

    model_config = ConfigDict(extra="ignore")

    exercises_path: str | None = Field(
        default=None, description="JSON/YAML exercise catalog (None = workout plans unavailable)"
    )
    foods_path: str | None = Field(
        default=None, description="JSON/YAML food catalog (None = meal plans unavailable)"
    )


class FilterConfig(BaseModel):
    """Candidate filter bounds."""

    model_config = ConfigDict(extra="ignore")

    min_candidates: int = Field(default=20, ge=1, description="Fewer survivors fails the job")
    max_candidates: int = Field(default=60, ge=1, description="Allowed set size cap")

    @model_validator(mode="after")
    def _check_bounds(self) -> "FilterConfig":
        if self.max_candidates < self.min_candidates:
            raise ValueError("filter.max_candidates must be >= filter.min_candidates")
        return self


class GenerationConfig(BaseModel):
    """Generation invoker budget."""

    model_config = ConfigDict(extra="ignore")

    timeout_seconds: float = Field(
        default=120.0, gt=0.0, description="Hard wall-clock budget per generation call"
    )


class ValidationConfig(BaseModel):
    """Validation & repair thresholds."""

    model_config = ConfigDict(extra="ignore")

    max_hallucination_ratio: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Share of fabricated references above which the attempt fails",
    )
    name_similarity_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum name similarity for recovering a fabricated reference",
    )
    calorie_tolerance: int = Field(
        default=100, ge=0, description="Meal plan calorie drift (kcal) that triggers a warning"
    )
    max_portion_scale: float = Field(
        default=2.0,
        ge=1.0,
        description="Largest factor (up, or 1/x down) for scaling meal portions to the target",
    )


class CacheConfig(BaseModel):
    """Two-tier result cache configuration."""

    model_config = ConfigDict(extra="ignore")

    fast_ttl_seconds: int = Field(default=3600, ge=1, description="FAST tier TTL")
    fast_max_entries: int = Field(default=512, ge=1, description="FAST tier capacity")
    durable_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1, description="DURABLE tier TTL")


class JobsConfig(BaseModel):
    """Job lifecycle, locking and retry policy."""

    model_config = ConfigDict(extra="ignore")

    lease_seconds: int = Field(default=300, ge=1, description="Generation lock lease")
    staleness_seconds: int = Field(
        default=360, ge=0, description="Idle time after which the sweep resumes a job"
    )
    job_ttl_seconds: int = Field(default=3600, ge=1, description="Time until a job expires")
    max_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempt cap for timeout/provider failures"
    )
    hallucination_attempts: int = Field(
        default=2, ge=1, le=10, description="Attempt cap for hallucination failures"
    )
    backoff_min_seconds: float = Field(default=2.0, ge=0.0)
    backoff_max_seconds: float = Field(default=30.0, ge=0.0)


class SweepConfig(BaseModel):
    """Periodic sweep configuration."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=True, description="Run the periodic sweep inside the server")
    interval_seconds: float = Field(default=60.0, gt=0.0)
    batch_size: int = Field(default=50, ge=1, description="Maximum jobs resumed per sweep")


class PipelineConfig(BaseModel):
    """Root configuration for fitai-pipeline."""

    model_config = ConfigDict(extra="ignore")

    provider: Literal["ollama", "lm_studio"] = Field(
        default="ollama", description="LLM provider to use"
    )
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    lm_studio: LMStudioConfig = Field(default_factory=LMStudioConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)

    @model_validator(mode="after")
    def _check_lease_covers_generation(self) -> "PipelineConfig":
        # A lease shorter than one generation call would let a duplicate start
        if self.jobs.lease_seconds <= self.generation.timeout_seconds:
            raise ValueError(
                "jobs.lease_seconds must exceed generation.timeout_seconds "
                f"({self.jobs.lease_seconds} <= {self.generation.timeout_seconds})"
            )
        return self
