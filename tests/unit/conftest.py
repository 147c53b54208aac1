# tests/unit/conftest.py
"""Shared fixtures: catalogs, config and a fully wired orchestrator on temporary SQLite."""

from pathlib import Path

import pytest
import pytest_asyncio

from fitai_pipeline.cache import CacheCoordinator, DurableCacheTier, FastCacheTier
from fitai_pipeline.catalog.models import Catalog, CatalogKind
from fitai_pipeline.config.schema import FilterConfig, JobsConfig, PipelineConfig
from fitai_pipeline.models.locks import LockStore
from fitai_pipeline.models.sqlite_store import SQLiteJobStore
from fitai_pipeline.pipeline.invoker import GenerationInvoker
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator

from tests.unit.factories import EXERCISES, FOODS, FakeLLM


@pytest.fixture
def exercise_catalog() -> Catalog:
    return Catalog(CatalogKind.EXERCISE, "2026.10", EXERCISES)


@pytest.fixture
def food_catalog() -> Catalog:
    return Catalog(CatalogKind.FOOD, "2026.10", FOODS)


@pytest.fixture
def catalogs(exercise_catalog: Catalog, food_catalog: Catalog) -> dict[CatalogKind, Catalog]:
    return {CatalogKind.EXERCISE: exercise_catalog, CatalogKind.FOOD: food_catalog}


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    """Small catalogs need a low candidate floor; zero backoff keeps retries instant."""
    return PipelineConfig(
        filter=FilterConfig(min_candidates=3, max_candidates=20),
        jobs=JobsConfig(backoff_min_seconds=0, backoff_max_seconds=0),
    )


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "pipeline.db")


@pytest_asyncio.fixture
async def store(db_path: str) -> SQLiteJobStore:
    store = SQLiteJobStore(db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def build_orchestrator(store: SQLiteJobStore, catalogs, pipeline_config):
    """Factory: orchestrator over the shared store driven by the given fake LLM."""

    def _build(llm: FakeLLM, config: PipelineConfig | None = None) -> JobOrchestrator:
        config = config or pipeline_config
        cache = CacheCoordinator(
            FastCacheTier(ttl_seconds=config.cache.fast_ttl_seconds),
            DurableCacheTier(store.db_path, ttl_seconds=config.cache.durable_ttl_seconds),
        )
        return JobOrchestrator(
            store=store,
            locks=LockStore(store.db_path),
            cache=cache,
            catalogs=catalogs,
            invoker=GenerationInvoker(llm),
            config=config,
        )

    return _build
