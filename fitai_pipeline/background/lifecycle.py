# fitai_pipeline/background/lifecycle.py
"""
Server lifecycle management.

Coordinates startup (DB initialization, catalogs, LLM client, crash
recovery sweep, periodic sweep) and shutdown.
"""

import logging

from fitai_pipeline.background.signals import setup_signal_handlers
from fitai_pipeline.background.sweep import SweepScheduler
from fitai_pipeline.cache import CacheCoordinator, DurableCacheTier, FastCacheTier
from fitai_pipeline.catalog import Catalog, CatalogKind, load_catalog
from fitai_pipeline.config.schema import PipelineConfig
from fitai_pipeline.llm.client import OllamaClient
from fitai_pipeline.llm.factory import create_llm_client
from fitai_pipeline.llm.lm_studio import LMStudioClient
from fitai_pipeline.models.locks import LockStore
from fitai_pipeline.models.sqlite_store import SQLiteJobStore
from fitai_pipeline.pipeline.invoker import GenerationInvoker
from fitai_pipeline.pipeline.orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


def load_catalogs(config: PipelineConfig) -> dict[CatalogKind, Catalog]:
    """Load every configured catalog; a kind without a path is simply unavailable."""
    catalogs: dict[CatalogKind, Catalog] = {}
    paths = {
        CatalogKind.EXERCISE: config.catalog.exercises_path,
        CatalogKind.FOOD: config.catalog.foods_path,
    }
    for kind, path in paths.items():
        if path:
            catalogs[kind] = load_catalog(path, expected_kind=kind)
        else:
            logger.warning(f"No {kind.value} catalog configured")
    return catalogs


class ServerLifecycle:
    """
    Server lifecycle coordinator.

    Manages:
        - Database initialization
        - Catalog loading and component wiring
        - Startup sweep (resumes jobs interrupted by a crash or restart)
        - Periodic sweep lifecycle
        - Signal handler registration
        - Graceful shutdown
    """

    def __init__(
        self,
        db_path: str,
        config: PipelineConfig | None = None,
        llm_client: OllamaClient | LMStudioClient | None = None,
        catalogs: dict[CatalogKind, Catalog] | None = None,
    ) -> None:
        """
        Initialize server lifecycle manager.

        Args:
            db_path: Path to SQLite database file
            config: PipelineConfig (defaults if omitted)
            llm_client: Override the configured LLM client (tests)
            catalogs: Override the configured catalogs (tests)
        """
        self._config = config or PipelineConfig()
        self._store = SQLiteJobStore(db_path)
        self._llm_client = llm_client or create_llm_client(self._config)
        self._catalogs = catalogs if catalogs is not None else load_catalogs(self._config)

        cache = CacheCoordinator(
            FastCacheTier(
                ttl_seconds=self._config.cache.fast_ttl_seconds,
                max_entries=self._config.cache.fast_max_entries,
            ),
            DurableCacheTier(db_path, ttl_seconds=self._config.cache.durable_ttl_seconds),
        )
        self._orchestrator = JobOrchestrator(
            store=self._store,
            locks=LockStore(db_path),
            cache=cache,
            catalogs=self._catalogs,
            invoker=GenerationInvoker(self._llm_client),
            config=self._config,
        )
        self._sweep = SweepScheduler(
            self._orchestrator,
            interval_seconds=self._config.sweep.interval_seconds,
            staleness_seconds=self._config.jobs.staleness_seconds,
            batch_size=self._config.sweep.batch_size,
        )
        self._shut_down = False
        logger.info(f"Created ServerLifecycle with db_path={db_path}")

    @property
    def store(self) -> SQLiteJobStore:
        return self._store

    @property
    def orchestrator(self) -> JobOrchestrator:
        return self._orchestrator

    @property
    def sweep(self) -> SweepScheduler:
        return self._sweep

    @property
    def llm_client(self) -> OllamaClient | LMStudioClient:
        return self._llm_client

    async def initialize(self) -> None:
        """Create/migrate the schema. Enough for one-shot CLI commands."""
        await self._store.initialize()

    async def startup(self, register_signals: bool = True) -> None:
        """
        Start the server lifecycle.

        Steps:
            1. Initialize database schema
            2. Run one sweep (jobs left PENDING/PROCESSING by a previous run)
            3. Register signal handlers for graceful shutdown
            4. Start the periodic sweep if enabled
        """
        logger.info("Starting server lifecycle...")

        await self.initialize()

        if not await self._llm_client.health_check():
            logger.warning("LLM provider not reachable; generation will fail until it is")

        report = await self._sweep.sweep_once()
        if report.resumed:
            logger.warning(f"Resumed {report.resumed} job(s) from previous session")

        if register_signals:
            setup_signal_handlers(self.shutdown)

        if self._config.sweep.enabled:
            await self._sweep.start()

        logger.info("Server lifecycle started")

    async def shutdown(self) -> None:
        """
        Shut down the server lifecycle gracefully.

        Steps:
            1. Stop the periodic sweep
            2. Cancel inline job tasks (their jobs are resumed by the next sweep)
            3. Close database (WAL checkpoint)
        """
        if self._shut_down:
            return
        self._shut_down = True

        logger.info("Shutting down server lifecycle...")

        if self._sweep.running:
            await self._sweep.stop()

        await self._orchestrator.cancel_inline()

        await self._store.close()

        logger.info("Server lifecycle shutdown complete")
