# fitai_pipeline/server.py
"""
FastMCP server instance with tool registration.

CRITICAL: configure_logging() is called first to prevent stdout pollution.
All logging goes to stderr as JSON.
"""

# Configure logging FIRST before any other imports
from fitai_pipeline.logging_config import configure_logging

configure_logging()

# Now safe to import everything else
import logging
from typing import Any

from fastmcp import FastMCP

from fitai_pipeline.background.lifecycle import ServerLifecycle
from fitai_pipeline.config.loader import get_db_path, load_config
from fitai_pipeline.config.schema import PipelineConfig
from fitai_pipeline.tools.job_status import get_job_status as _get_job_status
from fitai_pipeline.tools.list_jobs import list_jobs as _list_jobs
from fitai_pipeline.tools.run_sweep import run_sweep as _run_sweep
from fitai_pipeline.tools.submit_job import submit_generation_job as _submit_generation_job

logger = logging.getLogger(__name__)

# Create FastMCP instance
mcp = FastMCP("fitai-pipeline")

# Load configuration
_config = load_config()
logger.info(f"Loaded configuration: provider={_config.provider}")

# Lifecycle manager (initialized by __main__.py)
_lifecycle: ServerLifecycle | None = None


def get_lifecycle() -> ServerLifecycle:
    """
    Get the lifecycle manager.

    Raises:
        RuntimeError: If lifecycle not initialized (should never happen)
    """
    if _lifecycle is None:
        raise RuntimeError("Server lifecycle not initialized. Call initialize_lifecycle() first.")
    return _lifecycle


async def initialize_lifecycle(config: PipelineConfig | None = None) -> None:
    """
    Initialize the server lifecycle (DB + catalogs + startup sweep + signals).

    Must be called before any tool calls. Called by __main__.py on startup.

    Args:
        config: PipelineConfig instance (defaults to module-level _config if None)
    """
    global _lifecycle

    db_path = get_db_path()
    logger.info(f"Initializing lifecycle with db_path={db_path}")

    _lifecycle = ServerLifecycle(str(db_path), config=config or _config)
    await _lifecycle.startup()

    logger.info("Lifecycle initialized: SQLite + catalogs + sweep + signals ready")


@mcp.tool()
async def submit_generation_job(
    owner_id: str,
    kind: str,
    input_params: dict[str, Any],
    regenerate: bool = False,
) -> dict:
    """Submit a workout_plan or meal_plan generation job. Returns a job_id to poll."""
    lifecycle = get_lifecycle()
    return await _submit_generation_job(
        owner_id, kind, input_params, orchestrator=lifecycle.orchestrator, regenerate=regenerate
    )


@mcp.tool()
async def get_job_status(job_id: str, owner_id: str) -> dict:
    """Get a generation job's status, with its plan or typed error once finished."""
    lifecycle = get_lifecycle()
    return await _get_job_status(job_id, owner_id, orchestrator=lifecycle.orchestrator)


@mcp.tool()
async def list_jobs(owner_id: str) -> dict:
    """List an owner's generation jobs, newest first."""
    lifecycle = get_lifecycle()
    return await _list_jobs(owner_id, orchestrator=lifecycle.orchestrator)


@mcp.tool()
async def run_sweep() -> dict:
    """Run one sweep now: expire overdue jobs and resume stalled ones."""
    lifecycle = get_lifecycle()
    return await _run_sweep(lifecycle.sweep)


logger.info("MCP server initialized with 4 tools")
