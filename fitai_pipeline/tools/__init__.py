# fitai_pipeline/tools/__init__.py
"""MCP tool implementations (also used by the CLI)."""

from .job_status import get_job_status
from .list_jobs import list_jobs
from .run_sweep import run_sweep
from .submit_job import submit_generation_job

__all__ = ["submit_generation_job", "get_job_status", "list_jobs", "run_sweep"]
