# fitai_pipeline/validation/__init__.py
"""Tool input sanitization."""

from .sanitize import parse_kind, sanitize_input_params, sanitize_job_id, sanitize_owner_id

__all__ = ["parse_kind", "sanitize_input_params", "sanitize_job_id", "sanitize_owner_id"]
