# fitai_pipeline/validation/sanitize.py
"""
Input sanitization and validation utilities for tool calls.

Every check raises ToolError so the MCP client sees a clean message.
"""

import json
import logging
import re
from typing import Any

from fastmcp.exceptions import ToolError

from fitai_pipeline.models.jobs import JobKind

logger = logging.getLogger(__name__)

_JOB_ID_PATTERN = re.compile(r"^[a-f0-9]{12}$")
_OWNER_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:@-]{0,127}$")


def sanitize_job_id(job_id: str) -> str:
    """
    Sanitize and validate job ID.

    Job IDs are 12 lowercase hex characters.

    Raises:
        ToolError: If job ID format is invalid
    """
    cleaned = (job_id or "").strip().lower()
    if not _JOB_ID_PATTERN.match(cleaned):
        raise ToolError(f"Invalid job ID '{job_id}': must be 12 hexadecimal characters")
    return cleaned


def sanitize_owner_id(owner_id: str) -> str:
    """
    Sanitize and validate an owner reference.

    Owner IDs come from the authentication collaborator: 1-128 characters,
    starting alphanumeric, then alphanumerics and _ . : @ -

    Raises:
        ToolError: If owner ID format is invalid
    """
    cleaned = (owner_id or "").strip()
    if not _OWNER_ID_PATTERN.match(cleaned):
        raise ToolError(f"Invalid owner ID '{owner_id}'")
    return cleaned


def parse_kind(kind: str) -> JobKind:
    """
    Parse a job kind ('workout_plan', 'MEAL_PLAN', 'meal-plan', ...).

    Raises:
        ToolError: If the kind is unknown
    """
    normalized = (kind or "").strip().lower().replace("-", "_")
    try:
        return JobKind(normalized)
    except ValueError:
        valid = ", ".join(k.value for k in JobKind)
        raise ToolError(f"Unknown job kind '{kind}' (expected one of: {valid})") from None


def sanitize_input_params(params: Any) -> dict[str, Any]:
    """
    Input params must be a JSON object (a dict, or a string holding one).

    Raises:
        ToolError: If params are not a JSON object
    """
    if isinstance(params, str):
        try:
            params = json.loads(params)
        except json.JSONDecodeError as e:
            raise ToolError(f"input_params is not valid JSON: {e}") from e

    if not isinstance(params, dict):
        raise ToolError("input_params must be a JSON object")

    return params
