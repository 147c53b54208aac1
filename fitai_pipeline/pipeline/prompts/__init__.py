# fitai_pipeline/pipeline/prompts/__init__.py
"""Prompt loading and chat message building for plan generation."""

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import BaseModel

    from fitai_pipeline.catalog.models import CatalogItem
    from fitai_pipeline.pipeline.kinds import KindSpec


def load_prompt(name: str) -> str:
    """Load a prompt template by name.

    Args:
        name: Prompt filename without .txt extension (e.g., 'system', 'workout')

    Returns:
        Prompt content as string

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    prompt_path = Path(__file__).parent / f"{name}.txt"
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt not found: {prompt_path}")

    return prompt_path.read_text(encoding="utf-8")


def _describe_request(request: "BaseModel") -> str:
    lines = []
    for key, value in request.model_dump().items():
        if value in (None, [], ""):
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        lines.append(f"- {key.replace('_', ' ')}: {value}")
    return "\n".join(lines)


def build_messages(
    spec: "KindSpec", allowed: "list[CatalogItem]", request: "BaseModel"
) -> list[dict]:
    """System + user chat messages listing the allowed set and the request."""
    catalog_lines = "\n".join(f"- {item.prompt_line()}" for item in allowed)
    user_prompt = load_prompt(spec.prompt_name).format(
        constraints=_describe_request(request),
        allowed_items=catalog_lines,
        allowed_count=len(allowed),
        reference_key=spec.reference_key,
    )
    return [
        {"role": "system", "content": load_prompt("system")},
        {"role": "user", "content": user_prompt},
    ]


__all__ = ["load_prompt", "build_messages"]
