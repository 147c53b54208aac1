# fitai_pipeline/pipeline/kinds.py
"""Per-kind wiring: request model, catalog, output schema and reference locations."""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from fitai_pipeline.catalog.models import CatalogKind
from fitai_pipeline.models.jobs import JobKind
from fitai_pipeline.models.requests import MealRequest, WorkoutRequest

from .schemas import MealPlanOutput, WorkoutPlanOutput


@dataclass(frozen=True)
class KindSpec:
    kind: JobKind
    catalog_kind: CatalogKind
    request_model: type[BaseModel]
    output_model: type[BaseModel]
    prompt_name: str
    reference_key: str
    # (outer list, inner lists) holding reference entries
    groups_key: str
    entry_keys: tuple[str, ...]

    def iter_references(self, plan: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield (path, entry) for every catalog reference in a parsed plan."""
        for i, group in enumerate(plan.get(self.groups_key) or []):
            for key in self.entry_keys:
                for j, entry in enumerate(group.get(key) or []):
                    yield f"{self.groups_key}[{i}].{key}[{j}]", entry


KIND_SPECS: dict[JobKind, KindSpec] = {
    JobKind.WORKOUT_PLAN: KindSpec(
        kind=JobKind.WORKOUT_PLAN,
        catalog_kind=CatalogKind.EXERCISE,
        request_model=WorkoutRequest,
        output_model=WorkoutPlanOutput,
        prompt_name="workout",
        reference_key="exercise_id",
        groups_key="sessions",
        entry_keys=("warmup", "exercises", "cooldown"),
    ),
    JobKind.MEAL_PLAN: KindSpec(
        kind=JobKind.MEAL_PLAN,
        catalog_kind=CatalogKind.FOOD,
        request_model=MealRequest,
        output_model=MealPlanOutput,
        prompt_name="meal",
        reference_key="food_id",
        groups_key="meals",
        entry_keys=("items",),
    ),
}


def get_kind_spec(kind: JobKind) -> KindSpec:
    return KIND_SPECS[kind]
