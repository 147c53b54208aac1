# fitai_pipeline/catalog/filter.py
"""
Candidate filter: narrows the full catalog to the allowed set for a request.

Hard layers remove items the user cannot or must not use (equipment,
experience level, body parts, injuries, diet, allergens, explicit
exclusions). Survivors are scored and the top-N form the allowed set.
Everything is deterministic: ties break on catalog ID, so identical
constraints always produce the identical, identically ordered allowed set.
"""

import logging
from dataclasses import dataclass, field

from fitai_pipeline.errors import InsufficientCandidatesError
from fitai_pipeline.models.requests import MealRequest, WorkoutRequest

from .models import Catalog, CatalogItem, CatalogKind

logger = logging.getLogger(__name__)

_LEVEL_RANK = {"beginner": 0, "intermediate": 1, "advanced": 2}

WORKOUT_TYPE_BODY_PARTS: dict[str, tuple[str, ...]] = {
    "full_body": ("back", "chest", "legs", "shoulders", "arms", "core"),
    "upper_body": ("back", "chest", "shoulders", "arms"),
    "lower_body": ("legs", "upper legs", "lower legs"),
    "push": ("chest", "shoulders", "arms"),
    "pull": ("back", "arms"),
    "legs": ("legs", "upper legs", "lower legs"),
    "arms": ("arms", "upper arms", "lower arms"),
    "core": ("core", "waist"),
    "cardio": ("cardio",),
}

# Injury keyword -> exercise name fragments that are penalized
_INJURY_PENALTIES: dict[str, tuple[tuple[str, ...], int]] = {
    "back": (("deadlift", "good morning"), 20),
    "knee": (("squat", "lunge", "jump"), 15),
    "shoulder": (("press", "dip", "handstand"), 15),
    "wrist": (("push up", "plank"), 10),
}

_COMPOUND_INDICATORS = ("squat", "deadlift", "press", "pull", "row", "lunge")

# Diet -> catalog diet tags that satisfy it
_DIET_ACCEPTS: dict[str, frozenset[str]] = {
    "vegetarian": frozenset({"vegetarian", "vegan"}),
    "pescatarian": frozenset({"pescatarian", "vegetarian", "vegan"}),
    "eggetarian": frozenset({"eggetarian", "vegetarian", "vegan"}),
}

_GOAL_NUTRITION_BONUS: dict[str, dict[str, int]] = {
    "muscle_gain": {"high_protein": 10, "calorie_dense": 3},
    "weight_loss": {"high_fiber": 5, "low_calorie": 8},
    "maintenance": {"balanced": 3},
    "endurance": {"complex_carbs": 6},
}


@dataclass
class FilterResult:
    """Allowed set plus per-layer counts."""

    items: list[CatalogItem]
    stats: dict[str, int] = field(default_factory=dict)


class CandidateFilter:
    """Scores and narrows a catalog for one request."""

    def __init__(
        self, catalog: Catalog, min_candidates: int = 20, max_candidates: int = 60
    ) -> None:
        if max_candidates < min_candidates:
            raise ValueError("max_candidates must be >= min_candidates")
        self._catalog = catalog
        self._min = min_candidates
        self._max = max_candidates

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def filter(self, request: WorkoutRequest | MealRequest) -> FilterResult:
        """
        Build the allowed set for a request.

        Raises:
            InsufficientCandidatesError: If fewer than min_candidates items
                survive the hard constraints
            ValueError: If the request type does not match the catalog kind
        """
        if isinstance(request, WorkoutRequest):
            if self._catalog.kind != CatalogKind.EXERCISE:
                raise ValueError("Workout requests need an exercise catalog")
            items, stats = self._workout_layers(request)
            scored = [(self._score_exercise(item, request), item) for item in items]
        elif isinstance(request, MealRequest):
            if self._catalog.kind != CatalogKind.FOOD:
                raise ValueError("Meal requests need a food catalog")
            items, stats = self._meal_layers(request)
            scored = [(self._score_food(item, request), item) for item in items]
        else:
            raise ValueError(f"Unsupported request type: {type(request).__name__}")

        if len(scored) < self._min:
            logger.warning(f"Candidate filter starved: {stats}")
            raise InsufficientCandidatesError(len(scored), self._min, stats)

        scored.sort(key=lambda pair: (-pair[0], pair[1].id))
        selected = [item for _, item in scored[: self._max]]
        stats["final"] = len(selected)

        logger.info(
            f"Candidate filter: {stats['total']} -> {stats['final']} "
            f"(top: {', '.join(item.id for item in selected[:5])})"
        )
        return FilterResult(items=selected, stats=stats)

    # ------------------------------------------------------------------
    # Workout
    # ------------------------------------------------------------------

    def _workout_layers(
        self, request: WorkoutRequest
    ) -> tuple[list[CatalogItem], dict[str, int]]:
        items = list(self._catalog)
        stats = {"total": len(items)}

        available = set(request.equipment)
        items = [i for i in items if i.attribute("equipment") & available]
        stats["after_equipment"] = len(items)

        targets = set(request.body_parts)
        if not targets and request.workout_type:
            targets = set(WORKOUT_TYPE_BODY_PARTS.get(request.workout_type, ()))
        if targets:
            items = [i for i in items if i.category_tags() & targets]
        stats["after_body_parts"] = len(items)

        ceiling = _LEVEL_RANK[request.experience_level]
        items = [i for i in items if _LEVEL_RANK[i.level or "beginner"] <= ceiling]
        stats["after_experience"] = len(items)

        injuries = set(request.injuries)
        excluded = set(request.exclude_ids)
        items = [
            i
            for i in items
            if i.id not in excluded and not (i.attribute("contraindications") & injuries)
        ]
        stats["after_exclusions"] = len(items)
        return items, stats

    def _score_exercise(self, item: CatalogItem, request: WorkoutRequest) -> int:
        score = 0
        equipment = item.attribute("equipment")
        name = item.name.lower()

        if "body weight" in equipment:
            score += 10
        elif "dumbbell" in equipment:
            score += 8
        elif "barbell" in equipment:
            score += 6

        if any(indicator in name for indicator in _COMPOUND_INDICATORS):
            score += 15

        if request.focus_muscles:
            score += 10 * len(item.attribute("target_muscles") & set(request.focus_muscles))

        goal = request.goal
        if goal == "muscle_gain" and equipment & {"dumbbell", "barbell", "cable"}:
            score += 5
        elif goal in ("weight_loss", "endurance") and (
            "body weight" in equipment or "cardio" in item.category_tags()
        ):
            score += 5
        elif goal == "strength" and (
            "barbell" in equipment or any(t in name for t in ("squat", "deadlift", "press", "bench"))
        ):
            score += 5

        if (item.level or "beginner") == request.experience_level:
            score += 5

        for injury in request.injuries:
            for keyword, (fragments, penalty) in _INJURY_PENALTIES.items():
                if keyword in injury and any(f in name for f in fragments):
                    score -= penalty
        return score

    # ------------------------------------------------------------------
    # Meal
    # ------------------------------------------------------------------

    def _meal_layers(self, request: MealRequest) -> tuple[list[CatalogItem], dict[str, int]]:
        items = list(self._catalog)
        stats = {"total": len(items)}

        if request.diet:
            accepted = _DIET_ACCEPTS.get(request.diet, frozenset({request.diet}))
            items = [i for i in items if i.attribute("diet") & accepted]
        stats["after_diet"] = len(items)

        allergies = set(request.allergies)
        items = [i for i in items if not (i.attribute("allergens") & allergies)]
        stats["after_allergies"] = len(items)

        excluded = set(request.exclude_ids)
        items = [
            i
            for i in items
            if i.id not in excluded
            and not any(ingredient in i.name.lower() for ingredient in request.exclude_ingredients)
        ]
        stats["after_exclusions"] = len(items)
        return items, stats

    def _score_food(self, item: CatalogItem, request: MealRequest) -> int:
        score = 0
        if request.meal_types:
            score += 5 * len(item.attribute("meal_types") & set(request.meal_types))
        bonuses = _GOAL_NUTRITION_BONUS.get(request.goal or "", {})
        nutrition = item.attribute("nutrition")
        for tag, bonus in bonuses.items():
            if tag in nutrition:
                score += bonus
        if "whole_food" in nutrition:
            score += 2
        return score
