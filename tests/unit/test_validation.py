# tests/unit/test_validation.py
"""
Tests for the validation & repair engine.

Covers the three resolution tiers, hallucination thresholds, asset coverage
and enrichment of the returned plan.
"""

import pytest

from fitai_pipeline.catalog.filter import CandidateFilter
from fitai_pipeline.catalog.models import Catalog, CatalogItem, CatalogKind
from fitai_pipeline.errors import CatalogIntegrityError, HallucinationError
from fitai_pipeline.models.jobs import JobKind
from fitai_pipeline.models.requests import MealRequest, WorkoutRequest
from fitai_pipeline.pipeline.kinds import get_kind_spec
from fitai_pipeline.pipeline.validation import ItemStatus, ValidationRepairEngine

from tests.unit.factories import EXERCISES, FOODS, make_exercise, make_food, meal_plan, workout_plan

WORKOUT = get_kind_spec(JobKind.WORKOUT_PLAN)
MEAL = get_kind_spec(JobKind.MEAL_PLAN)


@pytest.fixture
def engine() -> ValidationRepairEngine:
    return ValidationRepairEngine(max_hallucination_ratio=0.25, name_similarity_threshold=0.6)


@pytest.fixture
def allowed_exercises(exercise_catalog: Catalog) -> list[CatalogItem]:
    request = WorkoutRequest(equipment=["body weight", "dumbbell"])
    return CandidateFilter(exercise_catalog, min_candidates=3).filter(request).items


@pytest.fixture
def allowed_foods(food_catalog: Catalog) -> list[CatalogItem]:
    request = MealRequest(calories=2000, diet="vegetarian")
    return CandidateFilter(food_catalog, min_candidates=3).filter(request).items


def _statuses(report) -> dict[str, ItemStatus]:
    return {r.original_id: r.status for r in report.item_results}


class TestValidReferences:
    def test_all_valid(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_pushup", "ex_squat", "ex_plank")

        plan, report = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        assert report.total_references == 3
        assert report.valid_count == 3
        assert report.warnings == []
        assert report.errors == []
        assert report.hallucination_ratio == 0.0
        ids = [e["exercise_id"] for e in plan["sessions"][0]["exercises"]]
        assert ids == ["ex_pushup", "ex_squat", "ex_plank"]

    def test_plan_is_enriched_with_name_and_asset(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_pushup", "ex_squat", "ex_plank")

        plan, _ = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        entry = plan["sessions"][0]["exercises"][0]
        assert entry["name"] == "Push Up"
        assert entry["asset_ref"] == "media/ex_pushup.mp4"

    def test_raw_plan_not_modified(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_barbell_bench", "ex_squat", "ex_plank", "ex_crunch")

        engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        assert raw["sessions"][0]["exercises"][0]["exercise_id"] == "ex_barbell_bench"
        assert "asset_ref" not in raw["sessions"][0]["exercises"][0]

    def test_warmup_and_cooldown_are_validated(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_pushup", "ex_squat")
        raw["sessions"][0]["warmup"] = [{"exercise_id": "ex_jumping_jack"}]
        raw["sessions"][0]["cooldown"] = [{"exercise_id": "ex_dead_bug"}]

        plan, report = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        assert report.total_references == 4
        paths = {r.path for r in report.item_results}
        assert "sessions[0].warmup[0]" in paths
        assert "sessions[0].cooldown[0]" in paths
        assert plan["sessions"][0]["warmup"][0]["asset_ref"] == "media/ex_jumping_jack.mp4"


class TestCatalogHitOutsideAllowedSet:
    def test_replaced_by_attribute_and_category_match(
        self, engine, allowed_exercises, exercise_catalog
    ):
        raw = workout_plan("ex_barbell_bench", "ex_squat", "ex_plank", "ex_crunch")

        plan, report = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        result = report.item_results[0]
        assert result.status == ItemStatus.REPLACED
        # Push Up shares chest + pectorals + triceps with the barbell bench press
        assert result.final_id == "ex_pushup"
        assert plan["sessions"][0]["exercises"][0]["exercise_id"] == "ex_pushup"
        assert report.replaced_count == 1
        assert len(report.warnings) == 1
        assert report.errors == []

    def test_replacement_prefers_unused_items(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_pushup", "ex_barbell_bench", "ex_squat", "ex_plank")

        plan, report = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        replaced = report.item_results[1]
        assert replaced.status == ItemStatus.REPLACED
        assert replaced.final_id != "ex_pushup"
        assert exercise_catalog.get(replaced.final_id).category == ("chest",)

    def test_vegetarian_plan_replaces_meat(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(
            ("food_chicken_breast", 230), ("food_lentils", 230), ("food_brown_rice", 220)
        )

        plan, report = engine.validate(MEAL, raw, allowed_foods, food_catalog)

        assert _statuses(report)["food_chicken_breast"] == ItemStatus.REPLACED
        item = plan["meals"][0]["items"][0]
        assert item["food_id"] == "food_tofu"
        assert item["name"] == "Firm Tofu"
        assert report.hallucinated_count == 0


class TestHallucinations:
    def test_recovered_from_name_hints(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan(
            "ex_diamond_pushup",
            "ex_squat",
            "ex_plank",
            "ex_crunch",
            names={"ex_diamond_pushup": "Diamond Push Up"},
        )

        plan, report = engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        result = report.item_results[0]
        assert result.status == ItemStatus.REPLACED_FROM_HALLUCINATION
        assert result.final_id in {"ex_pushup", "ex_incline_pushup"}
        assert report.hallucination_ratio == 0.25
        assert len(report.errors) == 1

    def test_unresolved_reference_fails(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan(
            "ex_moon_walk", "ex_squat", "ex_plank", "ex_crunch", names={"ex_moon_walk": "Moon Walk"}
        )

        with pytest.raises(HallucinationError) as exc_info:
            engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        report = exc_info.value.report
        assert report.unresolved_ids == ["ex_moon_walk"]
        assert exc_info.value.retryable is True
        assert exc_info.value.details["validation"]["unresolved_count"] == 1

    def test_ratio_above_threshold_fails(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan(
            "ex_diamond_pushup",
            "ex_sumo_squat",
            "ex_plank",
            "ex_crunch",
            names={"ex_diamond_pushup": "Diamond Push Up", "ex_sumo_squat": "Sumo Squat"},
        )

        with pytest.raises(HallucinationError, match="Hallucination ratio") as exc_info:
            engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        report = exc_info.value.report
        assert report.unresolved_count == 0
        assert report.hallucination_ratio == 0.5

    def test_nameless_fabricated_id_is_not_recovered(
        self, engine, allowed_exercises, exercise_catalog
    ):
        raw = workout_plan("ex_diamond_pushup", "ex_squat", "ex_plank", "ex_crunch")

        with pytest.raises(HallucinationError) as exc_info:
            engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        report = exc_info.value.report
        assert report.unresolved_ids == ["ex_diamond_pushup"]
        assert "no plausible substitute" in report.errors[0]

    @pytest.mark.parametrize("name", [None, "", "Whole Food"])
    def test_id_prefix_and_generic_words_do_not_match_attributes(self, engine, name):
        kale = make_food(
            "food_kale", "Kale Salad", "vegetable", ("vegan",), 50, nutrition=("whole_food",)
        )
        catalog = Catalog(CatalogKind.FOOD, "test", [*FOODS, kale])
        allowed = CandidateFilter(catalog, min_candidates=3).filter(
            MealRequest(calories=2000, diet="vegetarian")
        ).items
        raw = meal_plan(
            ("food_x9q7", 300),
            ("food_lentils", 230),
            ("food_brown_rice", 220),
            ("food_spinach", 40),
            names={"food_x9q7": name},
        )

        with pytest.raises(HallucinationError) as exc_info:
            engine.validate(MEAL, raw, allowed, catalog)

        report = exc_info.value.report
        assert report.unresolved_ids == ["food_x9q7"]
        assert _statuses(report)["food_x9q7"] == ItemStatus.UNRESOLVED

    def test_recovery_matches_item_name_not_attributes(
        self, engine, allowed_exercises, exercise_catalog
    ):
        # "triceps" is a target muscle of several allowed items but names none of them
        raw = workout_plan(
            "ex_triceps_blaster",
            "ex_squat",
            "ex_plank",
            "ex_crunch",
            names={"ex_triceps_blaster": "Triceps Blaster"},
        )

        with pytest.raises(HallucinationError) as exc_info:
            engine.validate(WORKOUT, raw, allowed_exercises, exercise_catalog)

        assert exc_info.value.report.unresolved_ids == ["ex_triceps_blaster"]

    def test_unknown_meal_item_fails(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(
            ("food_unicorn_steak", 400),
            ("food_lentils", 230),
            ("food_brown_rice", 220),
            ("food_spinach", 40),
            names={"food_unicorn_steak": "Unicorn Steak"},
        )

        with pytest.raises(HallucinationError):
            engine.validate(MEAL, raw, allowed_foods, food_catalog)


class TestAssetCoverage:
    def test_missing_asset_fails_with_integrity_error(self, engine):
        wall_sit = make_exercise("ex_wall_sit", "Wall Sit", "legs", asset=False)
        catalog = Catalog(CatalogKind.EXERCISE, "broken", [*EXERCISES, wall_sit])
        allowed = [catalog.get("ex_wall_sit"), catalog.get("ex_squat"), catalog.get("ex_plank")]
        raw = workout_plan("ex_wall_sit", "ex_squat", "ex_plank")

        with pytest.raises(CatalogIntegrityError) as exc_info:
            engine.validate(WORKOUT, raw, allowed, catalog)

        error = exc_info.value
        assert error.item_ids == ["ex_wall_sit"]
        assert error.category == "catalog"
        assert error.retryable is False
        assert error.details["catalog_version"] == "broken"


class TestCalories:
    def test_portions_scaled_to_target(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(("food_tofu", 500), ("food_lentils", 500), ("food_brown_rice", 400))
        items = raw["meals"][0]["items"]
        items[0]["quantity"] = "150 g"
        items[1]["quantity"] = 2
        items[2]["quantity"] = "a handful"

        plan, report = engine.validate(
            MEAL, raw, allowed_foods, food_catalog, target_calories=2000
        )

        scaled = plan["meals"][0]["items"]
        assert [item["calories"] for item in scaled] == [714, 714, 571]
        assert [item["quantity"] for item in scaled] == ["214.3 g", 2.9, "a handful"]
        assert plan["total_calories"] == 1999
        assert abs(plan["total_calories"] - 2000) <= 0.02 * 2000
        assert report.calories_before_scaling == 1400
        assert report.calorie_scale_factor == pytest.approx(2000 / 1400, abs=1e-4)
        assert report.warnings == []

    def test_overshoot_scaled_down(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(("food_tofu", 900), ("food_lentils", 900), ("food_brown_rice", 700))

        plan, report = engine.validate(
            MEAL, raw, allowed_foods, food_catalog, target_calories=2000
        )

        assert report.calorie_scale_factor == pytest.approx(0.8)
        assert plan["total_calories"] == 2000
        assert plan["meals"][0]["items"][0]["quantity"] == "0.8 serving"
        assert report.warnings == []

    def test_drift_inside_deadband_left_alone(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(("food_tofu", 700), ("food_lentils", 700), ("food_brown_rice", 620))

        plan, report = engine.validate(
            MEAL, raw, allowed_foods, food_catalog, target_calories=2000
        )

        assert report.calorie_scale_factor is None
        assert plan["total_calories"] == 2020
        assert plan["meals"][0]["items"][0]["calories"] == 700
        assert plan["meals"][0]["items"][0]["quantity"] == "1 serving"
        assert report.warnings == []

    def test_drift_beyond_scaling_limit_warns(self, engine, allowed_foods, food_catalog):
        raw = meal_plan(("food_tofu", 180), ("food_lentils", 230), ("food_brown_rice", 220))

        plan, report = engine.validate(
            MEAL, raw, allowed_foods, food_catalog, target_calories=2000
        )

        assert report.calorie_scale_factor == 2.0
        assert plan["total_calories"] == 1260
        assert any("740 kcal under the 2000 kcal target" in w for w in report.warnings)

    def test_scaling_limit_is_configurable(self, allowed_foods, food_catalog):
        engine = ValidationRepairEngine(max_portion_scale=4.0)
        raw = meal_plan(("food_tofu", 180), ("food_lentils", 230), ("food_brown_rice", 220))

        plan, report = engine.validate(
            MEAL, raw, allowed_foods, food_catalog, target_calories=2000
        )

        assert abs(plan["total_calories"] - 2000) <= 0.02 * 2000
        assert report.warnings == []

    def test_workout_plans_are_not_scaled(self, engine, allowed_exercises, exercise_catalog):
        raw = workout_plan("ex_pushup", "ex_squat", "ex_plank")

        plan, report = engine.validate(
            WORKOUT, raw, allowed_exercises, exercise_catalog, target_calories=2000
        )

        assert report.calorie_scale_factor is None
        assert "total_calories" not in plan
