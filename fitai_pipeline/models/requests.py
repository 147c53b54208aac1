# fitai_pipeline/models/requests.py
"""
Normalized generation request parameters.

The profile/preferences collaborator hands over already-normalized input
params; these models check shape and bounds and fold every free-text tag
to one canonical form (stripped, lower-case). The fingerprint is computed
from the model dump, so two requests share a fingerprint only when the
candidate filter sees identical constraints. Catalog IDs are case-sensitive
and are only stripped.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ExperienceLevel = Literal["beginner", "intermediate", "advanced"]


def _tag(value):
    if value is None:
        return None
    value = str(value).strip().lower()
    return value or None


def _tag_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [tag for tag in (_tag(v) for v in value) if tag]


def _id_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(v).strip() for v in value if str(v).strip()]


class WorkoutRequest(BaseModel):
    """Parameters of a WORKOUT_PLAN job."""

    model_config = ConfigDict(extra="ignore")

    equipment: list[str] = Field(default_factory=lambda: ["body weight"], min_length=1)
    experience_level: ExperienceLevel = "beginner"
    goal: str | None = None
    workout_type: str | None = None
    body_parts: list[str] = Field(default_factory=list)
    focus_muscles: list[str] = Field(default_factory=list)
    injuries: list[str] = Field(default_factory=list)
    exclude_ids: list[str] = Field(default_factory=list)
    duration_minutes: int = Field(default=45, ge=10, le=180)
    workouts_per_week: int = Field(default=3, ge=1, le=7)

    @field_validator("equipment", "body_parts", "focus_muscles", "injuries", mode="before")
    @classmethod
    def _lower_lists(cls, value):
        return _tag_list(value)

    @field_validator("exclude_ids", mode="before")
    @classmethod
    def _strip_ids(cls, value):
        return _id_list(value)

    @field_validator("goal", "workout_type", mode="before")
    @classmethod
    def _lower_tags(cls, value):
        return _tag(value)

    @field_validator("experience_level", mode="before")
    @classmethod
    def _lower_level(cls, value):
        return _tag(value) or "beginner"


class MealRequest(BaseModel):
    """Parameters of a MEAL_PLAN job."""

    model_config = ConfigDict(extra="ignore")

    calories: int = Field(ge=1000, le=5000)
    diet: str | None = None
    allergies: list[str] = Field(default_factory=list)
    exclude_ingredients: list[str] = Field(default_factory=list)
    exclude_ids: list[str] = Field(default_factory=list)
    meal_types: list[str] = Field(default_factory=list)
    meals_per_day: int = Field(default=3, ge=1, le=6)
    goal: str | None = None

    @field_validator("allergies", "exclude_ingredients", "meal_types", mode="before")
    @classmethod
    def _lower_lists(cls, value):
        return _tag_list(value)

    @field_validator("exclude_ids", mode="before")
    @classmethod
    def _strip_ids(cls, value):
        return _id_list(value)

    @field_validator("diet", "goal", mode="before")
    @classmethod
    def _lower_tags(cls, value):
        return _tag(value)
