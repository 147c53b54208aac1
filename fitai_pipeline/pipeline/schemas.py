# fitai_pipeline/pipeline/schemas.py
"""
Structured output schemas passed to the model and used to parse its reply.

Only the fields validation needs are strict; everything else is lenient so
that a slightly chatty model still parses.
"""

from pydantic import BaseModel, ConfigDict, Field


class ExerciseEntry(BaseModel):
    """One exercise reference inside a session."""

    model_config = ConfigDict(extra="ignore")

    exercise_id: str = Field(..., description="ID copied exactly from the allowed exercise list")
    name: str | None = Field(default=None, description="Exercise name as listed")
    sets: int = Field(default=3, ge=1, le=10)
    reps: str = Field(default="10", description="Reps or duration, e.g. '8-12' or '30s'")
    rest_seconds: int = Field(default=60, ge=0, le=600)
    notes: str | None = None


class WorkoutSession(BaseModel):
    """A single training day."""

    model_config = ConfigDict(extra="ignore")

    day: str = Field(..., description="Day label, e.g. 'Day 1' or 'Monday'")
    focus: str | None = Field(default=None, description="Session focus, e.g. 'upper body'")
    warmup: list[ExerciseEntry] = Field(default_factory=list)
    exercises: list[ExerciseEntry] = Field(default_factory=list)
    cooldown: list[ExerciseEntry] = Field(default_factory=list)


class WorkoutPlanOutput(BaseModel):
    """Output schema for WORKOUT_PLAN jobs."""

    model_config = ConfigDict(extra="ignore", title="workout_plan")

    title: str = Field(..., description="Short plan title")
    description: str | None = None
    sessions: list[WorkoutSession] = Field(default_factory=list)


class FoodEntry(BaseModel):
    """One food reference inside a meal."""

    model_config = ConfigDict(extra="ignore")

    food_id: str = Field(..., description="ID copied exactly from the allowed food list")
    name: str | None = Field(default=None, description="Food name as listed")
    quantity: str = Field(default="1 serving")
    calories: int = Field(default=0, ge=0)


class Meal(BaseModel):
    """A single meal of the day."""

    model_config = ConfigDict(extra="ignore")

    meal_type: str = Field(..., description="breakfast, lunch, dinner or snack")
    name: str | None = None
    items: list[FoodEntry] = Field(default_factory=list)


class MealPlanOutput(BaseModel):
    """Output schema for MEAL_PLAN jobs."""

    model_config = ConfigDict(extra="ignore", title="meal_plan")

    title: str = Field(..., description="Short plan title")
    total_calories: int | None = Field(default=None, ge=0)
    meals: list[Meal] = Field(default_factory=list)
