"""AI Response Contracts - Tagged schemas for generated content.

Raw model output is validated here before it reaches the typed core. A
response that does not match its contract raises AIRequestError instead of
being trusted.
"""

import json
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import AIRequestError
from .models import DayPlan, FoodItem, Intensity, MealType, PlannedMeal, Recipe, Workout


HIGH_SUGAR_G = 15
HIGH_SODIUM_MG = 500
HIGH_FAT_G = 20

_JSON_BLOCK = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


class AIResponseKind(str, Enum):
    NUTRITION_ANALYSIS = "nutrition_analysis"
    FOOD_SEARCH = "food_search"
    EXERCISE_ESTIMATE = "exercise_estimate"
    DAY_PLANS = "day_plans"
    RECIPE = "recipe"
    HABIT_INSIGHT = "habit_insight"


class NutritionAnalysis(BaseModel):
    """Nutrition facts for one serving of a food or meal."""

    name: str = Field(min_length=1, description="Descriptive name of the food or meal")
    brand: Optional[str] = None
    calories: float = Field(ge=0, description="Estimated total calories")
    protein: float = Field(ge=0, description="Protein in grams")
    carbs: float = Field(ge=0, description="Carbohydrates in grams")
    fat: float = Field(ge=0, description="Fat in grams")
    sugar: Optional[float] = Field(default=None, ge=0, description="Sugar in grams")
    fiber: Optional[float] = Field(default=None, ge=0, description="Fiber in grams")
    sodium: Optional[float] = Field(default=None, ge=0, description="Sodium in mg")
    serving_size: str = Field(default="1 serving", description="e.g. '1 bowl', '2 slices'")
    serving_unit: str = "serving"
    health_score: Optional[float] = Field(default=None, ge=0, le=100)
    health_reason: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)


class ExerciseEstimate(BaseModel):
    name: str = Field(min_length=1)
    calories_burned: float = Field(ge=0)
    duration_minutes: float = Field(ge=0)


class MealDraft(BaseModel):
    type: MealType
    recipe: Recipe


class WorkoutDraft(BaseModel):
    name: str = Field(min_length=1)
    duration: str = "30 mins"
    intensity: Intensity = Intensity.MEDIUM
    calories_estimate: float = Field(default=0, ge=0)
    instructions: list[str] = Field(default_factory=list)


class DayPlanDraft(BaseModel):
    """A generated day before it gets a date and identities."""

    meals: list[MealDraft] = Field(min_length=1)
    workouts: list[WorkoutDraft] = Field(default_factory=list)


class HabitInsight(BaseModel):
    """Behavioural summary of today's logs."""

    score: float = Field(ge=0, le=100)
    streak: int = Field(default=0, ge=0)
    trend_title: str
    trend_description: str
    advice: str
    eating_window_start: Optional[str] = None
    eating_window_end: Optional[str] = None
    late_night_snacks: int = Field(default=0, ge=0)


FALLBACK_HABIT_INSIGHT = HabitInsight(
    score=75,
    streak=1,
    trend_title="Gathering Data",
    trend_description="Log more meals to see trends.",
    advice="Keep logging to unlock insights!",
    late_night_snacks=0,
)


RESPONSE_ADAPTERS: dict[AIResponseKind, TypeAdapter] = {
    AIResponseKind.NUTRITION_ANALYSIS: TypeAdapter(NutritionAnalysis),
    AIResponseKind.FOOD_SEARCH: TypeAdapter(list[NutritionAnalysis]),
    AIResponseKind.EXERCISE_ESTIMATE: TypeAdapter(ExerciseEstimate),
    AIResponseKind.DAY_PLANS: TypeAdapter(list[DayPlanDraft]),
    AIResponseKind.RECIPE: TypeAdapter(Recipe),
    AIResponseKind.HABIT_INSIGHT: TypeAdapter(HabitInsight),
}


def response_schema(kind: AIResponseKind) -> Any:
    """Python type describing the expected response, for schema-aware clients."""
    return {
        AIResponseKind.NUTRITION_ANALYSIS: NutritionAnalysis,
        AIResponseKind.FOOD_SEARCH: list[NutritionAnalysis],
        AIResponseKind.EXERCISE_ESTIMATE: ExerciseEstimate,
        AIResponseKind.DAY_PLANS: list[DayPlanDraft],
        AIResponseKind.RECIPE: Recipe,
        AIResponseKind.HABIT_INSIGHT: HabitInsight,
    }[kind]


def extract_json(text: str) -> Any:
    """Decode JSON from model text, tolerating prose around one JSON block.

    Raises:
        AIRequestError: If no JSON can be decoded
    """
    if not text or not text.strip():
        raise AIRequestError("No response from AI")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = _JSON_BLOCK.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass
    raise AIRequestError("AI response is not valid JSON")


def parse_ai_response(kind: AIResponseKind, raw: Any) -> Any:
    """Validate a raw response against the contract for ``kind``.

    Args:
        kind: Which contract the response must satisfy
        raw: Response text, or already-decoded JSON data

    Returns:
        The validated model (or list of models)

    Raises:
        AIRequestError: On invalid JSON or a schema mismatch
    """
    data = extract_json(raw) if isinstance(raw, str) else raw
    try:
        return RESPONSE_ADAPTERS[kind].validate_python(data)
    except ValidationError as e:
        raise AIRequestError(f"AI response does not match {kind.value} schema: {e.error_count()} errors") from e


def derive_warnings(analysis: NutritionAnalysis) -> list[str]:
    """Merge model warnings with threshold flags computed locally."""
    warnings = list(analysis.warnings)
    flags = (
        ("High Sugar", analysis.sugar is not None and analysis.sugar > HIGH_SUGAR_G),
        ("High Sodium", analysis.sodium is not None and analysis.sodium > HIGH_SODIUM_MG),
        ("High Fat", analysis.fat > HIGH_FAT_G),
    )
    for label, hit in flags:
        if hit and label not in warnings:
            warnings.append(label)
    return warnings


def food_item_from_analysis(
    analysis: NutritionAnalysis,
    meal_type: MealType,
    quantity: float = 1.0,
) -> FoodItem:
    """Turn an analysis into a log entry with the quantity applied."""
    def scaled(value: float | None) -> float | None:
        return None if value is None else value * quantity

    return FoodItem(
        name=analysis.name,
        calories=analysis.calories * quantity,
        protein=analysis.protein * quantity,
        carbs=analysis.carbs * quantity,
        fat=analysis.fat * quantity,
        sugar=scaled(analysis.sugar),
        fiber=scaled(analysis.fiber),
        sodium=scaled(analysis.sodium),
        meal_type=meal_type,
        serving_size=analysis.serving_size,
        serving_unit=analysis.serving_unit,
        quantity=quantity,
        health_score=analysis.health_score,
        health_reason=analysis.health_reason,
        warnings=derive_warnings(analysis),
        allergens=list(analysis.allergens),
    )


def drafts_to_day_plans(drafts: list[DayPlanDraft]) -> list[DayPlan]:
    """Convert generated drafts into plan days with placeholder dates."""
    return [
        DayPlan(
            date=f"Day {i + 1}",
            meals=[PlannedMeal(type=m.type, recipe=m.recipe) for m in draft.meals],
            workouts=[Workout(**w.model_dump()) for w in draft.workouts],
        )
        for i, draft in enumerate(drafts)
    ]
