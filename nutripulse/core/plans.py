"""Plan Mutations - Pure functions over meal/workout plans.

A plan is an ordered list of DayPlan. Every function returns a new snapshot
and leaves its input untouched.
"""

import re
from datetime import date, timedelta
from typing import NamedTuple, Sequence

from .errors import PlanItemNotFoundError
from .models import (
    DayPlan,
    ExerciseItem,
    FoodItem,
    PlannedMeal,
    Recipe,
    Workout,
    new_id,
    now_ms,
)


DEFAULT_WORKOUT_MINUTES = 30
PLANNED_SERVING = "1 portion"

_LEADING_INT = re.compile(r"^\s*(\d+)")


class MealLogged(NamedTuple):
    """Result of marking a meal logged.

    food_item is set only when the flag actually flipped.
    """

    plans: list[DayPlan]
    food_item: FoodItem | None


class WorkoutCompleted(NamedTuple):
    """Result of marking a workout done.

    exercise_item is set only when the flag actually flipped.
    """

    plans: list[DayPlan]
    exercise_item: ExerciseItem | None


def parse_duration_minutes(duration: str) -> int:
    """Read the leading integer of a duration like "45 mins".

    Falls back to 30 minutes when there is no usable number.
    """
    match = _LEADING_INT.match(duration or "")
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return DEFAULT_WORKOUT_MINUTES


def find_meal(plans: Sequence[DayPlan], meal_id: str) -> PlannedMeal:
    for day in plans:
        for meal in day.meals:
            if meal.id == meal_id:
                return meal
    raise PlanItemNotFoundError(f"Planned meal not found: {meal_id}")


def find_workout(plans: Sequence[DayPlan], workout_id: str) -> Workout:
    for day in plans:
        for workout in day.workouts:
            if workout.id == workout_id:
                return workout
    raise PlanItemNotFoundError(f"Planned workout not found: {workout_id}")


def find_meal_on_day(plans: Sequence[DayPlan], day_index: int, meal_id: str) -> PlannedMeal:
    if not 0 <= day_index < len(plans):
        raise PlanItemNotFoundError(f"Plan day index out of range: {day_index}")
    for meal in plans[day_index].meals:
        if meal.id == meal_id:
            return meal
    raise PlanItemNotFoundError(f"Planned meal not found on day {day_index}: {meal_id}")


def food_item_from_meal(meal: PlannedMeal, timestamp: int | None = None) -> FoodItem:
    """Build the food log entry that records eating a planned meal."""
    recipe = meal.recipe
    return FoodItem(
        name=recipe.name,
        calories=recipe.calories,
        protein=recipe.protein,
        carbs=recipe.carbs,
        fat=recipe.fat,
        meal_type=meal.type,
        serving_size=PLANNED_SERVING,
        quantity=1,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def exercise_item_from_workout(workout: Workout, timestamp: int | None = None) -> ExerciseItem:
    """Build the exercise log entry that records doing a planned workout."""
    return ExerciseItem(
        name=workout.name,
        calories_burned=workout.calories_estimate,
        duration_minutes=parse_duration_minutes(workout.duration),
        timestamp=timestamp if timestamp is not None else now_ms(),
    )


def mark_meal_logged(
    plans: Sequence[DayPlan], meal_id: str, timestamp: int | None = None
) -> MealLogged:
    """Flip a planned meal's is_logged flag and derive its food log entry.

    Args:
        plans: Current plan days
        meal_id: ID of the meal to mark
        timestamp: Epoch ms for the derived entry (defaults to now)

    Returns:
        MealLogged with the new plan snapshot. food_item is None when the
        meal was already logged, so repeated calls never double-log.

    Raises:
        PlanItemNotFoundError: If no meal has that ID
    """
    meal = find_meal(plans, meal_id)
    if meal.is_logged:
        return MealLogged([day.model_copy(deep=True) for day in plans], None)

    updated = [
        day.model_copy(update={
            "meals": [
                m.model_copy(update={"is_logged": True}) if m.id == meal_id else m.model_copy()
                for m in day.meals
            ],
        }, deep=True)
        for day in plans
    ]
    return MealLogged(updated, food_item_from_meal(meal, timestamp))


def mark_workout_completed(
    plans: Sequence[DayPlan], workout_id: str, timestamp: int | None = None
) -> WorkoutCompleted:
    """Flip a planned workout's is_completed flag and derive its exercise entry.

    Raises:
        PlanItemNotFoundError: If no workout has that ID
    """
    workout = find_workout(plans, workout_id)
    if workout.is_completed:
        return WorkoutCompleted([day.model_copy(deep=True) for day in plans], None)

    updated = [
        day.model_copy(update={
            "workouts": [
                w.model_copy(update={"is_completed": True}) if w.id == workout_id else w.model_copy()
                for w in day.workouts
            ],
        }, deep=True)
        for day in plans
    ]
    return WorkoutCompleted(updated, exercise_item_from_workout(workout, timestamp))


def swap_recipe(
    plans: Sequence[DayPlan], day_index: int, meal_id: str, new_recipe: Recipe
) -> list[DayPlan]:
    """Replace the recipe of one meal, keeping its id, type and is_logged.

    Raises:
        PlanItemNotFoundError: If the day index is out of range or the meal
            is not on that day
    """
    find_meal_on_day(plans, day_index, meal_id)

    updated = [day.model_copy(deep=True) for day in plans]
    target_day = updated[day_index]
    target_day.meals = [
        m.model_copy(update={"recipe": new_recipe.model_copy(deep=True)}) if m.id == meal_id else m
        for m in target_day.meals
    ]
    return updated


def finalize_generated_plan(days: Sequence[DayPlan], start: date) -> list[DayPlan]:
    """Stamp freshly generated plan days with dates and new identities.

    Day i gets the date ``start + i``; every meal and workout gets a new id
    and starts not logged / not completed.
    """
    return [
        DayPlan(
            date=(start + timedelta(days=i)).isoformat(),
            meals=[
                m.model_copy(update={"id": new_id(), "is_logged": False}, deep=True)
                for m in day.meals
            ],
            workouts=[
                w.model_copy(update={"id": new_id(), "is_completed": False}, deep=True)
                for w in day.workouts
            ],
        )
        for i, day in enumerate(days)
    ]
