"""Daily Statistics - Pure functions for nutrition aggregation and scoring.

All functions are pure: same input always produces same output, no side effects.
"""

from datetime import date, datetime, tzinfo
from typing import Iterable, Sequence, TypeVar

from .errors import InvalidTargetError
from .models import DailyStats, ExerciseItem, FoodItem, NutritionTargets
from .targets import round_half_up


# Weights of the component scores in the daily score
CALORIE_WEIGHT = 0.5
PROTEIN_WEIGHT = 0.3
WATER_WEIGHT = 0.2

MAX_SCORE = 100.0

_Timestamped = TypeVar("_Timestamped", FoodItem, ExerciseItem)


def calculate_daily_totals(entries: Iterable[FoodItem]) -> tuple[float, float, float, float]:
    """Calculate total macros from a list of food items.

    Args:
        entries: Food items for a day

    Returns:
        Tuple of (calories, protein, carbs, fat)
    """
    total_calories = total_protein = total_carbs = total_fat = 0.0
    for item in entries:
        total_calories += item.calories
        total_protein += item.protein
        total_carbs += item.carbs
        total_fat += item.fat

    return total_calories, total_protein, total_carbs, total_fat


def calculate_calories_burned(entries: Iterable[ExerciseItem]) -> float:
    """Sum calories burned over an exercise log."""
    return sum((e.calories_burned for e in entries), 0.0)


def calculate_calories_from_macros(protein: float, carbs: float, fat: float) -> int:
    """Calculate calories from macronutrients.

    Uses standard conversion: 4 cal/g protein, 4 cal/g carbs, 9 cal/g fat.

    Args:
        protein: Grams of protein
        carbs: Grams of carbohydrates
        fat: Grams of fat

    Returns:
        Estimated calories (rounded to nearest integer)
    """
    return round_half_up(protein * 4 + carbs * 4 + fat * 9)


def calorie_score(net_calories: float, target_calories: int) -> float:
    """Score closeness of net calories to target, 100 = on target.

    Raises:
        InvalidTargetError: If target_calories is not positive
    """
    if target_calories <= 0:
        raise InvalidTargetError(f"Calorie target must be positive, got {target_calories}")
    penalty = abs(net_calories - target_calories) / target_calories * 100
    return max(0.0, MAX_SCORE - penalty)


def adherence_score(actual: float, target: int) -> float:
    """Score progress towards a "reach at least" target, capped at 100.

    A zero target is already met.
    """
    if target <= 0:
        return MAX_SCORE
    return min(MAX_SCORE, actual / target * 100)


def compute_daily_stats(
    food_log: Sequence[FoodItem],
    exercise_log: Sequence[ExerciseItem],
    targets: NutritionTargets,
    water_intake: int,
) -> DailyStats:
    """Compute a day's totals, net calories and composite score.

    Args:
        food_log: Food items for the day (order does not matter)
        exercise_log: Exercise items for the day
        targets: Current nutrition targets
        water_intake: Water drunk so far in ml

    Returns:
        DailyStats with daily_score bounded to [0, 100]

    Raises:
        InvalidTargetError: If targets.calories is not positive
    """
    total_cal, total_pro, total_carb, total_fat = calculate_daily_totals(food_log)
    burned = calculate_calories_burned(exercise_log)
    water = max(0, water_intake)

    net_calories = total_cal - burned
    cal_score = calorie_score(net_calories, targets.calories)
    pro_score = adherence_score(total_pro, targets.protein)
    water_score = adherence_score(water, targets.water)

    daily_score = round_half_up(
        cal_score * CALORIE_WEIGHT + pro_score * PROTEIN_WEIGHT + water_score * WATER_WEIGHT
    )

    return DailyStats(
        calories=total_cal,
        protein=total_pro,
        carbs=total_carb,
        fat=total_fat,
        calories_burned=burned,
        net_calories=net_calories,
        target_calories=targets.calories,
        target_protein=targets.protein,
        target_carbs=targets.carbs,
        target_fat=targets.fat,
        water_intake=water,
        water_target=targets.water,
        calorie_score=cal_score,
        protein_score=pro_score,
        water_score=water_score,
        daily_score=min(100, max(0, daily_score)),
    )


def add_water(current_ml: int, amount_ml: int) -> int:
    """Apply a water adjustment; intake never drops below zero."""
    return max(0, current_ml + amount_ml)


def filter_for_day(
    items: Iterable[_Timestamped], day: date, tz: tzinfo | None = None
) -> list[_Timestamped]:
    """Select items whose epoch-ms timestamp falls on the given calendar day.

    Args:
        items: Food or exercise items
        day: Calendar day to keep
        tz: Time zone the day is expressed in (None = local time)

    Returns:
        Matching items in their original order
    """
    return [
        item for item in items
        if datetime.fromtimestamp(item.timestamp / 1000, tz).date() == day
    ]
