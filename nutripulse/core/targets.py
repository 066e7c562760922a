"""Target Calculation - Pure functions deriving daily targets from a profile.

BMR follows the revised Harris-Benedict equation: 10w + 6.25h - 5a + c.
All functions are pure: same input always produces same output, no side effects.
"""

import math

from .errors import MissingFieldsError
from .models import ActivityLevel, Gender, Goal, NutritionTargets, UserProfile


ACTIVITY_MULTIPLIERS: dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHTLY_ACTIVE: 1.375,
    ActivityLevel.MODERATELY_ACTIVE: 1.55,
    ActivityLevel.VERY_ACTIVE: 1.725,
}
DEFAULT_ACTIVITY_MULTIPLIER = 1.2

GOAL_ADJUSTMENTS: dict[Goal, int] = {
    Goal.WEIGHT_LOSS: -500,
    Goal.MAINTENANCE: 0,
    Goal.MUSCLE_GAIN: 300,
}

# Share of calories per macro, and calories per gram
PROTEIN_SHARE, CARB_SHARE, FAT_SHARE = 0.30, 0.35, 0.35
CAL_PER_G_PROTEIN, CAL_PER_G_CARB, CAL_PER_G_FAT = 4, 4, 9

WATER_ML_PER_KG = 35

REQUIRED_FIELDS = ("weight", "height", "age", "gender")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3, -2.5 -> -2).

    The builtin round() uses banker's rounding, which would shift targets
    by one on exact halves.
    """
    return int(math.floor(value + 0.5))


def missing_fields(profile: UserProfile) -> list[str]:
    """Return the names of required fields that are unset on the profile."""
    return [name for name in REQUIRED_FIELDS if getattr(profile, name) is None]


def calculate_bmr(weight: float, height: float, age: int, gender: Gender) -> float:
    """Calculate basal metabolic rate in kcal/day.

    Gender.OTHER uses the female constant.

    Args:
        weight: Body weight in kg
        height: Height in cm
        age: Age in years
        gender: Gender used to pick the constant term

    Returns:
        Unrounded BMR
    """
    base = 10 * weight + 6.25 * height - 5 * age
    if gender == Gender.MALE:
        return base + 5
    return base - 161


def activity_multiplier(level: ActivityLevel | None) -> float:
    """Return the TDEE multiplier for an activity level (1.2 when unset)."""
    if level is None:
        return DEFAULT_ACTIVITY_MULTIPLIER
    return ACTIVITY_MULTIPLIERS.get(level, DEFAULT_ACTIVITY_MULTIPLIER)


def compute_targets(profile: UserProfile) -> NutritionTargets:
    """Derive recommended daily targets from a profile.

    Args:
        profile: User profile with weight, height, age and gender set

    Returns:
        NutritionTargets with calories, macros (g) and water (ml)

    Raises:
        MissingFieldsError: If any of weight, height, age or gender is unset
    """
    missing = missing_fields(profile)
    if missing:
        raise MissingFieldsError(missing)

    bmr = calculate_bmr(profile.weight, profile.height, profile.age, profile.gender)
    tdee = round_half_up(bmr * activity_multiplier(profile.activity_level))
    if profile.goal is not None:
        tdee += GOAL_ADJUSTMENTS[profile.goal]
    tdee = max(0, tdee)

    return NutritionTargets(
        calories=tdee,
        protein=max(0, round_half_up(tdee * PROTEIN_SHARE / CAL_PER_G_PROTEIN)),
        carbs=max(0, round_half_up(tdee * CARB_SHARE / CAL_PER_G_CARB)),
        fat=max(0, round_half_up(tdee * FAT_SHARE / CAL_PER_G_FAT)),
        water=max(0, round_half_up(profile.weight * WATER_ML_PER_KG)),
    )
