"""Core Data Models - Pydantic models for type safety.

Value objects carry validation only; behaviour lives in the pure modules
beside this one.
"""

import time
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """Client-generated identifier shared by local and remote copies."""
    return uuid.uuid4().hex


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class ActivityLevel(str, Enum):
    SEDENTARY = "Sedentary"
    LIGHTLY_ACTIVE = "Lightly Active"
    MODERATELY_ACTIVE = "Moderately Active"
    VERY_ACTIVE = "Very Active"


class Goal(str, Enum):
    WEIGHT_LOSS = "Weight Loss"
    MAINTENANCE = "Maintenance"
    MUSCLE_GAIN = "Muscle Gain"


class DietaryPreference(str, Enum):
    NONE = "None"
    VEGETARIAN = "Vegetarian"
    VEGAN = "Vegan"
    KETO = "Keto"
    PALEO = "Paleo"
    PESCATARIAN = "Pescatarian"


class MealType(str, Enum):
    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    SNACK = "Snack"


class Intensity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Mood(str, Enum):
    STRESSED = "Stressed"
    TIRED = "Tired"
    SORE = "Sore"
    CRAVINGS = "Cravings"
    HAPPY = "Happy"
    ENERGETIC = "Energetic"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    TIP = "tip"


# ==================== Profile & Targets ====================


TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class NotificationSettings(BaseModel):
    """Reminder schedule; times are local HH:MM strings."""

    enabled: bool = False
    breakfast_time: str = Field(default="08:00", pattern=TIME_OF_DAY_PATTERN)
    lunch_time: str = Field(default="13:00", pattern=TIME_OF_DAY_PATTERN)
    dinner_time: str = Field(default="19:00", pattern=TIME_OF_DAY_PATTERN)
    workout_time: str = Field(default="17:00", pattern=TIME_OF_DAY_PATTERN)
    sleep_time: str = Field(default="23:00", pattern=TIME_OF_DAY_PATTERN)
    water_interval: int = Field(default=120, ge=0, description="Minutes between water reminders, 0 = off")


class UserProfile(BaseModel):
    """User body metrics and preferences.

    Every field is optional so a half-finished onboarding can still be saved.
    Target calculation checks for the fields it needs.
    """

    age: Optional[int] = Field(default=None, gt=0, description="Age in years")
    gender: Optional[Gender] = None
    weight: Optional[float] = Field(default=None, gt=0, description="Weight in kg")
    height: Optional[float] = Field(default=None, gt=0, description="Height in cm")
    activity_level: Optional[ActivityLevel] = None
    goal: Optional[Goal] = None
    dietary_preference: DietaryPreference = DietaryPreference.NONE
    allergies: list[str] = Field(default_factory=list, description="Free-text allergy tokens")
    medical_conditions: Optional[str] = None
    notifications: Optional[NotificationSettings] = None


class NutritionTargets(BaseModel):
    """Daily targets, derived from the profile or set by hand."""

    calories: int = Field(default=2000, ge=0, description="Daily calorie target")
    protein: int = Field(default=150, ge=0, description="Daily protein target in grams")
    carbs: int = Field(default=200, ge=0, description="Daily carbohydrate target in grams")
    fat: int = Field(default=65, ge=0, description="Daily fat target in grams")
    water: int = Field(default=2500, ge=0, description="Daily water target in ml")


class ProfileRecord(BaseModel):
    """Profile and targets, persisted together as one singleton per user."""

    profile: UserProfile = Field(default_factory=UserProfile)
    targets: NutritionTargets = Field(default_factory=NutritionTargets)


# ==================== Logs ====================


class FoodItem(BaseModel):
    """A single food item logged by the user."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1, description="Name of the food")
    timestamp: int = Field(default_factory=now_ms, ge=0, description="Epoch milliseconds")
    calories: float = Field(ge=0, description="Total calories")
    protein: float = Field(ge=0, description="Protein in grams")
    carbs: float = Field(ge=0, description="Carbohydrates in grams")
    fat: float = Field(ge=0, description="Fat in grams")
    meal_type: MealType = MealType.SNACK
    sugar: Optional[float] = Field(default=None, ge=0, description="g")
    fiber: Optional[float] = Field(default=None, ge=0, description="g")
    sodium: Optional[float] = Field(default=None, ge=0, description="mg")
    cholesterol: Optional[float] = Field(default=None, ge=0, description="mg")
    potassium: Optional[float] = Field(default=None, ge=0, description="mg")
    serving_size: Optional[str] = None
    serving_unit: Optional[str] = None
    quantity: float = Field(default=1.0, gt=0, description="Multiplier already applied to the values")
    health_score: Optional[float] = Field(default=None, ge=0, le=100)
    health_reason: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)


class ExerciseItem(BaseModel):
    """A single workout or activity logged by the user."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    calories_burned: float = Field(ge=0)
    duration_minutes: float = Field(ge=0)
    timestamp: int = Field(default_factory=now_ms, ge=0)


class MoodEntry(BaseModel):
    """Append-only mood check-in."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=now_ms, ge=0)
    mood: Mood


class DailyStats(BaseModel):
    """Derived daily statistics. Recomputed on every read, never stored.

    Everything is non-negative except ``net_calories``, which goes below
    zero when exercise burns more than was eaten.
    """

    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    calories_burned: float = Field(ge=0)
    net_calories: float
    target_calories: int = Field(ge=0)
    target_protein: int = Field(ge=0)
    target_carbs: int = Field(ge=0)
    target_fat: int = Field(ge=0)
    water_intake: int = Field(ge=0)
    water_target: int = Field(ge=0)
    calorie_score: float = Field(ge=0, le=100)
    protein_score: float = Field(ge=0, le=100)
    water_score: float = Field(ge=0, le=100)
    daily_score: int = Field(ge=0, le=100)


class Alert(BaseModel):
    """Advisory message raised by the alert rules."""

    severity: AlertSeverity
    rule: str
    message: str


# ==================== Plans ====================


class Ingredient(BaseModel):
    item: str
    amount: str = ""
    checked: bool = False


class Recipe(BaseModel):
    """A recipe with per-portion nutrition."""

    name: str = Field(min_length=1)
    description: str = ""
    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    ingredients: list[Ingredient] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    prep_time: str = ""


class PlannedMeal(BaseModel):
    id: str = Field(default_factory=new_id)
    type: MealType
    recipe: Recipe
    is_logged: bool = False


class Workout(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    duration: str = Field(default="30 mins", description="Free text, e.g. '30 mins'")
    intensity: Intensity = Intensity.MEDIUM
    calories_estimate: float = Field(default=0, ge=0)
    instructions: list[str] = Field(default_factory=list)
    is_completed: bool = False


class DayPlan(BaseModel):
    """One calendar day of planned meals and workouts."""

    date: str = Field(description="Calendar day key (YYYY-MM-DD)")
    meals: list[PlannedMeal] = Field(default_factory=list)
    workouts: list[Workout] = Field(default_factory=list)


# ==================== Persistence ====================


class WriteResult(BaseModel):
    """Outcome of a two-phase write: local commit, then best-effort remote."""

    local_ok: bool
    remote_ok: bool

    @property
    def ok(self) -> bool:
        return self.local_ok
