"""Application State - Single owner of the user's in-memory data.

AppController holds the AppState and is the only thing that mutates it.
Each command updates memory first (the session's source of truth), then
persists through the gateway. Derived values such as DailyStats are
recomputed on every read.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Sequence

from ..core.ai_schemas import HabitInsight, NutritionAnalysis, food_item_from_analysis
from ..core.alerts import evaluate_alert
from ..core.errors import AIRequestError, DuplicateEntryError
from ..core.models import (
    Alert,
    DailyStats,
    DayPlan,
    ExerciseItem,
    FoodItem,
    MealType,
    Mood,
    MoodEntry,
    NutritionTargets,
    ProfileRecord,
    UserProfile,
    WriteResult,
)
from ..core.plans import (
    finalize_generated_plan,
    find_meal_on_day,
    mark_meal_logged,
    mark_workout_completed,
    swap_recipe,
)
from ..core.reminders import Reminder, default_notification_settings, due_reminders, recent_foods
from ..core.stats import add_water, compute_daily_stats, filter_for_day
from ..core.targets import compute_targets
from .ai_client import Budget, NutritionCoach
from .gateway import PersistenceGateway
from .local_cache import FAVORITES_KEY, MOOD_LOG_KEY, WATER_INTAKE_KEY, LocalCache


logger = logging.getLogger(__name__)


class RequestSequencer:
    """Monotonic tokens for overlapping async requests.

    Only the response to the most recently issued token is applied; anything
    older resolved too late and is dropped.
    """

    def __init__(self) -> None:
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest


@dataclass
class AppState:
    """Everything the session knows about the user."""

    profile: UserProfile = field(default_factory=UserProfile)
    targets: NutritionTargets = field(default_factory=NutritionTargets)
    food_log: list[FoodItem] = field(default_factory=list)
    exercise_log: list[ExerciseItem] = field(default_factory=list)
    water_intake: int = 0
    plans: list[DayPlan] = field(default_factory=list)
    mood_log: list[MoodEntry] = field(default_factory=list)
    favorites: list[FoodItem] = field(default_factory=list)
    cloud_connected: bool = False


class AppController:
    """Command handlers and queries over one user's AppState."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        cache: LocalCache,
        coach: NutritionCoach | None = None,
    ) -> None:
        self.state = AppState()
        self._gateway = gateway
        self._cache = cache
        self._coach = coach
        self._plan_requests = RequestSequencer()
        self._insight_requests = RequestSequencer()
        self._alert_dismissed: Alert | None = None
        self._last_notification: datetime | None = None

    @property
    def coach(self) -> NutritionCoach | None:
        return self._coach

    # ==================== Loading ====================

    async def load(self) -> AppState:
        """Populate state from the gateway and the local-only cache keys."""
        await self.refresh_connection()

        record = await self._gateway.profile.load()
        self.state.profile = record.profile
        self.state.targets = record.targets
        self.state.food_log = await self._gateway.food.load_all()
        self.state.exercise_log = await self._gateway.exercise.load_all()
        self.state.plans = await self._gateway.plans.load_all()

        water = self._cache.get(WATER_INTAKE_KEY, 0)
        self.state.water_intake = water if isinstance(water, int) and water >= 0 else 0
        self.state.mood_log = self._load_local_models(MOOD_LOG_KEY, MoodEntry)
        self.state.favorites = self._load_local_models(FAVORITES_KEY, FoodItem)

        logger.info(
            "Loaded state: %d foods, %d exercises, %d plan days (cloud=%s)",
            len(self.state.food_log), len(self.state.exercise_log),
            len(self.state.plans), self.state.cloud_connected,
        )
        return self.state

    def _load_local_models(self, key: str, model: type) -> list:
        items = []
        for record in self._cache.get(key, []) or []:
            try:
                items.append(model.model_validate(record))
            except ValueError as e:
                logger.warning("Skipping invalid %s entry: %s", key, e)
        return items

    def _save_local_models(self, key: str, items: Sequence) -> None:
        self._cache.set(key, [i.model_dump(mode="json") for i in items])

    # ==================== Queries ====================

    async def refresh_connection(self) -> bool:
        self.state.cloud_connected = await self._gateway.check_connection()
        return self.state.cloud_connected

    def needs_onboarding(self) -> bool:
        return self.state.profile.age is None or self.state.profile.goal is None

    def daily_stats(self, day: date | None = None) -> DailyStats:
        """Recompute today's stats (or another day's) from the logs."""
        food, exercise = self.state.food_log, self.state.exercise_log
        if day is not None:
            food = filter_for_day(food, day)
            exercise = filter_for_day(exercise, day)
        return compute_daily_stats(food, exercise, self.state.targets, self.state.water_intake)

    def smart_alert(self, current_hour: int | None = None, day: date | None = None) -> Alert | None:
        """Evaluate alerts against fresh stats.

        A dismissal only hides the alert that was showing; once the stats
        produce a different alert it is shown.
        """
        hour = datetime.now().hour if current_hour is None else current_hour
        stats = self.daily_stats(day)
        candidate = evaluate_alert(stats, hour)
        dismissed = candidate is not None and candidate == self._alert_dismissed
        return evaluate_alert(stats, hour, dismissed=dismissed)

    def dismiss_alert(self, current_hour: int | None = None, day: date | None = None) -> None:
        hour = datetime.now().hour if current_hour is None else current_hour
        self._alert_dismissed = evaluate_alert(self.daily_stats(day), hour)

    def recent_foods(self) -> list[FoodItem]:
        return recent_foods(self.state.food_log)

    def due_reminders(self, now: datetime | None = None) -> list[Reminder]:
        """Reminders to send now; records the send time when any are due."""
        now = now or datetime.now()
        due = due_reminders(self.state.profile.notifications, now, self._last_notification)
        if due:
            self._last_notification = now
        return due

    # ==================== Food & Exercise ====================

    async def add_food(self, item: FoodItem) -> WriteResult:
        """Append a food item and persist it.

        Raises:
            DuplicateEntryError: If an item with the same id is already logged
        """
        if any(f.id == item.id for f in self.state.food_log):
            raise DuplicateEntryError(f"Food entry already logged: {item.id}")
        self.state.food_log.append(item)
        return await self._gateway.food.save(item)

    async def add_analyzed_food(
        self, analysis: NutritionAnalysis, meal_type: MealType, quantity: float = 1.0
    ) -> FoodItem:
        item = food_item_from_analysis(analysis, meal_type, quantity)
        await self.add_food(item)
        return item

    async def remove_food(self, item_id: str) -> WriteResult:
        self.state.food_log = [f for f in self.state.food_log if f.id != item_id]
        return await self._gateway.food.remove(item_id)

    async def add_exercise(self, item: ExerciseItem) -> WriteResult:
        """Append an exercise item and persist it.

        Raises:
            DuplicateEntryError: If an item with the same id is already logged
        """
        if any(e.id == item.id for e in self.state.exercise_log):
            raise DuplicateEntryError(f"Exercise entry already logged: {item.id}")
        self.state.exercise_log.append(item)
        return await self._gateway.exercise.save(item)

    async def remove_exercise(self, item_id: str) -> WriteResult:
        self.state.exercise_log = [e for e in self.state.exercise_log if e.id != item_id]
        return await self._gateway.exercise.remove(item_id)

    def add_water(self, amount_ml: int) -> int:
        self.state.water_intake = add_water(self.state.water_intake, amount_ml)
        self._cache.set(WATER_INTAKE_KEY, self.state.water_intake)
        return self.state.water_intake

    def log_mood(self, mood: Mood) -> MoodEntry:
        entry = MoodEntry(mood=mood)
        self.state.mood_log.append(entry)
        self._save_local_models(MOOD_LOG_KEY, self.state.mood_log)
        return entry

    def toggle_favorite(self, item: FoodItem) -> bool:
        """Add or remove a favorite by name. Returns True if now a favorite."""
        if any(f.name == item.name for f in self.state.favorites):
            self.state.favorites = [f for f in self.state.favorites if f.name != item.name]
            is_favorite = False
        else:
            self.state.favorites.append(item)
            is_favorite = True
        self._save_local_models(FAVORITES_KEY, self.state.favorites)
        return is_favorite

    # ==================== Profile & Targets ====================

    async def _save_profile(self) -> WriteResult:
        record = ProfileRecord(profile=self.state.profile, targets=self.state.targets)
        return await self._gateway.profile.save(record)

    async def update_profile(self, profile: UserProfile) -> WriteResult:
        self.state.profile = profile
        return await self._save_profile()

    async def update_targets(self, targets: NutritionTargets) -> WriteResult:
        self.state.targets = targets
        return await self._save_profile()

    async def recalculate_targets(self) -> NutritionTargets:
        """Derive targets from the current profile and save them.

        Raises:
            MissingFieldsError: If the profile lacks weight, height, age or gender
        """
        targets = compute_targets(self.state.profile)
        await self.update_targets(targets)
        return targets

    async def complete_onboarding(self, profile: UserProfile, targets: NutritionTargets) -> WriteResult:
        """Store the first profile, assigning default reminders if none were chosen."""
        if profile.notifications is None:
            profile = profile.model_copy(update={"notifications": default_notification_settings()})
        self.state.profile = profile
        self.state.targets = targets
        return await self._save_profile()

    # ==================== Plans ====================

    async def update_plan(self, plans: Sequence[DayPlan]) -> WriteResult:
        self.state.plans = list(plans)
        return await self._gateway.plans.save_all(self.state.plans)

    async def generate_plan(
        self, days: int = 3, budget: Budget = "Standard", start: date | None = None
    ) -> list[DayPlan] | None:
        """Ask the coach for a new plan and adopt it.

        Returns:
            The new plan, or None if a newer request superseded this one

        Raises:
            AIRequestError: If generation fails or no coach is configured
        """
        coach = self._require_coach()
        token = self._plan_requests.issue()
        drafts = await coach.generate_meal_plan(self.state.profile, self.state.targets, days, budget)
        if not self._plan_requests.is_current(token):
            logger.info("Discarding superseded plan response (request %d)", token)
            return None
        plans = finalize_generated_plan(drafts, start or date.today())
        await self.update_plan(plans)
        return plans

    async def log_planned_meal(self, meal_id: str) -> FoodItem | None:
        """Mark a planned meal eaten and add it to the food log.

        Returns:
            The new food item, or None if the meal was already logged

        Raises:
            PlanItemNotFoundError: If no planned meal has that id
        """
        result = mark_meal_logged(self.state.plans, meal_id)
        if result.food_item is None:
            return None
        await self.update_plan(result.plans)
        await self.add_food(result.food_item)
        return result.food_item

    async def log_planned_workout(self, workout_id: str) -> ExerciseItem | None:
        """Mark a planned workout done and add it to the exercise log.

        Raises:
            PlanItemNotFoundError: If no planned workout has that id
        """
        result = mark_workout_completed(self.state.plans, workout_id)
        if result.exercise_item is None:
            return None
        await self.update_plan(result.plans)
        await self.add_exercise(result.exercise_item)
        return result.exercise_item

    async def swap_meal(self, day_index: int, meal_id: str) -> DayPlan:
        """Replace a planned meal's recipe with a coach suggestion.

        Raises:
            PlanItemNotFoundError: If the day or meal does not exist
            AIRequestError: If the suggestion fails
        """
        coach = self._require_coach()
        original = find_meal_on_day(self.state.plans, day_index, meal_id)

        new_recipe = await coach.suggest_swap(original.recipe, self.state.profile)
        await self.update_plan(swap_recipe(self.state.plans, day_index, meal_id, new_recipe))
        return self.state.plans[day_index]

    # ==================== Insights ====================

    async def habit_insight(self) -> HabitInsight | None:
        """Fetch a habit insight; None if a newer request superseded it.

        Raises:
            AIRequestError: If no coach is configured
        """
        coach = self._require_coach()
        token = self._insight_requests.issue()
        insight = await coach.analyze_habits(
            self.state.food_log, self.state.water_intake, self.state.mood_log, self.state.profile,
        )
        if not self._insight_requests.is_current(token):
            logger.info("Discarding superseded insight response (request %d)", token)
            return None
        return insight

    def _require_coach(self) -> NutritionCoach:
        if self._coach is None:
            raise AIRequestError("AI coaching is not configured")
        return self._coach
