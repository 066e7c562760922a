"""Tests for the application controller over fake stores and a fake generator."""

import asyncio
from datetime import date, datetime

import pytest

from nutripulse.core.errors import AIRequestError, DuplicateEntryError, MissingFieldsError, PlanItemNotFoundError
from nutripulse.core.models import (
    DayPlan,
    ExerciseItem,
    FoodItem,
    Gender,
    Goal,
    MealType,
    Mood,
    NutritionTargets,
    PlannedMeal,
    Recipe,
    UserProfile,
    Workout,
)
from nutripulse.shell.app_state import AppController, RequestSequencer
from nutripulse.shell.local_cache import WATER_INTAKE_KEY


PLAN_DRAFT = [{
    "meals": [{
        "type": "Breakfast",
        "recipe": {"name": "Oats", "calories": 350, "protein": 12, "carbs": 55, "fat": 8},
    }],
    "workouts": [{"name": "Jog", "duration": "25 mins", "calories_estimate": 220}],
}]


def make_food(name="Toast", calories=200, **kwargs):
    return FoodItem(name=name, calories=calories, protein=8, carbs=30, fat=4, **kwargs)


def make_plan():
    return [DayPlan(
        date="2024-03-01",
        meals=[PlannedMeal(
            id="meal-1", type=MealType.LUNCH,
            recipe=Recipe(name="Burrito Bowl", calories=650, protein=35, carbs=80, fat=20),
        )],
        workouts=[Workout(id="wk-1", name="Cycling", duration="40 mins", calories_estimate=350)],
    )]


class TestRequestSequencer:
    """Tests for RequestSequencer."""

    def test_only_latest_is_current(self):
        """Issuing a new token retires the older ones."""
        sequencer = RequestSequencer()
        first = sequencer.issue()
        second = sequencer.issue()
        assert not sequencer.is_current(first)
        assert sequencer.is_current(second)


class TestLoad:
    """Tests for AppController.load."""

    @pytest.mark.asyncio
    async def test_load_from_empty_stores(self, controller):
        """A fresh install loads defaults and needs onboarding."""
        state = await controller.load()
        assert state.food_log == []
        assert state.targets == NutritionTargets()
        assert state.cloud_connected is True
        assert controller.needs_onboarding()

    @pytest.mark.asyncio
    async def test_load_offline_uses_cache(self, controller, gateway, cache, remote):
        """Offline loads read the local snapshots, including water."""
        item = make_food()
        await gateway.food.save(item)
        cache.set(WATER_INTAKE_KEY, 750)
        remote.offline = True

        state = await controller.load()
        assert state.cloud_connected is False
        assert [f.id for f in state.food_log] == [item.id]
        assert state.water_intake == 750


class TestFoodAndExercise:
    """Tests for log commands."""

    @pytest.mark.asyncio
    async def test_add_food_updates_stats(self, controller):
        """Stats are recomputed from the log after each change."""
        await controller.add_food(make_food(calories=500))
        assert controller.daily_stats().calories == 500

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, controller):
        """Re-adding the same id raises DuplicateEntryError."""
        item = make_food()
        await controller.add_food(item)
        with pytest.raises(DuplicateEntryError):
            await controller.add_food(item)
        assert len(controller.state.food_log) == 1

    @pytest.mark.asyncio
    async def test_remove_food(self, controller):
        """Removing an entry drops it from memory and the store."""
        item = make_food()
        await controller.add_food(item)
        result = await controller.remove_food(item.id)
        assert result.ok
        assert controller.state.food_log == []
        assert await controller._gateway.food.load_all() == []

    @pytest.mark.asyncio
    async def test_offline_add_keeps_memory(self, controller, remote):
        """Offline writes still update the in-memory log."""
        remote.offline = True
        result = await controller.add_food(make_food())
        assert result.remote_ok is False
        assert len(controller.state.food_log) == 1

    @pytest.mark.asyncio
    async def test_exercise_counts_against_net(self, controller):
        """Exercise reduces net calories."""
        await controller.add_food(make_food(calories=800))
        await controller.add_exercise(ExerciseItem(name="Swim", calories_burned=300, duration_minutes=40))
        assert controller.daily_stats().net_calories == 500

    def test_water_never_negative_and_persisted(self, controller, cache):
        """Water is clamped at zero and cached."""
        controller.add_water(500)
        assert controller.add_water(-800) == 0
        assert cache.get(WATER_INTAKE_KEY) == 0

    def test_daily_stats_for_day_filters(self, controller):
        """Passing a day keeps only that day's entries."""
        today = datetime.now()
        old = make_food(timestamp=int(datetime(2020, 1, 1, 12).timestamp() * 1000))
        new = make_food(timestamp=int(today.timestamp() * 1000))
        controller.state.food_log = [old, new]
        assert controller.daily_stats(today.date()).calories == 200
        assert controller.daily_stats().calories == 400

    def test_log_mood_and_favorites(self, controller):
        """Mood entries append; favorites toggle by name."""
        controller.log_mood(Mood.HAPPY)
        assert controller.state.mood_log[0].mood == Mood.HAPPY

        item = make_food("Banana")
        assert controller.toggle_favorite(item) is True
        assert controller.toggle_favorite(item) is False
        assert controller.state.favorites == []


class TestProfileAndTargets:
    """Tests for profile commands."""

    @pytest.mark.asyncio
    async def test_recalculate_requires_fields(self, controller):
        """An incomplete profile cannot derive targets."""
        with pytest.raises(MissingFieldsError):
            await controller.recalculate_targets()

    @pytest.mark.asyncio
    async def test_onboarding_assigns_default_notifications(self, controller):
        """First profile save fills in reminder settings."""
        profile = UserProfile(age=30, gender=Gender.MALE, weight=80, height=180, goal=Goal.MAINTENANCE)
        await controller.complete_onboarding(profile, NutritionTargets(calories=2136))

        assert controller.state.profile.notifications is not None
        assert controller.state.targets.calories == 2136
        assert not controller.needs_onboarding()

    @pytest.mark.asyncio
    async def test_recalculate_persists(self, controller, gateway):
        """Recalculated targets are saved with the profile."""
        await controller.update_profile(UserProfile(age=30, gender=Gender.MALE, weight=80, height=180))
        targets = await controller.recalculate_targets()
        assert targets.calories == 2136
        assert (await gateway.profile.load()).targets.calories == 2136


class TestSmartAlert:
    """Tests for smart_alert and dismiss_alert."""

    @pytest.mark.asyncio
    async def test_dismissal_scoped_to_current_alert(self, controller):
        """A dismissed alert stays hidden until a different one appears."""
        controller.state.targets = NutritionTargets(calories=2000, protein=150, water=2500)
        controller.state.water_intake = 2500
        await controller.add_food(make_food(calories=1000))

        assert controller.smart_alert(19).rule == "low_protein"
        controller.dismiss_alert(19)
        assert controller.smart_alert(19) is None

        await controller.add_food(make_food("Feast", calories=1500))
        assert controller.smart_alert(19).rule == "calorie_overshoot"


class TestPlans:
    """Tests for plan commands."""

    @pytest.mark.asyncio
    async def test_generate_plan_stamps_dates(self, controller, generator):
        """Generated plans get real dates and are persisted."""
        generator.queue(PLAN_DRAFT)
        plans = await controller.generate_plan(days=1, start=date(2024, 3, 1))
        assert plans[0].date == "2024-03-01"
        assert (await controller._gateway.plans.load_all())[0].date == "2024-03-01"

    @pytest.mark.asyncio
    async def test_superseded_plan_discarded(self, controller, generator):
        """Only the latest of two overlapping requests is applied."""
        gate = asyncio.Event()
        original_generate = generator.generate

        async def slow_first(prompt, **kwargs):
            if not gate.is_set():
                gate.set()
                await asyncio.sleep(0.01)
            return await original_generate(prompt, **kwargs)

        generator.generate = slow_first
        generator.queue(PLAN_DRAFT)
        generator.queue(PLAN_DRAFT)

        first, second = await asyncio.gather(
            controller.generate_plan(days=1, start=date(2024, 3, 1)),
            controller.generate_plan(days=1, start=date(2024, 4, 1)),
        )
        assert first is None
        assert second[0].date == "2024-04-01"
        assert controller.state.plans[0].date == "2024-04-01"

    @pytest.mark.asyncio
    async def test_log_planned_meal_once(self, controller):
        """Logging a planned meal adds one food entry, even if repeated."""
        await controller.update_plan(make_plan())

        item = await controller.log_planned_meal("meal-1")
        again = await controller.log_planned_meal("meal-1")

        assert item.name == "Burrito Bowl"
        assert again is None
        assert len(controller.state.food_log) == 1
        assert controller.state.plans[0].meals[0].is_logged is True

    @pytest.mark.asyncio
    async def test_complete_workout_once(self, controller):
        """Completing a workout adds one exercise entry."""
        await controller.update_plan(make_plan())
        item = await controller.log_planned_workout("wk-1")
        assert item.duration_minutes == 40
        assert await controller.log_planned_workout("wk-1") is None
        assert len(controller.state.exercise_log) == 1

    @pytest.mark.asyncio
    async def test_unknown_meal(self, controller):
        """Unknown plan ids raise PlanItemNotFoundError."""
        await controller.update_plan(make_plan())
        with pytest.raises(PlanItemNotFoundError):
            await controller.log_planned_meal("nope")

    @pytest.mark.asyncio
    async def test_swap_meal(self, controller, generator):
        """Swapping keeps the meal id and replaces the recipe."""
        await controller.update_plan(make_plan())
        generator.queue({"name": "Veggie Bowl", "calories": 520, "protein": 22, "carbs": 70, "fat": 14})

        day = await controller.swap_meal(0, "meal-1")
        assert day.meals[0].id == "meal-1"
        assert day.meals[0].recipe.name == "Veggie Bowl"

    @pytest.mark.asyncio
    async def test_swap_meal_bad_index(self, controller, generator):
        """A bad day index fails before any AI call."""
        await controller.update_plan(make_plan())
        with pytest.raises(PlanItemNotFoundError):
            await controller.swap_meal(3, "meal-1")
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_without_coach(self, gateway, cache):
        """AI commands fail cleanly when no coach is configured."""
        controller = AppController(gateway, cache)
        with pytest.raises(AIRequestError):
            await controller.generate_plan()
