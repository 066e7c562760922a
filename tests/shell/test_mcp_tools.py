"""Tests for MCP tool functions over an installed in-memory controller."""

import base64

import pytest

from nutripulse.core.models import (
    ActivityLevel,
    DayPlan,
    Gender,
    Goal,
    MealType,
    NutritionTargets,
    PlannedMeal,
    Recipe,
)
from nutripulse.shell import mcp_server


@pytest.fixture
def installed(controller):
    """Install the fake-backed controller for the tools to use."""
    mcp_server.set_controller(controller)
    yield controller
    mcp_server.set_controller(None)


class TestProfileTools:
    """Tests for setup_profile, calculate_targets and set_targets."""

    @pytest.mark.asyncio
    async def test_setup_profile_derives_targets(self, installed):
        """Setup stores the profile and returns derived targets."""
        result = await mcp_server.setup_profile(
            age=30, gender=Gender.MALE, weight=80, height=180,
            activity_level=ActivityLevel.SEDENTARY, goal=Goal.MAINTENANCE,
            allergies="peanuts, shellfish",
        )
        assert result["targets"]["calories"] == 2136
        assert result["profile"]["allergies"] == ["peanuts", "shellfish"]
        assert installed.state.profile.notifications is not None

    @pytest.mark.asyncio
    @pytest.mark.asyncio
    async def test_setup_profile_rejects_zero_calorie_target(self, installed):
        """Measurements that clamp the calorie target to 0 are refused and not saved."""
        result = await mcp_server.setup_profile(
            age=100, gender=Gender.FEMALE, weight=1, height=30,
            activity_level=ActivityLevel.SEDENTARY, goal=Goal.WEIGHT_LOSS,
        )
        assert "error" in result
        assert installed.needs_onboarding()
        assert "error" not in await mcp_server.get_today(hour=9)

    @pytest.mark.asyncio
    async def test_calculate_targets_lists_missing_fields(self, installed):
        """Missing profile fields come back as an error, not an exception."""
        result = await mcp_server.calculate_targets()
        assert "error" in result
        assert result["missing_fields"] == ["weight", "height", "age", "gender"]

    @pytest.mark.asyncio
    async def test_set_targets_rejects_zero_calories(self, installed):
        """A zero calorie target is refused."""
        result = await mcp_server.set_targets(calories=0, protein=100, carbs=100, fat=50, water=2000)
        assert "error" in result


class TestLoggingTools:
    """Tests for log_food, delete_food and add_water."""

    @pytest.mark.asyncio
    async def test_log_food_scales_quantity(self, installed):
        """Per-serving values are multiplied by quantity."""
        result = await mcp_server.log_food(
            name="Egg", calories=70, protein=6, carbs=0.5, fat=5, meal_type=MealType.BREAKFAST, quantity=3,
        )
        assert result["entry"]["calories"] == 210
        assert result["stats"]["calories"] == 210
        assert result["saved"]["remote_ok"] is True

    @pytest.mark.asyncio
    async def test_delete_food(self, installed):
        """Deleted entries no longer count."""
        logged = await mcp_server.log_food(name="Bagel", calories=250, protein=9, carbs=48, fat=2)
        result = await mcp_server.delete_food(logged["entry"]["id"])
        assert result["success"] is True
        assert result["stats"]["calories"] == 0

    @pytest.mark.asyncio
    async def test_add_water(self, installed):
        """Water accumulates in today's stats."""
        await mcp_server.add_water(300)
        result = await mcp_server.add_water(200)
        assert result["water_intake"] == 500
        assert result["stats"]["water_intake"] == 500

    @pytest.mark.asyncio
    async def test_log_exercise_requires_input(self, installed):
        """Exercise needs numbers or a description."""
        result = await mcp_server.log_exercise()
        assert "error" in result

    @pytest.mark.asyncio
    async def test_analyze_and_log_food(self, installed, generator):
        """An AI analysis is logged with derived warnings."""
        generator.queue({"name": "Ramen", "calories": 550, "protein": 20, "carbs": 70, "fat": 22, "sodium": 1800})
        result = await mcp_server.analyze_and_log_food("a bowl of ramen", meal_type=MealType.DINNER)
        assert result["entry"]["name"] == "Ramen"
        assert "High Sodium" in result["entry"]["warnings"]

    @pytest.mark.asyncio
    async def test_analyze_failure_asks_to_retry(self, installed):
        """A failed analysis returns a try-again message."""
        result = await mcp_server.analyze_and_log_food("mystery")
        assert result["error"] == mcp_server.TRY_AGAIN


class TestPlanTools:
    """Tests for plan tools."""

    @pytest.mark.asyncio
    async def test_log_planned_meal_twice(self, installed):
        """The second call reports the meal was already logged."""
        await installed.update_plan([DayPlan(
            date="2024-03-01",
            meals=[PlannedMeal(
                id="meal-1", type=MealType.DINNER,
                recipe=Recipe(name="Salmon", calories=600, protein=40, carbs=30, fat=28),
            )],
        )])
        first = await mcp_server.log_planned_meal("meal-1")
        second = await mcp_server.log_planned_meal("meal-1")
        assert first["entry"]["name"] == "Salmon"
        assert "message" in second
        assert len(installed.state.food_log) == 1

    @pytest.mark.asyncio
    async def test_unknown_workout(self, installed):
        """Unknown ids come back as an error dict."""
        result = await mcp_server.complete_workout("missing")
        assert "error" in result

    @pytest.mark.asyncio
    async def test_generate_plan_validates_days(self, installed):
        """Day counts outside 1-7 are refused."""
        result = await mcp_server.generate_plan(days=10)
        assert "error" in result


class TestStatusTools:
    """Tests for sync_status and get_today."""

    @pytest.mark.asyncio
    async def test_sync_status(self, installed, remote):
        """Reports remote reachability."""
        assert (await mcp_server.sync_status())["cloud_connected"] is True
        remote.offline = True
        assert (await mcp_server.sync_status())["cloud_connected"] is False

    @pytest.mark.asyncio
    async def test_get_today(self, installed):
        """Today's view includes entries, stats and alert."""
        await mcp_server.log_food(name="Apple", calories=95, protein=0.5, carbs=25, fat=0.3)
        result = await mcp_server.get_today(hour=9)
        assert [e["name"] for e in result["entries"]] == ["Apple"]
        assert result["stats"]["calories"] == 95
        assert result["alert"] is None
        assert result["needs_onboarding"] is True

    @pytest.mark.asyncio
    async def test_dismiss_alert_at_requested_hour(self, installed):
        """Dismissing at the hour the alert was shown hides that alert."""
        installed.state.targets = NutritionTargets(calories=2000, protein=150, water=2500)
        installed.state.water_intake = 2500
        await mcp_server.log_food(name="Pasta", calories=1000, protein=8, carbs=180, fat=12)

        assert (await mcp_server.get_today(hour=19))["alert"]["rule"] == "low_protein"
        await mcp_server.dismiss_alert(hour=19)
        assert (await mcp_server.get_today(hour=19))["alert"] is None


class TestImageAndBarcodeTools:
    """Tests for analyze_image_and_log_food and lookup_barcode."""

    @pytest.mark.asyncio
    async def test_image_is_analyzed_and_logged(self, installed, generator):
        """Decoded image data is analyzed and the result logged."""
        generator.queue({"name": "Caesar Salad", "calories": 480, "protein": 14, "carbs": 20, "fat": 38})
        image = base64.b64encode(b"\xff\xd8\xff\xe0 fake jpeg").decode()

        result = await mcp_server.analyze_image_and_log_food(image, meal_type=MealType.LUNCH)

        assert result["entry"]["name"] == "Caesar Salad"
        assert "High Fat" in result["entry"]["warnings"]
        assert result["stats"]["calories"] == 480

    @pytest.mark.asyncio
    async def test_invalid_image_data(self, installed, generator):
        """Data that is not base64 is refused before any AI call."""
        result = await mcp_server.analyze_image_and_log_food("not base64!!")
        assert "error" in result
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_lookup_barcode(self, installed, generator):
        """A recognized barcode returns the product's nutrition without logging it."""
        generator.queue("Nature Valley Oats & Honey bar")
        generator.queue({"name": "Oats & Honey Bar", "calories": 190, "protein": 4, "carbs": 29, "fat": 7})

        result = await mcp_server.lookup_barcode("016000275287")

        assert result["product"]["name"] == "Oats & Honey Bar"
        assert installed.state.food_log == []

    @pytest.mark.asyncio
    async def test_unknown_barcode(self, installed, generator):
        """An unidentified barcode comes back as an error."""
        generator.queue("")
        result = await mcp_server.lookup_barcode("000")
        assert "error" in result
