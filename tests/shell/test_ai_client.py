"""Tests for NutritionCoach call sites with a fake content generator."""

import pytest

from nutripulse.core.ai_schemas import FALLBACK_HABIT_INSIGHT
from nutripulse.core.errors import AIRequestError
from nutripulse.core.models import (
    DailyStats,
    DietaryPreference,
    Goal,
    NutritionTargets,
    Recipe,
    UserProfile,
)
from nutripulse.core.stats import compute_daily_stats
from nutripulse.shell.ai_client import ChatTurn, GeminiContentGenerator, NutritionCoach


ANALYSIS = {"name": "Greek Yogurt", "calories": 150, "protein": 15, "carbs": 8, "fat": 4}
PROFILE = UserProfile(
    goal=Goal.WEIGHT_LOSS, dietary_preference=DietaryPreference.VEGETARIAN, allergies=["peanuts"],
)


class TestAnalyzeTextLog:
    """Tests for analyze_text_log."""

    @pytest.mark.asyncio
    async def test_parses_analysis(self, generator):
        """A valid response becomes a NutritionAnalysis."""
        generator.queue(ANALYSIS)
        analysis = await NutritionCoach(generator).analyze_text_log("a cup of greek yogurt", PROFILE)
        assert analysis.protein == 15
        assert "peanuts" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self, generator):
        """A response missing fields raises AIRequestError."""
        generator.queue({"name": "Yogurt"})
        with pytest.raises(AIRequestError):
            await NutritionCoach(generator).analyze_text_log("yogurt")


class TestLookupBarcode:
    """Tests for lookup_barcode."""

    @pytest.mark.asyncio
    async def test_identifies_then_analyzes(self, generator):
        """The product name found by a grounded search is analyzed."""
        generator.queue("Fage Total 0% Greek Yogurt")
        generator.queue(ANALYSIS)
        analysis = await NutritionCoach(generator).lookup_barcode("5201054017425", PROFILE)

        assert analysis.name == "Greek Yogurt"
        assert "5201054017425" in generator.prompts[0]
        assert "Fage Total 0% Greek Yogurt" in generator.prompts[1]
        assert generator.searches == [True, False]

    @pytest.mark.asyncio
    async def test_empty_product_name(self, generator):
        """A blank identification returns None without an analysis call."""
        generator.queue("   ")
        assert await NutritionCoach(generator).lookup_barcode("000") is None
        assert len(generator.prompts) == 1

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, generator):
        """Generation failures degrade to None."""
        generator.queue(AIRequestError("quota"))
        assert await NutritionCoach(generator).lookup_barcode("000") is None


class TestSearchFoodDatabase:
    """Tests for search_food_database."""

    @pytest.mark.asyncio
    async def test_returns_results(self, generator):
        """A list response is parsed."""
        generator.queue([ANALYSIS, {**ANALYSIS, "name": "Skyr"}])
        results = await NutritionCoach(generator).search_food_database("yogurt")
        assert [r.name for r in results] == ["Greek Yogurt", "Skyr"]

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, generator):
        """Failures degrade to an empty result."""
        generator.queue(AIRequestError("quota"))
        assert await NutritionCoach(generator).search_food_database("yogurt") == []


class TestGenerateMealPlan:
    """Tests for generate_meal_plan."""

    @pytest.mark.asyncio
    async def test_plan_prompt_and_result(self, generator):
        """Prompt carries goal, diet and budget; drafts become plan days."""
        generator.queue([{
            "meals": [{
                "type": "Dinner",
                "recipe": {"name": "Lentil Soup", "calories": 420, "protein": 22, "carbs": 60, "fat": 9},
            }],
            "workouts": [],
        }])
        days = await NutritionCoach(generator).generate_meal_plan(
            PROFILE, NutritionTargets(calories=1700), days=1, budget="Economy",
        )
        prompt = generator.prompts[0]
        assert "Weight Loss" in prompt
        assert "Vegetarian" in prompt
        assert "Economy" in prompt
        assert "1700" in prompt
        assert days[0].meals[0].recipe.name == "Lentil Soup"


class TestSuggestSwap:
    """Tests for suggest_swap."""

    @pytest.mark.asyncio
    async def test_returns_recipe(self, generator):
        """The alternative recipe is validated."""
        generator.queue({"name": "Tofu Stir Fry", "calories": 450, "protein": 28, "carbs": 40, "fat": 18})
        original = Recipe(name="Chicken Curry", calories=600, protein=40, carbs=50, fat=25)
        swapped = await NutritionCoach(generator).suggest_swap(original, PROFILE)
        assert swapped.name == "Tofu Stir Fry"
        assert "Chicken Curry" in generator.prompts[0]


class TestAnalyzeHabits:
    """Tests for analyze_habits."""

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, generator):
        """A failed analysis returns the neutral fallback insight."""
        generator.queue("not json at all")
        insight = await NutritionCoach(generator).analyze_habits([], 0, [], PROFILE)
        assert insight == FALLBACK_HABIT_INSIGHT

    @pytest.mark.asyncio
    async def test_parses_insight(self, generator):
        """A valid insight is returned as is."""
        generator.queue({
            "score": 82, "streak": 3, "trend_title": "Steady Mornings",
            "trend_description": "Breakfast is consistent.", "advice": "Keep it up.",
        })
        insight = await NutritionCoach(generator).analyze_habits([], 1500, [], PROFILE)
        assert insight.score == 82
        assert insight.late_night_snacks == 0


class TestChat:
    """Tests for chat."""

    @pytest.mark.asyncio
    async def test_includes_stats_and_history(self, generator):
        """The prompt carries today's numbers and the transcript."""
        generator.queue("Try adding some beans to lunch.")
        stats: DailyStats = compute_daily_stats([], [], NutritionTargets(), 500)
        reply = await NutritionCoach(generator).chat(
            "How do I get more protein?", PROFILE, stats,
            history=[ChatTurn("user", "Hi"), ChatTurn("model", "Hello!")],
        )
        assert reply == "Try adding some beans to lunch."
        prompt = generator.prompts[0]
        assert "500/2500 ml water" in prompt
        assert "model: Hello!" in prompt


class TestGeminiContentGenerator:
    """Tests for GeminiContentGenerator configuration."""

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        """Without an API key every call fails with AIRequestError."""
        with pytest.raises(AIRequestError):
            await GeminiContentGenerator(None).generate("hello")
