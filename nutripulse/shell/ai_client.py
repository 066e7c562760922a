"""AI Client - Content generation for nutrition analysis, plans and coaching.

The generator is an opaque collaborator: it takes a prompt (and optionally an
image) plus the expected response type and returns raw text. NutritionCoach
builds the context for each call site and validates the result against the
contracts in core.ai_schemas before anything reaches the typed core.
"""

import json
import logging
from datetime import datetime
from typing import Any, Literal, NamedTuple, Protocol, Sequence

from google import genai
from google.genai import types

from ..core.ai_schemas import (
    FALLBACK_HABIT_INSIGHT,
    AIResponseKind,
    ExerciseEstimate,
    HabitInsight,
    NutritionAnalysis,
    drafts_to_day_plans,
    parse_ai_response,
    response_schema,
)
from ..core.errors import AIRequestError
from ..core.models import DailyStats, DayPlan, FoodItem, MoodEntry, NutritionTargets, Recipe, UserProfile


logger = logging.getLogger(__name__)

Budget = Literal["Economy", "Standard", "Premium"]


class ChatTurn(NamedTuple):
    role: Literal["user", "model"]
    text: str


class ContentGenerator(Protocol):
    """Anything that turns a prompt into generated text."""

    async def generate(
        self,
        prompt: str,
        *,
        schema: Any = None,
        image: bytes | None = None,
        image_mime_type: str = "image/jpeg",
        search: bool = False,
    ) -> str: ...


class GeminiContentGenerator:
    """ContentGenerator backed by the Gemini API."""

    def __init__(self, api_key: str | None, model: str = "gemini-2.5-flash") -> None:
        """Initialize generator.

        Args:
            api_key: Gemini API key; without one every call fails
            model: Model name used for all requests
        """
        self._api_key = api_key
        self.model = model
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        """Lazy initialization of the Gemini client."""
        if self._client is None:
            if not self._api_key:
                raise AIRequestError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        *,
        schema: Any = None,
        image: bytes | None = None,
        image_mime_type: str = "image/jpeg",
        search: bool = False,
    ) -> str:
        contents: list[Any] = [prompt]
        if image is not None:
            contents.insert(0, types.Part.from_bytes(data=image, mime_type=image_mime_type))

        config = None
        if schema is not None:
            config = types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            )
        elif search:
            # Search grounding cannot be combined with a JSON response schema
            config = types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model, contents=contents, config=config,
            )
        except AIRequestError:
            raise
        except Exception as e:
            raise AIRequestError(f"Content generation failed: {e}") from e

        if not response.text:
            raise AIRequestError("No response from AI")
        return response.text


def _allergy_clause(profile: UserProfile | None) -> str:
    if profile is None or not profile.allergies:
        return ""
    allergies = ", ".join(profile.allergies)
    return (
        f" Check for allergens matching: {allergies}."
        " If found, add them to 'allergens' and 'warnings'."
    )


class NutritionCoach:
    """Call sites for every kind of generated content."""

    def __init__(self, generator: ContentGenerator) -> None:
        self._generator = generator

    async def _request(
        self, kind: AIResponseKind, prompt: str, image: bytes | None = None, image_mime_type: str = "image/jpeg"
    ) -> Any:
        raw = await self._generator.generate(
            prompt, schema=response_schema(kind), image=image, image_mime_type=image_mime_type,
        )
        return parse_ai_response(kind, raw)

    # ==================== Food & Exercise ====================

    async def analyze_text_log(self, text: str, profile: UserProfile | None = None) -> NutritionAnalysis:
        """Estimate nutrition for a free-text meal description.

        Raises:
            AIRequestError: On generation failure or a malformed response
        """
        prompt = (
            f'Analyze this food: "{text}". Estimate nutrition per serving including sugar, fiber '
            "and sodium. Rate its healthiness (0-100) and give a short reason."
            + _allergy_clause(profile)
        )
        try:
            return await self._request(AIResponseKind.NUTRITION_ANALYSIS, prompt)
        except AIRequestError as e:
            logger.error("Error analyzing text log: %s", str(e))
            raise

    async def analyze_image_log(
        self, image: bytes, profile: UserProfile | None = None, mime_type: str = "image/jpeg"
    ) -> NutritionAnalysis:
        """Estimate nutrition for a photographed meal.

        Raises:
            AIRequestError: On generation failure or a malformed response
        """
        prompt = (
            "Identify the food or full meal in this image and estimate its total nutrition, "
            "including sugar, fiber and sodium, with a health score (0-100)."
            + _allergy_clause(profile)
        )
        try:
            return await self._request(AIResponseKind.NUTRITION_ANALYSIS, prompt, image=image, image_mime_type=mime_type)
        except AIRequestError as e:
            logger.error("Error analyzing image log: %s", str(e))
            raise

    async def lookup_barcode(self, barcode: str, profile: UserProfile | None = None) -> NutritionAnalysis | None:
        """Identify a product by barcode with search grounding, then analyze it.

        Returns:
            The analysis, or None if the product could not be identified
        """
        prompt = f'Identify the food product for barcode "{barcode}". Return the product name and brand.'
        try:
            product = (await self._generator.generate(prompt, search=True)).strip()
            if not product:
                return None
            return await self.analyze_text_log(product, profile)
        except AIRequestError as e:
            logger.error("Barcode lookup failed: %s", str(e))
            return None

    async def search_food_database(self, query: str) -> list[NutritionAnalysis]:
        """Look up up to five foods matching a query. Returns [] on failure."""
        prompt = (
            f'Search for food items matching "{query}". Return a list of 5 distinct items '
            "with nutrition facts and a health score (0-100)."
        )
        try:
            return await self._request(AIResponseKind.FOOD_SEARCH, prompt)
        except AIRequestError as e:
            logger.error("Search failed: %s", str(e))
            return []

    async def analyze_exercise(self, text: str, profile: UserProfile | None = None) -> ExerciseEstimate:
        """Estimate calories burned for a described activity.

        Raises:
            AIRequestError: On generation failure or a malformed response
        """
        context = f" The user weighs {profile.weight}kg." if profile and profile.weight else ""
        prompt = f'Estimate the calories burned for this exercise: "{text}".{context}'
        try:
            return await self._request(AIResponseKind.EXERCISE_ESTIMATE, prompt)
        except AIRequestError as e:
            logger.error("Error analyzing exercise: %s", str(e))
            raise

    # ==================== Plans ====================

    async def generate_meal_plan(
        self,
        profile: UserProfile,
        targets: NutritionTargets,
        days: int = 3,
        budget: Budget = "Standard",
    ) -> list[DayPlan]:
        """Generate a multi-day meal and workout plan.

        Returned days carry placeholder dates; the caller stamps real dates
        and ids with core.plans.finalize_generated_plan.

        Raises:
            AIRequestError: On generation failure or a malformed response
        """
        goal = profile.goal.value if profile.goal else "General Health"
        prompt = (
            f"Create a {days}-day health plan.\n"
            f"- Goal: {goal}\n"
            f"- Diet: {profile.dietary_preference.value}\n"
            f"- Allergies: {', '.join(profile.allergies) or 'None'}\n"
            f"- Calories/day: about {targets.calories}\n"
            f"- Budget: {budget} (Economy = budget ingredients/leftovers, Premium = high-end ingredients)\n"
            "Each day has Breakfast, Lunch, Dinner and Snack meals with full recipes, "
            "and 1-2 workouts suited to the goal."
        )
        try:
            drafts = await self._request(AIResponseKind.DAY_PLANS, prompt)
        except AIRequestError as e:
            logger.error("Meal plan generation failed: %s", str(e))
            raise
        return drafts_to_day_plans(drafts)

    async def suggest_swap(self, original: Recipe, profile: UserProfile) -> Recipe:
        """Suggest an alternative recipe for a planned meal.

        Raises:
            AIRequestError: On generation failure or a malformed response
        """
        goal = profile.goal.value if profile.goal else "Health"
        prompt = (
            f"Suggest a healthier or different alternative to: {original.name}. "
            f"User preferences: {profile.dietary_preference.value}, Goal: {goal}."
            + _allergy_clause(profile)
        )
        try:
            return await self._request(AIResponseKind.RECIPE, prompt)
        except AIRequestError as e:
            logger.error("Swap failed: %s", str(e))
            raise

    # ==================== Insights & Coaching ====================

    async def analyze_habits(
        self,
        food_log: Sequence[FoodItem],
        water_intake: int,
        mood_log: Sequence[MoodEntry],
        profile: UserProfile,
    ) -> HabitInsight:
        """Summarize today's habits. Falls back to a neutral insight on failure."""
        simple_logs = [
            {
                "name": f.name,
                "time": datetime.fromtimestamp(f.timestamp / 1000).hour,
                "calories": f.calories,
                "health_score": f.health_score,
            }
            for f in food_log
        ]
        simple_moods = [
            {"mood": m.mood.value, "time": datetime.fromtimestamp(m.timestamp / 1000).hour}
            for m in mood_log
        ]
        goal = profile.goal.value if profile.goal else "General Health"
        prompt = (
            "Analyze these user habits for today and provide behavioural insights.\n"
            f"Food logs: {json.dumps(simple_logs)}\n"
            f"Water: {water_intake}ml\n"
            f"Moods: {json.dumps(simple_moods)}\n"
            f"Profile: Goal {goal}, Diet {profile.dietary_preference.value}\n"
            "Score habits 0-100, name the main trend, give advice, detect the eating "
            "window (first to last meal) and count snacks after 9PM."
        )
        try:
            return await self._request(AIResponseKind.HABIT_INSIGHT, prompt)
        except AIRequestError as e:
            logger.error("Insight analysis failed: %s", str(e))
            return FALLBACK_HABIT_INSIGHT.model_copy()

    async def chat(
        self,
        message: str,
        profile: UserProfile,
        stats: DailyStats,
        history: Sequence[ChatTurn] = (),
    ) -> str:
        """Answer a coaching question with today's numbers as context.

        Raises:
            AIRequestError: On generation failure
        """
        goal = profile.goal.value if profile.goal else "General Health"
        transcript = "\n".join(f"{turn.role}: {turn.text}" for turn in history)
        prompt = (
            "You are a friendly, concise nutrition coach.\n"
            f"User goal: {goal}. Diet: {profile.dietary_preference.value}.\n"
            f"Today: {stats.calories:.0f}/{stats.target_calories} kcal, "
            f"{stats.protein:.0f}/{stats.target_protein} g protein, "
            f"{stats.water_intake}/{stats.water_target} ml water, "
            f"{stats.calories_burned:.0f} kcal burned, daily score {stats.daily_score}.\n"
            + (f"Conversation so far:\n{transcript}\n" if transcript else "")
            + f"user: {message}"
        )
        try:
            return await self._generator.generate(prompt)
        except AIRequestError as e:
            logger.error("Chat failed: %s", str(e))
            raise
