"""MCP Server - Tool definitions for assistant integration.

Exposes the application controller as MCP tools. Every tool goes through
the controller so derived stats are always recomputed from the logs.
"""

import base64
import binascii
import logging
from datetime import date, datetime

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from ..core.errors import AIRequestError, MissingFieldsError, PlanItemNotFoundError
from ..core.models import (
    ActivityLevel,
    DietaryPreference,
    ExerciseItem,
    FoodItem,
    Gender,
    Goal,
    MealType,
    Mood,
    NutritionTargets,
    UserProfile,
)
from ..core.reminders import meal_type_for_hour
from ..core.stats import filter_for_day
from ..core.targets import compute_targets
from .ai_client import GeminiContentGenerator, NutritionCoach
from .app_state import AppController
from .config import AppConfig
from .firestore_client import FirestoreConfig, NutritionFirestoreClient
from .gateway import PersistenceGateway
from .identity import get_or_create_user_id
from .local_cache import LocalCache


logger = logging.getLogger(__name__)

TRY_AGAIN = "The AI service could not answer. Please try again."

transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=["localhost:*", "127.0.0.1:*", "*.run.app:*", "*.run.app"],
)

mcp = FastMCP(
    "nutripulse",
    instructions="""NutriPulse - Personal nutrition and fitness coach.

Use these tools to track meals, exercise and water, follow generated meal
and workout plans, and see how today is going against the user's targets.

On first use, call setup_profile to store body metrics and derive targets.
After logging anything, show the updated daily stats and any alert.""",
    stateless_http=True,
    transport_security=transport_security,
)

# Lazy-initialized controller
_controller: AppController | None = None


def build_controller(config: AppConfig) -> AppController:
    """Wire cache, identity, remote store, gateway and coach together."""
    cache = LocalCache(config.data_dir)
    user_id = get_or_create_user_id(cache)
    remote = NutritionFirestoreClient(
        FirestoreConfig(project_id=config.firestore_project, database=config.firestore_database)
    )
    gateway = PersistenceGateway(user_id, cache, remote)
    coach = None
    if config.gemini_api_key:
        coach = NutritionCoach(GeminiContentGenerator(config.gemini_api_key, config.gemini_model))
    else:
        logger.warning("GEMINI_API_KEY is not configured; AI tools are disabled.")
    return AppController(gateway, cache, coach)


async def get_controller() -> AppController:
    """Get or create the controller, loading state on first use."""
    global _controller
    if _controller is None:
        controller = build_controller(AppConfig.from_env())
        await controller.load()
        _controller = controller
    return _controller


def set_controller(controller: AppController | None) -> None:
    """Install a prepared controller (or reset with None)."""
    global _controller
    _controller = controller


def _today_summary(controller: AppController, hour: int | None = None) -> dict:
    today = date.today()
    stats = controller.daily_stats(today)
    alert = controller.smart_alert(hour, today)
    return {
        "stats": stats.model_dump(mode="json"),
        "alert": alert.model_dump(mode="json") if alert else None,
    }


def _split_tokens(value: str | None) -> list[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


# ==================== Profile Tools ====================


@mcp.tool()
async def setup_profile(
    age: int,
    gender: Gender,
    weight: float,
    height: float,
    activity_level: ActivityLevel,
    goal: Goal,
    dietary_preference: DietaryPreference = DietaryPreference.NONE,
    allergies: str | None = None,
) -> dict:
    """Store the user's profile and derive their daily targets.

    Args:
        age: Age in years
        gender: Male, Female or Other
        weight: Weight in kg
        height: Height in cm
        activity_level: Sedentary, Lightly Active, Moderately Active or Very Active
        goal: Weight Loss, Maintenance or Muscle Gain
        dietary_preference: Diet style (None, Vegetarian, Vegan, Keto, Paleo, Pescatarian)
        allergies: Comma-separated allergy list

    Returns:
        Saved profile and derived targets
    """
    controller = await get_controller()
    profile = UserProfile(
        age=age,
        gender=gender,
        weight=weight,
        height=height,
        activity_level=activity_level,
        goal=goal,
        dietary_preference=dietary_preference,
        allergies=_split_tokens(allergies),
        notifications=controller.state.profile.notifications,
    )
    targets = compute_targets(profile)
    if targets.calories <= 0:
        return {"error": "These measurements give a calorie target of 0. Please check weight, height and age."}
    result = await controller.complete_onboarding(profile, targets)
    return {
        "profile": controller.state.profile.model_dump(mode="json"),
        "targets": targets.model_dump(),
        "saved": result.model_dump(),
    }


@mcp.tool()
async def calculate_targets() -> dict:
    """Recalculate targets from the stored profile and save them.

    Returns:
        New targets, or the list of profile fields still missing
    """
    controller = await get_controller()
    try:
        targets = await controller.recalculate_targets()
    except MissingFieldsError as e:
        return {"error": f"Please provide: {', '.join(e.fields)}", "missing_fields": e.fields}
    return {"targets": targets.model_dump()}


@mcp.tool()
async def set_targets(calories: int, protein: int, carbs: int, fat: int, water: int) -> dict:
    """Manually override daily targets.

    Args:
        calories: Daily calories (must be positive)
        protein: Protein in grams
        carbs: Carbohydrates in grams
        fat: Fat in grams
        water: Water in ml

    Returns:
        Saved targets and today's summary
    """
    if calories <= 0:
        return {"error": "Calorie target must be positive."}
    controller = await get_controller()
    targets = NutritionTargets(calories=calories, protein=protein, carbs=carbs, fat=fat, water=water)
    result = await controller.update_targets(targets)
    return {"targets": targets.model_dump(), "saved": result.model_dump(), **_today_summary(controller)}


# ==================== Query Tools ====================


@mcp.tool()
async def get_today(hour: int | None = None) -> dict:
    """Get today's logs, stats, and the current smart alert.

    Args:
        hour: Local hour (0-23) used for time-based alerts; defaults to now

    Returns:
        Dictionary with date, entries, exercises, stats and alert
    """
    controller = await get_controller()
    today = date.today()
    foods = filter_for_day(controller.state.food_log, today)
    exercises = filter_for_day(controller.state.exercise_log, today)
    return {
        "date": today.isoformat(),
        "needs_onboarding": controller.needs_onboarding(),
        "entries": [f.model_dump(mode="json") for f in foods],
        "exercises": [e.model_dump(mode="json") for e in exercises],
        "targets": controller.state.targets.model_dump(),
        **_today_summary(controller, hour),
    }


@mcp.tool()
async def dismiss_alert(hour: int | None = None) -> str:
    """Hide the alert currently shown until the stats change.

    Args:
        hour: Local hour (0-23) the alert was evaluated at; defaults to now
    """
    controller = await get_controller()
    controller.dismiss_alert(hour, date.today())
    return "Alert dismissed."


@mcp.tool()
async def sync_status() -> dict:
    """Report whether the cloud store is reachable."""
    controller = await get_controller()
    connected = await controller.refresh_connection()
    return {"cloud_connected": connected}


# ==================== Logging Tools ====================


@mcp.tool()
async def log_food(
    name: str,
    calories: float,
    protein: float,
    carbs: float,
    fat: float,
    meal_type: MealType | None = None,
    quantity: float = 1.0,
) -> dict:
    """Add a food entry to today's log.

    Args:
        name: Name of the food
        calories: Calories per serving
        protein: Protein in grams per serving
        carbs: Carbohydrates in grams per serving
        fat: Fat in grams per serving
        meal_type: Breakfast, Lunch, Dinner or Snack (guessed from the time if omitted)
        quantity: Number of servings

    Returns:
        The created entry and today's summary
    """
    controller = await get_controller()
    item = FoodItem(
        name=name,
        calories=calories * quantity,
        protein=protein * quantity,
        carbs=carbs * quantity,
        fat=fat * quantity,
        quantity=quantity,
        meal_type=meal_type or meal_type_for_hour(datetime.now().hour),
    )
    result = await controller.add_food(item)
    return {"entry": item.model_dump(mode="json"), "saved": result.model_dump(), **_today_summary(controller)}


@mcp.tool()
async def analyze_and_log_food(
    description: str, meal_type: MealType | None = None, quantity: float = 1.0
) -> dict:
    """Estimate nutrition for a described meal with AI and log it.

    Args:
        description: What was eaten, e.g. "two slices of pepperoni pizza"
        meal_type: Breakfast, Lunch, Dinner or Snack (guessed if omitted)
        quantity: Serving multiplier

    Returns:
        The created entry with health notes, and today's summary
    """
    controller = await get_controller()
    if controller.coach is None:
        return {"error": "AI analysis is not configured."}
    try:
        analysis = await controller.coach.analyze_text_log(description, controller.state.profile)
    except AIRequestError:
        return {"error": TRY_AGAIN}
    item = await controller.add_analyzed_food(
        analysis, meal_type or meal_type_for_hour(datetime.now().hour), quantity,
    )
    return {"entry": item.model_dump(mode="json"), **_today_summary(controller)}


@mcp.tool()
async def analyze_image_and_log_food(
    image_base64: str,
    mime_type: str = "image/jpeg",
    meal_type: MealType | None = None,
    quantity: float = 1.0,
) -> dict:
    """Estimate nutrition for a photographed meal with AI and log it.

    Args:
        image_base64: Base64-encoded image data
        mime_type: Image MIME type, e.g. image/jpeg or image/png
        meal_type: Breakfast, Lunch, Dinner or Snack (guessed if omitted)
        quantity: Serving multiplier

    Returns:
        The created entry with health notes, and today's summary
    """
    try:
        image = base64.b64decode(image_base64, validate=True)
    except binascii.Error:
        return {"error": "image_base64 is not valid base64 data."}
    if not image:
        return {"error": "image_base64 is empty."}
    controller = await get_controller()
    if controller.coach is None:
        return {"error": "AI analysis is not configured."}
    try:
        analysis = await controller.coach.analyze_image_log(image, controller.state.profile, mime_type)
    except AIRequestError:
        return {"error": TRY_AGAIN}
    item = await controller.add_analyzed_food(
        analysis, meal_type or meal_type_for_hour(datetime.now().hour), quantity,
    )
    return {"entry": item.model_dump(mode="json"), **_today_summary(controller)}


@mcp.tool()
async def lookup_barcode(barcode: str) -> dict:
    """Identify a packaged food by its barcode number and return its nutrition.

    Args:
        barcode: The digits printed under the barcode

    Returns:
        Nutrition facts for the product; log it with log_food
    """
    controller = await get_controller()
    if controller.coach is None:
        return {"error": "AI analysis is not configured."}
    analysis = await controller.coach.lookup_barcode(barcode, controller.state.profile)
    if analysis is None:
        return {"error": f"No product found for barcode {barcode}."}
    return {"product": analysis.model_dump(mode="json")}


@mcp.tool()
async def delete_food(entry_id: str) -> dict:
    """Delete a food entry.

    Args:
        entry_id: The ID of the entry to delete
    """
    controller = await get_controller()
    result = await controller.remove_food(entry_id)
    return {"success": result.ok, "saved": result.model_dump(), **_today_summary(controller)}


@mcp.tool()
async def log_exercise(
    name: str | None = None,
    calories_burned: float | None = None,
    duration_minutes: float | None = None,
    description: str | None = None,
) -> dict:
    """Log exercise, either with explicit numbers or an AI estimate.

    Args:
        name: Activity name (with calories_burned and duration_minutes)
        calories_burned: Calories burned
        duration_minutes: Duration in minutes
        description: Free text to estimate from when numbers are omitted

    Returns:
        The created entry and today's summary
    """
    controller = await get_controller()
    if name and calories_burned is not None and duration_minutes is not None:
        item = ExerciseItem(name=name, calories_burned=calories_burned, duration_minutes=duration_minutes)
    elif description:
        if controller.coach is None:
            return {"error": "AI estimation is not configured."}
        try:
            estimate = await controller.coach.analyze_exercise(description, controller.state.profile)
        except AIRequestError:
            return {"error": TRY_AGAIN}
        item = ExerciseItem(**estimate.model_dump())
    else:
        return {"error": "Provide name, calories_burned and duration_minutes, or a description."}

    result = await controller.add_exercise(item)
    return {"entry": item.model_dump(mode="json"), "saved": result.model_dump(), **_today_summary(controller)}


@mcp.tool()
async def delete_exercise(entry_id: str) -> dict:
    """Delete an exercise entry.

    Args:
        entry_id: The ID of the entry to delete
    """
    controller = await get_controller()
    result = await controller.remove_exercise(entry_id)
    return {"success": result.ok, "saved": result.model_dump(), **_today_summary(controller)}


@mcp.tool()
async def add_water(amount_ml: int) -> dict:
    """Add (or with a negative amount, remove) water in ml."""
    controller = await get_controller()
    total = controller.add_water(amount_ml)
    return {"water_intake": total, **_today_summary(controller)}


@mcp.tool()
async def log_mood(mood: Mood) -> dict:
    """Record how the user feels right now."""
    controller = await get_controller()
    entry = controller.log_mood(mood)
    return {"entry": entry.model_dump(mode="json")}


# ==================== Plan Tools ====================


@mcp.tool()
async def get_plan() -> list[dict]:
    """Return the current meal and workout plan."""
    controller = await get_controller()
    return [day.model_dump(mode="json") for day in controller.state.plans]


@mcp.tool()
async def generate_plan(days: int = 3, budget: str = "Standard") -> dict:
    """Generate a new multi-day meal and workout plan, replacing the current one.

    Args:
        days: Number of days (1-7)
        budget: Economy, Standard or Premium
    """
    if not 1 <= days <= 7:
        return {"error": "days must be between 1 and 7."}
    if budget not in ("Economy", "Standard", "Premium"):
        return {"error": "budget must be Economy, Standard or Premium."}
    controller = await get_controller()
    try:
        plans = await controller.generate_plan(days, budget)
    except AIRequestError:
        return {"error": TRY_AGAIN}
    if plans is None:
        return {"error": "A newer plan request replaced this one."}
    return {"plan": [day.model_dump(mode="json") for day in plans]}


@mcp.tool()
async def log_planned_meal(meal_id: str) -> dict:
    """Mark a planned meal as eaten and add it to the food log."""
    controller = await get_controller()
    try:
        item = await controller.log_planned_meal(meal_id)
    except PlanItemNotFoundError as e:
        return {"error": str(e)}
    if item is None:
        return {"message": "Meal was already logged.", **_today_summary(controller)}
    return {"entry": item.model_dump(mode="json"), **_today_summary(controller)}


@mcp.tool()
async def complete_workout(workout_id: str) -> dict:
    """Mark a planned workout as done and add it to the exercise log."""
    controller = await get_controller()
    try:
        item = await controller.log_planned_workout(workout_id)
    except PlanItemNotFoundError as e:
        return {"error": str(e)}
    if item is None:
        return {"message": "Workout was already completed.", **_today_summary(controller)}
    return {"entry": item.model_dump(mode="json"), **_today_summary(controller)}


@mcp.tool()
async def swap_meal(day_index: int, meal_id: str) -> dict:
    """Replace a planned meal with an AI-suggested alternative.

    Args:
        day_index: Position of the day in the plan (0 = first day)
        meal_id: ID of the meal to replace
    """
    controller = await get_controller()
    try:
        day = await controller.swap_meal(day_index, meal_id)
    except PlanItemNotFoundError as e:
        return {"error": str(e)}
    except AIRequestError:
        return {"error": TRY_AGAIN}
    return {"day": day.model_dump(mode="json")}


# ==================== Coaching Tools ====================


@mcp.tool()
async def get_insights() -> dict:
    """Analyze today's eating, water and mood habits."""
    controller = await get_controller()
    try:
        insight = await controller.habit_insight()
    except AIRequestError as e:
        return {"error": str(e)}
    if insight is None:
        return {"error": "A newer insight request replaced this one."}
    return insight.model_dump(mode="json")


@mcp.tool()
async def search_food(query: str) -> list[dict]:
    """Look up nutrition facts for up to five foods matching a query."""
    controller = await get_controller()
    if controller.coach is None:
        return []
    results = await controller.coach.search_food_database(query)
    return [r.model_dump(mode="json") for r in results]


@mcp.tool()
async def get_recent_foods() -> list[dict]:
    """List recently logged foods, one per name, newest first."""
    controller = await get_controller()
    return [f.model_dump(mode="json") for f in controller.recent_foods()]


@mcp.tool()
async def ask_coach(message: str) -> dict:
    """Ask the nutrition coach a question with today's numbers as context."""
    controller = await get_controller()
    if controller.coach is None:
        return {"error": "AI coaching is not configured."}
    try:
        reply = await controller.coach.chat(
            message, controller.state.profile, controller.daily_stats(date.today()),
        )
    except AIRequestError:
        return {"error": TRY_AGAIN}
    return {"reply": reply}
