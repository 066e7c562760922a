"""Reminder Rules - When to nudge the user, and small log helpers.

Only the scheduling rule lives here; delivering the notification is up to
whatever front end runs the check.
"""

from datetime import datetime, timedelta
from typing import Iterable, NamedTuple

from .models import FoodItem, MealType, NotificationSettings


# Minimum gap between two notifications
NOTIFICATION_COOLDOWN = timedelta(seconds=60)


class Reminder(NamedTuple):
    kind: str
    title: str
    body: str


_TIMED_REMINDERS = (
    ("breakfast", "breakfast_time", "Breakfast Time!", "Start your day with a healthy meal."),
    ("lunch", "lunch_time", "Lunch Time!", "Fuel up for the afternoon."),
    ("dinner", "dinner_time", "Dinner Time!", "Time for a balanced dinner."),
    ("workout", "workout_time", "Workout Reminder", "Time to get moving!"),
    ("sleep", "sleep_time", "Sleep Time", "Time to wind down for better recovery."),
)


def default_notification_settings() -> NotificationSettings:
    """Settings assigned on first onboarding when none were chosen."""
    return NotificationSettings()


def due_reminders(
    settings: NotificationSettings | None,
    now: datetime,
    last_sent: datetime | None = None,
) -> list[Reminder]:
    """Return the reminders that should fire at ``now``.

    Args:
        settings: The user's notification settings (None = never notify)
        now: Local wall-clock time of the check
        last_sent: When the previous notification went out, if ever

    Returns:
        Reminders due this minute; empty while disabled or cooling down
    """
    if settings is None or not settings.enabled:
        return []
    if last_sent is not None and now - last_sent < NOTIFICATION_COOLDOWN:
        return []

    clock = now.strftime("%H:%M")
    due = [
        Reminder(kind, title, body)
        for kind, field, title, body in _TIMED_REMINDERS
        if getattr(settings, field) == clock
    ]

    if settings.water_interval > 0:
        minutes_today = now.hour * 60 + now.minute
        if minutes_today % settings.water_interval == 0:
            due.append(Reminder("water", "Hydration Check", "Time to drink some water!"))

    return due


def meal_type_for_hour(hour: int) -> MealType:
    """Guess the meal being logged from the hour of day."""
    if 5 <= hour < 11:
        return MealType.BREAKFAST
    if 11 <= hour < 16:
        return MealType.LUNCH
    if 16 <= hour < 22:
        return MealType.DINNER
    return MealType.SNACK


def recent_foods(food_log: Iterable[FoodItem]) -> list[FoodItem]:
    """Unique foods by name, most recently logged first."""
    seen: dict[str, FoodItem] = {}
    for item in reversed(list(food_log)):
        if item.name not in seen:
            seen[item.name] = item
    return list(seen.values())
