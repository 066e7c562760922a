"""Smart Alerts - Rule-based advisory messages for the dashboard.

Rules are evaluated in priority order and the first match wins. Nothing is
cached: callers re-run the evaluation whenever stats change.
"""

from typing import Callable, NamedTuple

from .models import Alert, AlertSeverity, DailyStats


CALORIE_OVERSHOOT_RATIO = 1.05
LOW_PROTEIN_RATIO = 0.6
LOW_PROTEIN_HOUR = 18
LOW_WATER_RATIO = 0.5
LOW_WATER_HOUR = 20


class AlertRule(NamedTuple):
    name: str
    severity: AlertSeverity
    message: str
    matches: Callable[[DailyStats, int], bool]


ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(
        name="calorie_overshoot",
        severity=AlertSeverity.WARNING,
        message="You've exceeded your calorie goal. Try a light activity or drink water!",
        matches=lambda s, hour: s.calories > s.target_calories * CALORIE_OVERSHOOT_RATIO,
    ),
    AlertRule(
        name="low_protein",
        severity=AlertSeverity.TIP,
        message="Protein is low today. Consider a high-protein dinner like chicken or tofu.",
        matches=lambda s, hour: (
            hour >= LOW_PROTEIN_HOUR and s.protein < s.target_protein * LOW_PROTEIN_RATIO
        ),
    ),
    AlertRule(
        name="low_water",
        severity=AlertSeverity.TIP,
        message="Don't forget to hydrate! You're behind on your water goal.",
        matches=lambda s, hour: (
            hour >= LOW_WATER_HOUR and s.water_intake < s.water_target * LOW_WATER_RATIO
        ),
    ),
)


def evaluate_alert(stats: DailyStats, current_hour: int, dismissed: bool = False) -> Alert | None:
    """Return the highest-priority alert for the current stats, if any.

    Args:
        stats: Today's derived statistics
        current_hour: Local wall-clock hour, 0-23
        dismissed: True when the user hid the current alert this session

    Returns:
        The first matching Alert, or None
    """
    if dismissed:
        return None

    for rule in ALERT_RULES:
        if rule.matches(stats, current_hour):
            return Alert(severity=rule.severity, rule=rule.name, message=rule.message)
    return None
