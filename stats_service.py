from __future__ import annotations
import datetime
from typing import Iterable, Optional, Tuple

from models import ExerciseSession

WEEK_DAYS = 7
MONTH_DAYS = 30


def parse_day(value: str) -> datetime.date:
    """Return the calendar day of an ISO date or timestamp string."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.datetime.fromisoformat(text).date()
    except ValueError:
        return datetime.date.fromisoformat(text[:10])


def next_streak(
    last_workout_date: Optional[str],
    streak: int,
    today: datetime.date,
) -> Tuple[int, str]:
    """Return the streak after a workout on ``today`` and the new last date.

    Same day keeps the streak, the following day extends it, anything else
    starts over at one.
    """
    today_str = today.isoformat()
    yesterday_str = (today - datetime.timedelta(days=1)).isoformat()
    if last_workout_date == today_str:
        return streak, today_str
    if last_workout_date == yesterday_str:
        return streak + 1, today_str
    return 1, today_str


def window_stats(
    history: Iterable[ExerciseSession],
    days: int,
    today: Optional[datetime.date] = None,
) -> dict[str, int]:
    """Aggregate history entries dated within the trailing ``days`` window."""
    today = today or datetime.date.today()
    start = today - datetime.timedelta(days=days)
    sessions = [s for s in history if parse_day(s.date) >= start]
    return {
        "workouts": len({s.workout_id for s in sessions}),
        "total_sets": sum(s.sets for s in sessions),
        "total_reps": sum(s.reps * s.sets for s in sessions),
    }


def weekly_stats(history, today=None) -> dict[str, int]:
    return window_stats(history, WEEK_DAYS, today)


def monthly_stats(history, today=None) -> dict[str, int]:
    return window_stats(history, MONTH_DAYS, today)


def progress_percentage(starting: float, current: float, goal: float) -> float:
    """Return how far ``current`` has moved from ``starting`` toward ``goal``."""
    total = goal - starting
    if total <= 0:
        return 0.0
    return max(0.0, min((current - starting) / total * 100, 100.0))
