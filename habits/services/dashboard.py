"""
Per-request aggregation behind the dashboard: today's counters, per-habit
availability and streaks, and the 7-day efficiency chart with a forecast.
"""
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from django.db import DatabaseError
from django.db.models import Count
from django.utils import timezone

from habits.models import Habit, TrackingEntry
from habits.services import habit_stats
from habits.services.notifications import build_notifications, notification_config
from habits.services.ordering import canonical_queryset

logger = logging.getLogger(__name__)

CHART_DAYS = 7


@dataclass(frozen=True)
class HabitSummary:
    id: int
    title: str
    description: str
    frequency: str
    sort_order: Optional[int]
    done_today: bool
    next_available: date
    current_streak: int
    best_streak: int
    last_completed: Optional[date]


@dataclass(frozen=True)
class ChartPoint:
    date: date
    value: float
    total: int
    completed: int


@dataclass
class Dashboard:
    """
    `completed_today` counts habits whose HabitSummary.done_today is set, so
    a weekly or monthly habit completed earlier in its interval counts as
    done, and `efficiency` includes it.
    """

    today: date
    habits: List[HabitSummary] = field(default_factory=list)
    total_habits: int = 0
    completed_today: int = 0
    missed_today: int = 0
    efficiency: int = 0
    longest_streak: int = 0
    chart: List[ChartPoint] = field(default_factory=list)
    predicted: Optional[float] = None
    predicted_date: Optional[date] = None
    notifications: list = field(default_factory=list)

    @classmethod
    def empty(cls, today):
        return cls(today=today)


def _clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))


def efficiency(completed: int, total: int) -> int:
    """
    round(completed / total * 100), half-up, in [0, 100]; 0 without habits.
    `completed` is the done_today count, interval habits included.
    """
    if total <= 0:
        return 0
    pct = (Decimal(completed) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(_clamp(int(pct), 0, 100))


def forecast_next(values: List[float]) -> Optional[float]:
    """Last value plus the average day-over-day delta, clamped to [0, 100]."""
    if not values:
        return None
    if len(values) == 1:
        predicted = float(values[0])
    else:
        deltas = [b - a for a, b in zip(values, values[1:])]
        predicted = float(values[-1]) + sum(deltas) / len(deltas)
    return _clamp(round(predicted, 2))


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def next_available(frequency: str, last_done: Optional[date], today: date) -> date:
    if last_done is None or frequency == Habit.Frequency.DAILY:
        return today
    if frequency == Habit.Frequency.WEEKLY:
        candidate = last_done + timedelta(weeks=1)
    elif frequency == Habit.Frequency.MONTHLY:
        candidate = add_months(last_done, 1)
    else:
        return today
    return candidate if candidate > today else today


def summarize_habit(habit: Habit, today: date) -> HabitSummary:
    entries = habit_stats.entries_map(habit, today)
    done_dates = {d for d, done in entries.items() if done}
    last_done = max(done_dates) if done_dates else None
    available = next_available(habit.frequency, last_done, today)

    done_today = today in done_dates
    if habit.frequency != Habit.Frequency.DAILY:
        done_today = done_today or available > today

    return HabitSummary(
        id=habit.pk,
        title=habit.title,
        description=habit.description,
        frequency=habit.frequency,
        sort_order=habit.sort_order,
        done_today=done_today,
        next_available=available,
        current_streak=habit_stats.current_streak_from(entries, today),
        best_streak=habit_stats.best_streak(habit),
        last_completed=last_done,
    )


def _chart_rows(user, start: date, end: date):
    return (
        TrackingEntry.objects.filter(habit__owner=user, completed=True, track_date__range=(start, end))
        .values("track_date")
        .annotate(completed=Count("habit", distinct=True))
        .order_by("track_date")
    )


def build_chart(user, today: date, habit_count: int) -> List[ChartPoint]:
    """
    Daily efficiency for the last CHART_DAYS days: habits completed that day
    over the user's current habit count. Days without completions chart as 0.
    """
    start = today - timedelta(days=CHART_DAYS - 1)
    by_date = {row["track_date"]: row["completed"] for row in _chart_rows(user, start, today)}

    points = []
    for offset in range(CHART_DAYS):
        day = start + timedelta(days=offset)
        completed = by_date.get(day, 0)
        value = _clamp(round(completed / habit_count * 100, 2)) if habit_count > 0 else 0.0
        points.append(ChartPoint(date=day, value=value, total=habit_count, completed=completed))
    return points


def build_dashboard(user, today: date) -> Dashboard:
    """
    Aggregate the dashboard for `user` as of `today`.

    Any storage error yields Dashboard.empty(today) instead of a partial
    result, so the counters never disagree with each other.
    """
    try:
        habits = list(canonical_queryset(user).prefetch_related("entries"))
        if not habits:
            return Dashboard.empty(today)

        summaries = [summarize_habit(habit, today) for habit in habits]
        chart = build_chart(user, today, len(habits))
    except DatabaseError:
        logger.exception("Dashboard aggregation failed for user %s", user.pk)
        return Dashboard.empty(today)

    total = len(summaries)
    completed = sum(1 for s in summaries if s.done_today)
    predicted = forecast_next([point.value for point in chart])

    dashboard = Dashboard(
        today=today,
        habits=summaries,
        total_habits=total,
        completed_today=completed,
        missed_today=max(0, total - completed),
        efficiency=efficiency(completed, total),
        longest_streak=max(s.best_streak for s in summaries),
        chart=chart,
        predicted=predicted,
        predicted_date=chart[-1].date + timedelta(days=1) if predicted is not None else None,
    )

    config = notification_config()
    new_since = today - timedelta(days=config["NEW_DAYS"])
    new_titles = [h.title for h in habits if timezone.localtime(h.created_at).date() >= new_since]
    dashboard.notifications = build_notifications(dashboard, new_titles, config)
    return dashboard
