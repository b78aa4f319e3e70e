from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings

DEFAULTS = {
    "UPCOMING_DAYS": 3,
    "NEW_DAYS": 7,
    "STREAK_MILESTONES": (3, 7, 14, 30),
    "EFFICIENCY_WARNING": 50,
    "HINT_LIMIT": 5,
}


@dataclass(frozen=True)
class Notification:
    id: str
    type: str
    title: str
    message: str
    hint: str = ""
    link: str = ""


def notification_config() -> dict:
    return {**DEFAULTS, **getattr(settings, "HABITS_NOTIFICATIONS", {})}


def _hint(items, limit):
    hint = ", ".join(items[:limit])
    if len(items) > limit:
        hint += ", …"
    return hint


def build_notifications(dashboard, new_habit_titles=(), config=None):
    """
    Informational notices derived from an aggregated dashboard.
    Nothing here touches storage.
    """
    config = config or notification_config()
    limit = config["HINT_LIMIT"]
    today = dashboard.today
    notifications = []

    missed = [h.title for h in dashboard.habits if not h.done_today and h.next_available <= today]
    if missed:
        count = len(missed)
        message = "You have 1 missed habit today." if count == 1 else f"You have {count} missed habits today."
        notifications.append(Notification(
            id="missed_today",
            type="warning",
            title="Missed today",
            message=message,
            hint=_hint(missed, limit),
            link="/habits/history/",
        ))

    horizon = today + timedelta(days=config["UPCOMING_DAYS"])
    upcoming = sorted(
        (h for h in dashboard.habits if not h.done_today and today < h.next_available <= horizon),
        key=lambda h: h.next_available,
    )
    if upcoming:
        notifications.append(Notification(
            id="upcoming_soon",
            type="info",
            title="Available soon",
            message="Some habits become available in the next few days.",
            hint=_hint([f"{h.title} (in {(h.next_available - today).days}d)" for h in upcoming], limit),
            link="/dashboard/",
        ))

    milestones = set(config["STREAK_MILESTONES"])
    reached = [f"{h.title} ({h.current_streak} days)" for h in dashboard.habits if h.current_streak in milestones]
    if reached:
        notifications.append(Notification(
            id="streak_milestone",
            type="success",
            title="Streak milestone",
            message="Congratulations! Some of your current streaks reached a milestone.",
            hint=_hint(reached, limit),
            link="/habits/history/",
        ))

    threshold = config["EFFICIENCY_WARNING"]
    if dashboard.total_habits > 0 and dashboard.efficiency < threshold:
        notifications.append(Notification(
            id="low_efficiency",
            type="warning",
            title="Low efficiency",
            message=f"Your efficiency today is {dashboard.efficiency}%, below the {threshold}% threshold.",
            hint="Review your schedule and priorities to keep progress sustainable.",
            link="/dashboard/",
        ))

    new_habit_titles = list(new_habit_titles)
    if new_habit_titles:
        notifications.append(Notification(
            id="new_habits",
            type="info",
            title="New habits",
            message=f"You added new habits in the last {config['NEW_DAYS']} days.",
            hint=_hint(new_habit_titles, limit),
            link="/dashboard/",
        ))

    return notifications
