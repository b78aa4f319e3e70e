from datetime import timedelta

from django.db.models import Count, Exists, OuterRef, Q
from django.utils import timezone

from habits.models import Habit, TrackingEntry


def with_habit_stats(qs, today=None):
    """
    Adds efficient annotations used by derived fields.

    - total_completions_anno
    - last_7_days_count_anno
    - completed_today_anno
    """
    today = today or timezone.localdate()
    start = today - timedelta(days=6)

    completed_today_exists = TrackingEntry.objects.filter(
        habit_id=OuterRef("pk"), track_date=today, completed=True
    )

    return qs.annotate(
        total_completions_anno=Count(
            "entries",
            filter=Q(entries__completed=True),
            distinct=True,
        ),
        last_7_days_count_anno=Count(
            "entries",
            filter=Q(entries__completed=True, entries__track_date__range=(start, today)),
            distinct=True,
        ),
        completed_today_anno=Exists(completed_today_exists),
    )


def _prefetched_entries_or_none(habit):
    """
    If `entries` were prefetched, Django stores them in _prefetched_objects_cache
    We can use that to avoid DB queries.

    Returns a {track_date: completed} mapping.
    """
    cache = getattr(habit, "_prefetched_objects_cache", None) or {}
    if "entries" not in cache:
        return None
    return {entry.track_date: entry.completed for entry in cache["entries"]}


def entries_map(habit, today=None):
    prefetched = _prefetched_entries_or_none(habit)
    if prefetched is not None:
        if today is None:
            return prefetched
        return {d: done for d, done in prefetched.items() if d <= today}

    qs = habit.entries.all()
    if today is not None:
        qs = qs.filter(track_date__lte=today)
    return dict(qs.values_list("track_date", "completed"))


def completed_dates(habit, today=None) -> set:
    return {d for d, done in entries_map(habit, today).items() if done}


def total_completions(habit: Habit) -> int:
    val = getattr(habit, "total_completions_anno", None)
    if val is not None:
        return int(val)
    return habit.entries.filter(completed=True).count()


def completed_today(habit: Habit, today=None) -> bool:
    val = getattr(habit, "completed_today_anno", None)
    if val is not None:
        return bool(val)
    today = today or timezone.localdate()
    return habit.entries.filter(track_date=today, completed=True).exists()


def last_7_days_count(habit: Habit, today=None) -> int:
    val = getattr(habit, "last_7_days_count_anno", None)
    if val is not None:
        return int(val)
    today = today or timezone.localdate()
    start = today - timedelta(days=6)
    return habit.entries.filter(completed=True, track_date__range=(start, today)).count()


def current_streak_from(entries: dict, today) -> int:
    """
    Consecutive completed days ending at `today`, or at yesterday while
    today has no entry yet.

    `entries` maps track_date -> completed. A day without a completed
    entry ends the run, so an abandoned habit has no current streak.
    """
    day = today if today in entries else today - timedelta(days=1)

    streak = 0
    while entries.get(day):
        streak += 1
        day -= timedelta(days=1)
    return streak


def best_streak_from(dates) -> int:
    dates = sorted(set(dates))
    if not dates:
        return 0

    best = 1
    cur = 1
    for prev, nxt in zip(dates, dates[1:]):
        if nxt == prev + timedelta(days=1):
            cur += 1
            if cur > best:
                best = cur
        else:
            cur = 1
    return best


def current_streak(habit: Habit, today=None) -> int:
    today = today or timezone.localdate()
    return current_streak_from(entries_map(habit, today), today)


def best_streak(habit: Habit) -> int:
    """
    Max consecutive-day streak across all completed entries.
    Uses prefetched entries if available; otherwise queries once.
    """
    return best_streak_from(completed_dates(habit))
