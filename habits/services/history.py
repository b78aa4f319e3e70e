import csv
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List

from django.conf import settings
from django.core.paginator import Paginator

from habits.models import Habit, TrackingEntry
from habits.services.dashboard import efficiency
from habits.services.tracking import get_owned_habit

EXPORT_HEADER = ["id", "track_date", "completed", "created_at", "updated_at"]
BOM = "\ufeff"


@dataclass
class HistoryPage:
    habit: Habit
    entries: List[TrackingEntry]
    total: int
    page: int
    num_pages: int
    page_size: int
    completed: int
    efficiency: int


def default_range(today: date):
    days = getattr(settings, "HABITS_HISTORY_DEFAULT_DAYS", 90)
    return today - timedelta(days=days - 1), today


def history_queryset(user, habit_id, date_from: date, date_to: date):
    """
    Entries of one of the user's habits in [date_from, date_to], newest first.
    Raises Habit.DoesNotExist when the habit is not the user's.
    """
    habit = get_owned_habit(user, habit_id)
    qs = TrackingEntry.objects.filter(
        habit=habit, track_date__range=(date_from, date_to)
    ).order_by("-track_date", "-id")
    return habit, qs


def history_page(user, habit_id, date_from, date_to, page=1, page_size=None) -> HistoryPage:
    page_size = page_size or getattr(settings, "HABITS_HISTORY_PAGE_SIZE", 50)
    habit, qs = history_queryset(user, habit_id, date_from, date_to)

    paginator = Paginator(qs, page_size)
    current = paginator.get_page(page)
    completed = qs.filter(completed=True).count()

    return HistoryPage(
        habit=habit,
        entries=list(current.object_list),
        total=paginator.count,
        page=current.number,
        num_pages=paginator.num_pages,
        page_size=page_size,
        completed=completed,
        efficiency=efficiency(completed, paginator.count),
    )


def history_entries(user, habit_id, date_from, date_to):
    _, qs = history_queryset(user, habit_id, date_from, date_to)
    return qs.iterator()


class Echo:
    """File-like object whose write() hands the value back to csv.writer's caller."""

    def write(self, value):
        return value


def _timestamp(value):
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def export_rows(entries):
    """
    Yields CSV lines for a history export, starting with a UTF-8 BOM and
    the header row.
    """
    writer = csv.writer(Echo())
    yield BOM + writer.writerow(EXPORT_HEADER)
    for entry in entries:
        yield writer.writerow([
            entry.pk,
            entry.track_date.isoformat(),
            1 if entry.completed else 0,
            _timestamp(entry.created_at),
            _timestamp(entry.updated_at),
        ])
