from datetime import date, timedelta

import pytest

from habits.models import Habit
from habits.services import history
from habits.tests.utils import bulk_create_entries

pytestmark = pytest.mark.django_db

TODAY = date(2025, 3, 12)


@pytest.fixture()
def habit_with_history(make_habit):
    habit = make_habit("Read")
    bulk_create_entries(habit, [TODAY - timedelta(days=i) for i in (0, 1, 3)])
    bulk_create_entries(habit, [TODAY - timedelta(days=i) for i in (2, 4)], completed=False)
    bulk_create_entries(habit, [TODAY - timedelta(days=30)])
    return habit


def test_default_range__covers_ninety_days_inclusive():
    start, end = history.default_range(TODAY)
    assert end == TODAY
    assert (end - start).days == 89


def test_history_page__filters_range_orders_newest_first_and_counts(user, habit_with_history):
    page = history.history_page(
        user, habit_with_history.pk, TODAY - timedelta(days=4), TODAY, page=1, page_size=2
    )

    assert page.total == 5
    assert page.num_pages == 3
    assert [e.track_date for e in page.entries] == [TODAY, TODAY - timedelta(days=1)]
    assert page.completed == 3
    assert page.efficiency == 60


def test_history_page__out_of_range_page_clamps_to_last(user, habit_with_history):
    page = history.history_page(
        user, habit_with_history.pk, TODAY - timedelta(days=4), TODAY, page=99, page_size=2
    )

    assert page.page == 3
    assert [e.track_date for e in page.entries] == [TODAY - timedelta(days=4)]


def test_history_page__other_users_habit_is_not_found(other_user, habit_with_history):
    with pytest.raises(Habit.DoesNotExist):
        history.history_page(other_user, habit_with_history.pk, TODAY - timedelta(days=4), TODAY)


def test_export_rows__bom_header_then_rows(user, habit_with_history):
    entries = history.history_entries(user, habit_with_history.pk, TODAY - timedelta(days=2), TODAY)

    lines = list(history.export_rows(entries))

    assert lines[0] == "\ufeffid,track_date,completed,created_at,updated_at\r\n"
    assert len(lines) == 4
    assert lines[1].split(",")[1:3] == [TODAY.isoformat(), "1"]
    assert lines[3].split(",")[1:3] == [(TODAY - timedelta(days=2)).isoformat(), "0"]
